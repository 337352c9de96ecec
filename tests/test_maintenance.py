"""Tests for the counter sweep."""

import pytest

from shield.app.core.store import TTL_NO_EXPIRY
from shield.app.services.maintenance import SweepReport, sweep_orphaned_counters


class TestSweepOrphanedCounters:

    @pytest.mark.asyncio
    async def test_repairs_keys_without_expiry(self, store):
        await store.set("rate_limit:1.1.1.1:/api/jobs", "9")
        await store.set("brute_force:1.1.1.1:alice", "2")
        await store.incr_with_expiry("rate_limit:2.2.2.2:/api/jobs", 60)

        report = await sweep_orphaned_counters(store, default_ttl_seconds=120)

        assert report.scanned == 3
        assert report.repaired == 2
        assert sorted(report.repaired_keys) == ["brute_force:1.1.1.1:alice", "rate_limit:1.1.1.1:/api/jobs"]
        assert await store.ttl("rate_limit:1.1.1.1:/api/jobs") == 120
        assert await store.ttl("brute_force:1.1.1.1:alice") == 120
        assert await store.ttl("rate_limit:2.2.2.2:/api/jobs") == 60

    @pytest.mark.asyncio
    async def test_repaired_keys_eventually_expire(self, store, clock):
        await store.set("rate_limit:1.1.1.1:/api/jobs", "9")
        await sweep_orphaned_counters(store, default_ttl_seconds=30)
        clock.advance(30)
        assert await store.get("rate_limit:1.1.1.1:/api/jobs") is None

    @pytest.mark.asyncio
    async def test_other_prefixes_untouched(self, store):
        await store.set("session:abc", "1")

        report = await sweep_orphaned_counters(store)

        assert report == SweepReport()
        assert await store.ttl("session:abc") == TTL_NO_EXPIRY

    @pytest.mark.asyncio
    async def test_default_ttl_is_longest_window(self, store):
        await store.set("rate_limit:1.1.1.1:/api/auth/login", "1")
        await sweep_orphaned_counters(store)
        assert await store.ttl("rate_limit:1.1.1.1:/api/auth/login") == 900

    def test_report_to_dict(self):
        assert SweepReport(scanned=4, repaired=1, repaired_keys=["k"]).to_dict() == {"scanned": 4, "repaired": 1}
