"""Tests for brute force tracking."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis

from shield.app.services.brute_force import BruteForceGuard, BruteForceStatus


@pytest.fixture
def guard(store, clock):
    return BruteForceGuard(store, max_attempts=3, window_seconds=900, timeout=1, clock=clock)


class TestBruteForceGuard:

    def test_key_format(self):
        assert BruteForceGuard.key_for("203.0.113.1", "alice@example.com") == "brute_force:203.0.113.1:alice@example.com"

    @pytest.mark.asyncio
    async def test_no_failures(self, guard):
        assert await guard.check("203.0.113.1", "alice") == BruteForceStatus(is_blocked=False, attempts=0)

    @pytest.mark.asyncio
    async def test_blocks_at_threshold(self, guard, clock):
        start_ms = int(clock() * 1000)
        with patch("shield.app.services.brute_force.logger") as mock_logger:
            attempts = [await guard.record_failure("203.0.113.1", "alice") for _ in range(3)]

        assert attempts == [1, 2, 3]
        mock_logger.warning.assert_called_once()

        status = await guard.check("203.0.113.1", "alice")
        assert status.is_blocked is True
        assert status.attempts == 3
        assert status.reset_time == start_ms + 900_000

    @pytest.mark.asyncio
    async def test_below_threshold_not_blocked(self, guard):
        await guard.record_failure("203.0.113.1", "alice")
        await guard.record_failure("203.0.113.1", "alice")
        status = await guard.check("203.0.113.1", "alice")
        assert status.is_blocked is False
        assert status.attempts == 2

    @pytest.mark.asyncio
    async def test_identifiers_and_clients_are_separate(self, guard):
        for _ in range(3):
            await guard.record_failure("203.0.113.1", "alice")
        assert (await guard.check("203.0.113.1", "bob")).is_blocked is False
        assert (await guard.check("198.51.100.2", "alice")).is_blocked is False

    @pytest.mark.asyncio
    async def test_failures_expire_with_window(self, guard, clock):
        for _ in range(3):
            await guard.record_failure("203.0.113.1", "alice")
        clock.advance(900)
        assert await guard.check("203.0.113.1", "alice") == BruteForceStatus(is_blocked=False, attempts=0)

    @pytest.mark.asyncio
    async def test_each_failure_extends_window(self, guard, clock, store):
        await guard.record_failure("203.0.113.1", "alice")
        clock.advance(600)
        await guard.record_failure("203.0.113.1", "alice")
        assert await store.ttl("brute_force:203.0.113.1:alice") == 900
        clock.advance(600)
        assert (await guard.check("203.0.113.1", "alice")).attempts == 2

    @pytest.mark.asyncio
    async def test_clear(self, guard):
        for _ in range(3):
            await guard.record_failure("203.0.113.1", "alice")
        await guard.clear("203.0.113.1", "alice")
        assert (await guard.check("203.0.113.1", "alice")).attempts == 0

    @pytest.mark.asyncio
    async def test_check_fails_open(self, clock):
        store = MagicMock()
        store.get = AsyncMock(side_effect=redis.ConnectionError("refused"))
        store.ttl = AsyncMock(return_value=60)
        guard = BruteForceGuard(store, max_attempts=1, window_seconds=60, timeout=1, clock=clock)

        status = await guard.check("203.0.113.1", "alice")

        assert status == BruteForceStatus(is_blocked=False, attempts=0)

    @pytest.mark.asyncio
    async def test_record_failure_reports_zero_on_store_error(self, clock):
        store = MagicMock()
        store.incr_with_expiry = AsyncMock(side_effect=ConnectionRefusedError())
        guard = BruteForceGuard(store, max_attempts=1, window_seconds=60, timeout=1, clock=clock)

        assert await guard.record_failure("203.0.113.1", "alice") == 0

    @pytest.mark.asyncio
    async def test_malformed_counter_reads_as_zero(self, guard, store):
        await store.set("brute_force:203.0.113.1:alice", "junk", 60)
        assert (await guard.check("203.0.113.1", "alice")).attempts == 0
