"""Counter store maintenance.

Counters are always written together with an expiry, but a key can still
end up without one (written by an older deployment, or by hand). Such a key
would throttle its client forever; the sweep gives it a finite lifetime.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from shield.app.core.config import settings
from shield.app.core.logging import get_logger
from shield.app.core.store import TTL_NO_EXPIRY, CounterStore

logger = get_logger(__name__)

COUNTER_PREFIXES = ("rate_limit:", "brute_force:")


@dataclass
class SweepReport:
    """Outcome of a maintenance sweep."""
    scanned: int = 0
    repaired: int = 0
    repaired_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"scanned": self.scanned, "repaired": self.repaired}


async def sweep_orphaned_counters(
    store: CounterStore,
    prefixes: Iterable[str] = COUNTER_PREFIXES,
    default_ttl_seconds: Optional[int] = None,
) -> SweepReport:
    """Give every counter without an expiry a TTL.

    Args:
        store: Counter store to sweep
        prefixes: Key prefixes owned by the defense layer
        default_ttl_seconds: TTL applied to repaired keys (defaults to the
            longest configured window)

    Returns:
        SweepReport with the number of keys scanned and repaired
    """
    if default_ttl_seconds is None:
        default_ttl_seconds = max(
            settings.rate_limit_auth_window_ms // 1000,
            settings.brute_force_window_seconds,
        )

    report = SweepReport()
    for prefix in prefixes:
        for key in await store.scan_keys(prefix):
            report.scanned += 1
            if await store.ttl(key) == TTL_NO_EXPIRY:
                await store.expire(key, default_ttl_seconds)
                report.repaired += 1
                report.repaired_keys.append(key)

    if report.repaired:
        logger.warning(
            f"Restored expiry on {report.repaired} counter(s) without TTL",
            extra={"keys": report.repaired_keys[:20]},
        )
    else:
        logger.info(f"Counter sweep complete, {report.scanned} key(s) scanned")
    return report
