"""Repeated authentication failure tracking per client and account."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from shield.app.core.config import settings
from shield.app.core.logging import get_log_context, get_logger
from shield.app.core.store import STORE_ERRORS, CounterStore, parse_count

logger = get_logger(__name__)

KEY_PREFIX = "brute_force"


@dataclass
class BruteForceStatus:
    """Failure state of one (client, identifier) pair.

    Attributes:
        is_blocked: True once attempts reached the configured maximum
        attempts: Failures recorded in the current window
        reset_time: Epoch milliseconds when the window ends, None if unknown
    """
    is_blocked: bool
    attempts: int
    reset_time: Optional[int] = None


class BruteForceGuard:
    """Block a client after too many failed attempts against one identifier.

    Shares the counter store with the rate limiter and follows the same
    failure policy: an unreachable store never blocks anyone.

    Args:
        store: Counter store
        max_attempts: Failures allowed before blocking
        window_seconds: How long failures are remembered
        timeout: Upper bound for one store exchange, in seconds
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        store: CounterStore,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[int] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.max_attempts = max_attempts or settings.brute_force_max_attempts
        self.window_seconds = window_seconds or settings.brute_force_window_seconds
        self._timeout = timeout or settings.store_timeout_seconds
        self._clock = clock

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    @staticmethod
    def key_for(ip: str, identifier: str) -> str:
        return f"{KEY_PREFIX}:{ip}:{identifier}"

    async def check(self, ip: str, identifier: str) -> BruteForceStatus:
        """Report whether further attempts should be refused."""
        key = self.key_for(ip, identifier)
        try:
            raw, ttl = await asyncio.wait_for(
                asyncio.gather(self.store.get(key), self.store.ttl(key)),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, *STORE_ERRORS) as e:
            logger.warning(
                f"Brute force check failing open: {e!r}",
                extra=get_log_context(client_ip=ip, key=key),
            )
            return BruteForceStatus(is_blocked=False, attempts=0)

        attempts = parse_count(raw) or 0
        reset_time = self.now_ms() + ttl * 1000 if ttl > 0 else None
        return BruteForceStatus(
            is_blocked=attempts >= self.max_attempts,
            attempts=attempts,
            reset_time=reset_time,
        )

    async def record_failure(self, ip: str, identifier: str) -> int:
        """Count one failed attempt, returning the new total (0 if the store failed)."""
        key = self.key_for(ip, identifier)
        try:
            attempts = await asyncio.wait_for(
                self.store.incr_with_expiry(key, self.window_seconds),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, *STORE_ERRORS, ValueError) as e:
            logger.warning(
                f"Failed to record authentication failure: {e!r}",
                extra=get_log_context(client_ip=ip, key=key),
            )
            return 0

        if attempts >= self.max_attempts:
            logger.warning(
                "Brute force threshold reached",
                extra=get_log_context(
                    client_ip=ip,
                    event_type="brute_force_attempt",
                    identifier=identifier,
                    attempts=attempts,
                ),
            )
        return attempts

    async def clear(self, ip: str, identifier: str) -> None:
        """Forget failures after a successful authentication."""
        try:
            await asyncio.wait_for(self.store.delete(self.key_for(ip, identifier)), timeout=self._timeout)
        except (asyncio.TimeoutError, *STORE_ERRORS) as e:
            logger.warning(f"Failed to clear brute force counter: {e!r}", extra=get_log_context(client_ip=ip))
