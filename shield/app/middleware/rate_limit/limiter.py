"""Fixed-window rate limiter backed by the shared counter store."""

import time
from typing import Callable, Optional

from shield.app.core.config import settings
from shield.app.core.logging import get_log_context, get_logger
from shield.app.core.request_context import RequestContext
from shield.app.core.store import CounterStore, read_and_count
from shield.app.middleware.client_identity import client_identity
from shield.app.middleware.rate_limit.models import RateLimitConfig, RateLimitInfo, RateLimitResult

logger = get_logger(__name__)


class RateLimiter:
    """Decide whether a request is within its route's quota.

    Each non-skipped check increments the request's counter exactly once.
    When the store is unreachable or slow the limiter fails open: the
    request is allowed with a full quota and the result is marked degraded.

    Args:
        store: Counter store holding the per-key counters
        clock: Returns the current time in seconds
        timeout: Upper bound for one store exchange, in seconds
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        clock: Callable[[], float] = time.time,
        timeout: Optional[float] = None,
    ) -> None:
        self.store = store
        self._clock = clock
        self._timeout = settings.store_timeout_seconds if timeout is None else timeout

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def check(self, request: RequestContext, config: RateLimitConfig) -> RateLimitResult:
        """Count the request and report whether it is allowed."""
        now_ms = self.now_ms()

        if config.key_strategy.should_skip(request):
            return RateLimitResult(
                allowed=True,
                info=RateLimitInfo(
                    limit=config.max_requests,
                    remaining=config.max_requests,
                    reset_time=now_ms + config.window_ms,
                ),
            )

        key = config.key_strategy.derive_key(request)
        snapshot = await read_and_count(self.store, key, config.window_seconds, self._timeout)

        if not snapshot.available:
            logger.warning(
                f"Rate limiter failing open ({snapshot.error})",
                extra=get_log_context(client_ip=client_identity(request), path=request.path, key=key),
            )
            return RateLimitResult(
                allowed=True,
                info=RateLimitInfo(
                    limit=config.max_requests,
                    remaining=config.max_requests,
                    reset_time=now_ms + config.window_ms,
                ),
                degraded=True,
            )

        if snapshot.ttl_seconds is not None and snapshot.ttl_seconds > 0:
            reset_time = now_ms + snapshot.ttl_seconds * 1000
        else:
            reset_time = now_ms + config.window_ms

        allowed = snapshot.count <= config.max_requests
        info = RateLimitInfo(
            limit=config.max_requests,
            remaining=max(0, config.max_requests - snapshot.count),
            reset_time=reset_time,
        )
        if not allowed:
            logger.info(
                "Rate limit exceeded",
                extra=get_log_context(
                    client_ip=client_identity(request),
                    event_type="rate_limit_exceeded",
                    path=request.path,
                    key=key,
                    count=snapshot.count,
                ),
            )
        return RateLimitResult(allowed=allowed, info=info)
