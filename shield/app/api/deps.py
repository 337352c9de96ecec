"""Shared FastAPI dependencies for API routes."""

from typing import Awaitable, Callable

from fastapi import Depends, Request

from shield.app.core.logging import get_log_context, get_logger
from shield.app.core.request_context import RequestContext
from shield.app.core.store import CounterStore, get_counter_store
from shield.app.db.models import SecurityEventType
from shield.app.exceptions import AuthenticationError, RateLimitExceededError
from shield.app.middleware.auth import require_admin
from shield.app.middleware.client_identity import client_identity
from shield.app.middleware.rate_limit import RateLimiter, RateLimitInfo, RateLimitResult, build_route_configs
from shield.app.services.brute_force import BruteForceGuard
from shield.app.services.event_recorder import SecurityEventData, SecurityEventRecorder, get_event_recorder
from shield.app.services.threat_detector.models import Severity

logger = get_logger(__name__)

# Brute force identifier shared by every admin endpoint
ADMIN_IDENTIFIER = "admin"


def get_store() -> CounterStore:
    return get_counter_store()


def get_recorder() -> SecurityEventRecorder:
    return get_event_recorder()


def get_brute_force_guard(store: CounterStore = Depends(get_store)) -> BruteForceGuard:
    return BruteForceGuard(store)


def _request_context(request: Request) -> RequestContext:
    return RequestContext(
        client_host=request.client.host if request.client else None,
        headers=request.headers,
        path=request.url.path,
        method=request.method,
    )


def rate_limited(route_class: str) -> Callable[..., Awaitable[RateLimitResult]]:
    """Build a dependency that applies a route class limit to an endpoint.

    For routes outside the paths covered by SecurityMiddleware. The body is
    not parsed; only the client identity and path feed the counter key.

    Raises:
        RateLimitExceededError: When the client is over the limit
    """

    async def check_rate_limit(
        request: Request,
        store: CounterStore = Depends(get_store),
    ) -> RateLimitResult:
        config = build_route_configs()[route_class]
        result = await RateLimiter(store).check(_request_context(request), config)
        request.state.rate_limit = result
        if not result.allowed:
            raise RateLimitExceededError(result.info, config.message)
        return result

    return check_rate_limit


async def require_admin_guarded(
    request: Request,
    guard: BruteForceGuard = Depends(get_brute_force_guard),
    recorder: SecurityEventRecorder = Depends(get_recorder),
) -> str:
    """Admin token check with failed-attempt tracking.

    A client that reached the failure limit is refused with 429 until its
    window passes, even with the right token. Each rejected token is recorded
    as an ``auth_failure`` event, and the failure that reaches the limit also
    as ``brute_force_attempt``. A valid token forgets earlier failures.

    Raises:
        RateLimitExceededError: When the client is locked out
        AuthenticationError: When the token is missing or wrong
    """
    context = _request_context(request)
    ip = client_identity(context)
    status = await guard.check(ip, ADMIN_IDENTIFIER)
    if status.is_blocked:
        reset_time = status.reset_time or guard.now_ms() + guard.window_seconds * 1000
        raise RateLimitExceededError(
            RateLimitInfo(limit=guard.max_attempts, remaining=0, reset_time=reset_time),
            "Too many failed authentication attempts, please try again later.",
        )

    try:
        admin = require_admin(request)
    except AuthenticationError:
        attempts = await guard.record_failure(ip, ADMIN_IDENTIFIER)
        logger.warning(
            "Admin authentication failed",
            extra=get_log_context(
                client_ip=ip,
                event_type=SecurityEventType.AUTH_FAILURE,
                path=context.path,
                attempts=attempts,
            ),
        )
        recorder.record_in_background(
            SecurityEventData.from_request(
                context,
                SecurityEventType.AUTH_FAILURE,
                Severity.MEDIUM,
                {"identifier": ADMIN_IDENTIFIER, "attempts": attempts},
            )
        )
        if attempts >= guard.max_attempts:
            recorder.record_in_background(
                SecurityEventData.from_request(
                    context,
                    SecurityEventType.BRUTE_FORCE_ATTEMPT,
                    Severity.HIGH,
                    {"identifier": ADMIN_IDENTIFIER, "attempts": attempts},
                )
            )
        raise

    if status.attempts:
        await guard.clear(ip, ADMIN_IDENTIFIER)
    return admin
