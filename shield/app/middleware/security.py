"""Security middleware: rate limiting and threat detection for every request.

Per request: resolve the route class and count the request (a denial ends
the request with 429), inspect the content (a detection at or above the
blocking threshold ends it with 403), then pass it on. Violations and
detections are recorded as security events without delaying the response.
"""

from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shield.app.core.config import settings
from shield.app.core.logging import get_log_context, get_logger
from shield.app.core.request_context import RequestContext
from shield.app.core.store import CounterStore, get_counter_store
from shield.app.db.models import SecurityEventType
from shield.app.middleware.client_identity import client_identity
from shield.app.middleware.rate_limit import (
    RateLimitConfig,
    RateLimiter,
    RateLimitInfo,
    RateLimitResult,
    build_route_configs,
    resolve_route_class,
    resolve_route_config,
)
from shield.app.services.event_recorder import SecurityEventData, SecurityEventRecorder, get_event_recorder
from shield.app.services.threat_detector import DetectionResult, Severity, ThreatDetector, get_threat_detector

logger = get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

BLOCK_NONE = "NONE"


def rate_limit_headers(info: RateLimitInfo) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(info.limit),
        "X-RateLimit-Remaining": str(info.remaining),
        "X-RateLimit-Reset": str(info.reset_seconds),
    }


class SecurityMiddleware(BaseHTTPMiddleware):
    """Apply the request defense layer to every request.

    Collaborators default to the application singletons and can be replaced
    for tests.
    """

    def __init__(
        self,
        app,
        store: Optional[CounterStore] = None,
        limiter: Optional[RateLimiter] = None,
        detector: Optional[ThreatDetector] = None,
        recorder: Optional[SecurityEventRecorder] = None,
        route_configs: Optional[dict[str, RateLimitConfig]] = None,
        block_min_severity: Optional[str] = None,
        security_headers: Optional[bool] = None,
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter(store or get_counter_store())
        self.detector = detector or get_threat_detector()
        self.recorder = recorder or get_event_recorder()
        self.route_configs = route_configs if route_configs is not None else build_route_configs()
        threshold = (block_min_severity or settings.threat_block_min_severity).strip().upper()
        # None disables blocking
        self.block_threshold: Optional[Severity] = (
            None if threshold == BLOCK_NONE else Severity.parse(threshold)
        )
        self.security_headers = (
            settings.security_headers_enabled if security_headers is None else security_headers
        )

    def should_block(self, detection: DetectionResult) -> bool:
        """Whether a detection is severe enough to reject the request."""
        if not detection.is_suspicious or self.block_threshold is None:
            return False
        return detection.severity >= self.block_threshold

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = await RequestContext.from_request(
            request, user_id=getattr(request.state, "user_id", None)
        )
        request_id = getattr(request.state, "request_id", None)

        result: Optional[RateLimitResult] = None
        config = resolve_route_config(context.path, self.route_configs)
        if config is not None:
            result = await self.limiter.check(context, config)
            if not result.allowed:
                return self._finalize(self._rate_limited(context, config, result, request_id), result)

        if settings.threat_detection_enabled:
            detection = self.detector.inspect(context)
            if detection.is_suspicious:
                blocked = self.should_block(detection)
                self._report_detection(context, detection, blocked, request_id)
                if blocked:
                    return self._finalize(
                        JSONResponse(
                            status_code=403,
                            content={"error": "Request blocked for security reasons"},
                        ),
                        result,
                    )

        response = await call_next(request)
        return self._finalize(response, result)

    def _rate_limited(
        self,
        context: RequestContext,
        config: RateLimitConfig,
        result: RateLimitResult,
        request_id: Optional[str],
    ) -> JSONResponse:
        logger.warning(
            "Rate limit exceeded",
            extra=get_log_context(
                request_id=request_id,
                client_ip=client_identity(context),
                event_type=SecurityEventType.RATE_LIMIT_EXCEEDED,
                path=context.path,
                method=context.method,
            ),
        )
        self.recorder.record_in_background(
            SecurityEventData.from_request(
                context,
                SecurityEventType.RATE_LIMIT_EXCEEDED,
                Severity.MEDIUM,
                {"limit": result.info.limit, "route": resolve_route_class(context.path)},
            )
        )
        retry_after = result.info.retry_after_seconds(self.limiter.now_ms())
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "message": config.message},
            headers={"Retry-After": str(retry_after)},
        )

    def _report_detection(
        self,
        context: RequestContext,
        detection: DetectionResult,
        blocked: bool,
        request_id: Optional[str],
    ) -> None:
        logger.warning(
            f"Suspicious request: {', '.join(detection.reasons)}",
            extra=get_log_context(
                request_id=request_id,
                client_ip=client_identity(context),
                event_type=SecurityEventType.SUSPICIOUS_ACTIVITY,
                severity=detection.severity.value,
                path=context.path,
                method=context.method,
                blocked=blocked,
            ),
        )
        self.recorder.record_in_background(
            SecurityEventData.from_request(
                context,
                SecurityEventType.SUSPICIOUS_ACTIVITY,
                detection.severity,
                {"reasons": detection.reasons, "patterns": detection.matched, "blocked": blocked},
            )
        )

    def _finalize(self, response: Response, result: Optional[RateLimitResult]) -> Response:
        if result is not None:
            response.headers.update(rate_limit_headers(result.info))
        if self.security_headers:
            for name, value in SECURITY_HEADERS.items():
                response.headers.setdefault(name, value)
        return response
