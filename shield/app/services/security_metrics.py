"""Read-only aggregation over recorded security events for the admin dashboard."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from shield.app.core.logging import get_logger
from shield.app.db.async_session import get_async_session
from shield.app.db.crud import count_security_events_by_type, get_recent_security_events
from shield.app.db.models import SecurityEvent, SecurityEventType
from shield.app.services.event_recorder import SessionFactory, utcnow
from shield.app.services.threat_detector.models import Severity

logger = get_logger(__name__)

RATE_LIMITED_TYPES = frozenset({SecurityEventType.RATE_LIMIT_EXCEEDED})
SUSPICIOUS_TYPES = frozenset({
    SecurityEventType.SUSPICIOUS_ACTIVITY,
    SecurityEventType.SQL_INJECTION_ATTEMPT,
    SecurityEventType.XSS_ATTEMPT,
})
AUTH_FAILURE_TYPES = frozenset({
    SecurityEventType.AUTH_FAILURE,
    SecurityEventType.BRUTE_FORCE_ATTEMPT,
    SecurityEventType.INVALID_TOKEN,
})


@dataclass
class SecurityMetrics:
    """Event counts folded into dashboard categories."""
    total_requests: int = 0
    blocked_requests: int = 0
    rate_limited_requests: int = 0
    suspicious_activity: int = 0
    auth_failures: int = 0
    last_updated: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "blockedRequests": self.blocked_requests,
            "rateLimitedRequests": self.rate_limited_requests,
            "suspiciousActivity": self.suspicious_activity,
            "authFailures": self.auth_failures,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


def fold_event_counts(
    counts: Mapping[str, int],
    last_updated: Optional[datetime] = None,
    unblocked: Optional[Mapping[str, int]] = None,
) -> SecurityMetrics:
    """Fold per-type event counts into dashboard categories.

    Rate limit and suspicious-content events also count as blocked, except
    detections that were only logged.
    Authentication failures count only as authentication failures.
    Any other type counts as blocked.

    Args:
        counts: Events per type
        last_updated: Timestamp reported with the metrics
        unblocked: Events per type recorded with ``blocked: false`` (a
            detection that was only logged); these are left out of blocked
    """
    unblocked = unblocked or {}
    metrics = SecurityMetrics(last_updated=last_updated)
    for event_type, count in counts.items():
        metrics.total_requests += count
        if event_type in RATE_LIMITED_TYPES:
            metrics.rate_limited_requests += count
            metrics.blocked_requests += count
        elif event_type in SUSPICIOUS_TYPES:
            metrics.suspicious_activity += count
            metrics.blocked_requests += count - unblocked.get(event_type, 0)
        elif event_type in AUTH_FAILURE_TYPES:
            metrics.auth_failures += count
        else:
            metrics.blocked_requests += count - unblocked.get(event_type, 0)
    return metrics


def severity_summary(alerts: Iterable[Union[SecurityEvent, Mapping[str, Any]]]) -> dict[str, int]:
    """Count alerts per severity."""
    summary = {"totalAlerts": 0, "highAlerts": 0, "mediumAlerts": 0, "lowAlerts": 0}
    for alert in alerts:
        severity = alert["severity"] if isinstance(alert, Mapping) else alert.severity
        summary["totalAlerts"] += 1
        if severity == Severity.HIGH.value:
            summary["highAlerts"] += 1
        elif severity == Severity.MEDIUM.value:
            summary["mediumAlerts"] += 1
        elif severity == Severity.LOW.value:
            summary["lowAlerts"] += 1
    return summary


class SecurityMetricsAggregator:
    """Summarize recorded security events.

    Never writes. An empty event store yields zero counts and no alerts.
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_async_session,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def summarize(
        self,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> SecurityMetrics:
        """Aggregate events recorded at or after ``since``.

        Args:
            since: Lower time bound, None for all events
            limit: Only consider the most recent ``limit`` events
        """
        async with self._session_factory() as session:
            counts = await count_security_events_by_type(session, since=since, limit=limit)
            unblocked = await count_security_events_by_type(session, since=since, limit=limit, blocked=False)
        metrics = fold_event_counts(counts, last_updated=self._clock(), unblocked=unblocked)
        logger.debug(f"Summarized {metrics.total_requests} security events")
        return metrics

    async def recent_alerts(
        self,
        severity: Optional[Union[Severity, str]] = None,
        limit: int = 100,
    ) -> list[SecurityEvent]:
        """Most recent events first, optionally restricted to one severity."""
        severity_value = Severity.parse(severity).value if severity else None
        async with self._session_factory() as session:
            return await get_recent_security_events(session, severity=severity_value, limit=limit)
