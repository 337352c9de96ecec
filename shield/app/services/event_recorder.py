"""Durable recording of security events.

Every rate limit denial and threat detection becomes one row in
``security_events``. Writes are never batched or deduplicated: the volume of
events is itself a signal for the metrics aggregator.

Two failure policies are offered. ``record`` surfaces database errors to the
caller so an operator sees lost records; ``record_safely`` and
``record_in_background`` only log them, for call sites on the request path.
"""

import asyncio
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shield.app.core.logging import get_log_context, get_logger
from shield.app.core.request_context import RequestContext
from shield.app.db.async_session import get_async_session
from shield.app.db.crud import create_security_event
from shield.app.db.models import SecurityEvent
from shield.app.exceptions import EventRecordingError
from shield.app.middleware.client_identity import client_identity
from shield.app.services.threat_detector.models import Severity

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SecurityEventData:
    """Data required to record a security event."""
    type: str
    severity: Severity
    ip: str
    details: dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.severity = Severity.parse(self.severity)

    @classmethod
    def from_request(
        cls,
        request: RequestContext,
        event_type: str,
        severity: Union[Severity, str],
        details: Optional[dict[str, Any]] = None,
    ) -> "SecurityEventData":
        """Build event data for a request, attributing it to the resolved client."""
        merged = {"url": request.url, "method": request.method}
        merged.update(details or {})
        return cls(
            type=event_type,
            severity=severity,
            ip=client_identity(request),
            details=merged,
            user_id=request.user_id,
            user_agent=request.user_agent or None,
        )


class SecurityEventRecorder:
    """Persist security events, one INSERT per event.

    Args:
        session_factory: Returns an async context manager yielding a session
        clock: Returns the current UTC time, used when an event has no timestamp
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_async_session,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

    async def record(self, event: SecurityEventData) -> SecurityEvent:
        """Write one event and return the stored row.

        Raises:
            EventRecordingError: If the database write fails
        """
        timestamp = event.timestamp or self._clock()
        try:
            async with self._session_factory() as session:
                stored = await create_security_event(
                    session,
                    event_type=event.type,
                    severity=event.severity.value,
                    ip=event.ip,
                    timestamp=timestamp,
                    details=event.details,
                    user_id=event.user_id,
                    user_agent=event.user_agent,
                )
        except (SQLAlchemyError, OSError) as e:
            raise EventRecordingError(event.type) from e

        logger.info(
            f"Security event recorded: {event.type}",
            extra=get_log_context(
                client_ip=event.ip,
                user_id=event.user_id,
                event_type=event.type,
                severity=event.severity.value,
                event_id=stored.id,
            ),
        )
        return stored

    async def record_safely(self, event: SecurityEventData) -> Optional[SecurityEvent]:
        """Write one event, logging instead of raising on failure."""
        try:
            return await self.record(event)
        except Exception as e:
            logger.error(
                f"Failed to record security event: {e}",
                extra=get_log_context(
                    client_ip=event.ip,
                    event_type=event.type,
                    severity=event.severity.value,
                ),
                exc_info=True,
            )
            return None

    def record_in_background(self, event: SecurityEventData) -> asyncio.Task:
        """Schedule a write without waiting for it.

        Must be called from a running event loop. The task is tracked until
        it completes so ``drain`` can wait for it at shutdown.
        """
        task = asyncio.get_running_loop().create_task(self.record_safely(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all scheduled background writes to finish."""
        if not self._pending:
            return
        logger.debug(f"Waiting for {len(self._pending)} pending security event writes")
        await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global recorder instance
_recorder: Optional[SecurityEventRecorder] = None


def get_event_recorder() -> SecurityEventRecorder:
    """Get or create the global security event recorder."""
    global _recorder
    if _recorder is None:
        _recorder = SecurityEventRecorder()
    return _recorder


def reset_event_recorder() -> None:
    """Reset the global recorder (for testing)."""
    global _recorder
    _recorder = None
