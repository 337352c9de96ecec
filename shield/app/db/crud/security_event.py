"""Security event CRUD operations."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shield.app.db.models import SecurityEvent


async def create_security_event(
    session: AsyncSession,
    event_type: str,
    severity: str,
    ip: str,
    timestamp: datetime,
    details: Optional[dict[str, Any]] = None,
    user_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    auto_commit: bool = True,
) -> SecurityEvent:
    """Insert one security event.

    Args:
        session: Database session
        event_type: Event type (see SecurityEventType)
        severity: LOW, MEDIUM or HIGH
        ip: Client identity the event is attributed to
        timestamp: When the event happened (UTC)
        details: Free-form context (url, method, reasons, ...)
        user_id: Authenticated user, when known
        user_agent: Client user agent
        auto_commit: Whether to commit the transaction

    Returns:
        The stored SecurityEvent with its id assigned
    """
    event = SecurityEvent(
        type=event_type,
        severity=severity,
        ip=ip,
        user_id=user_id,
        user_agent=user_agent,
        details=details or {},
        timestamp=timestamp,
    )
    session.add(event)
    if auto_commit:
        await session.commit()
        await session.refresh(event)
    return event


async def get_recent_security_events(
    session: AsyncSession,
    severity: Optional[str] = None,
    limit: int = 100,
    since: Optional[datetime] = None,
) -> list[SecurityEvent]:
    """Get the most recent security events, newest first."""
    stmt = select(SecurityEvent)
    if severity:
        stmt = stmt.where(SecurityEvent.severity == severity)
    if since is not None:
        stmt = stmt.where(SecurityEvent.timestamp >= since)
    stmt = stmt.order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_security_events_by_type(
    session: AsyncSession,
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
    blocked: Optional[bool] = None,
) -> dict[str, int]:
    """Count events per type.

    Args:
        session: Database session
        since: Only count events at or after this time
        limit: Only count the most recent ``limit`` events
        blocked: Only count events whose ``details.blocked`` flag equals this;
            events without the flag never match

    Returns:
        Mapping of event type to count
    """
    blocked_flag = SecurityEvent.details["blocked"].as_boolean()
    if limit is not None:
        recent = select(SecurityEvent.type, blocked_flag.label("blocked"))
        if since is not None:
            recent = recent.where(SecurityEvent.timestamp >= since)
        recent = recent.order_by(
            SecurityEvent.timestamp.desc(), SecurityEvent.id.desc()
        ).limit(limit).subquery()
        stmt = select(recent.c.type, func.count()).group_by(recent.c.type)
        if blocked is not None:
            stmt = stmt.where(recent.c.blocked == blocked)
    else:
        stmt = select(SecurityEvent.type, func.count(SecurityEvent.id)).group_by(SecurityEvent.type)
        if since is not None:
            stmt = stmt.where(SecurityEvent.timestamp >= since)
        if blocked is not None:
            stmt = stmt.where(blocked_flag == blocked)

    result = await session.execute(stmt)
    return {event_type: count for event_type, count in result.all()}
