"""Database package for the request defense layer.

This package provides:
- The SecurityEvent model (append-only security event log)
- Asynchronous session management
- CRUD operations for security events
"""

from shield.app.db.base import Base
from shield.app.db.models import SecurityEvent, SecurityEventType
from shield.app.db.async_session import (
    check_database,
    close_async_engine,
    get_async_engine,
    get_async_session,
    get_async_session_maker,
    init_async_db,
)
from shield.app.db.crud import (
    count_security_events_by_type,
    create_security_event,
    get_recent_security_events,
)

__all__ = [
    # Base
    "Base",
    # Models
    "SecurityEvent",
    "SecurityEventType",
    # Session (async)
    "check_database",
    "close_async_engine",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
    "init_async_db",
    # CRUD
    "count_security_events_by_type",
    "create_security_event",
    "get_recent_security_events",
]
