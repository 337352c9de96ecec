"""CRUD operations package."""

from shield.app.db.crud.security_event import (
    count_security_events_by_type,
    create_security_event,
    get_recent_security_events,
)

__all__ = [
    "create_security_event",
    "get_recent_security_events",
    "count_security_events_by_type",
]
