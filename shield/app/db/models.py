from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shield.app.db.base import Base


class SecurityEventType:
    """Event type names stored in ``security_events.type``."""

    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    AUTH_FAILURE = "auth_failure"
    BRUTE_FORCE_ATTEMPT = "brute_force_attempt"
    SQL_INJECTION_ATTEMPT = "sql_injection_attempt"
    XSS_ATTEMPT = "xss_attempt"
    CSRF_FAILURE = "csrf_failure"
    INVALID_TOKEN = "invalid_token"
    PERMISSION_DENIED = "permission_denied"
    MALICIOUS_FILE_UPLOAD = "malicious_file_upload"


class SecurityEvent(Base):
    """Append-only record of a rate limit violation or threat detection."""

    __tablename__ = "security_events"
    __table_args__ = (
        Index("idx_security_events_timestamp", "timestamp"),
        Index("idx_security_events_type_timestamp", "type", "timestamp"),
        Index("idx_security_events_severity_timestamp", "severity", "timestamp"),
        Index("idx_security_events_ip", "ip"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(64))
    severity: Mapped[str] = mapped_column(String(16))
    ip: Mapped[str] = mapped_column(String(255))
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the durable event shape."""
        timestamp = self.timestamp
        if timestamp is not None and timestamp.tzinfo is None:
            # SQLite drops the offset; events are always written in UTC
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "ip": self.ip,
            "details": self.details or {},
            "timestamp": timestamp.isoformat() if timestamp else None,
        }
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.user_agent is not None:
            data["userAgent"] = self.user_agent
        return data
