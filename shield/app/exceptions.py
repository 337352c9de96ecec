"""Custom exceptions for the request defense layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shield.app.middleware.rate_limit.models import RateLimitInfo


class ShieldException(Exception):
    """Base class for shield exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Security layer error"):
        self.message = message
        super().__init__(message)


class RateLimitConfigError(ShieldException, ValueError):
    """Raised when a rate limit configuration is constructed with invalid values.

    This is a programmer error and surfaces at configuration time, never
    while a request is being served.
    """


class RateLimitExceededError(ShieldException):
    """Raised by callers that prefer exceptions over inspecting RateLimitResult.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, info: RateLimitInfo, message: str = "Too many requests"):
        self.info = info
        super().__init__(message)


class EventRecordingError(ShieldException):
    """Raised when a security event could not be written to the event store."""
    status_code = 500

    def __init__(self, event_type: str, detail: str = "Failed to record security event"):
        self.event_type = event_type
        super().__init__(f"{detail}: {event_type}")


class AuthenticationError(ShieldException):
    """Raised when admin authentication fails.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, detail: str = "Invalid or missing admin token"):
        self.detail = detail
        super().__init__(detail)
