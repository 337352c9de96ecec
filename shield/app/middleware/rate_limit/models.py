"""Rate limiting data models.

This module contains dataclasses for rate limit configuration and results.
"""

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shield.app.exceptions import RateLimitConfigError

if TYPE_CHECKING:
    from shield.app.middleware.rate_limit.strategies import KeyStrategy

DEFAULT_MESSAGE = "Too many requests, please try again later."


def _default_key_strategy() -> "KeyStrategy":
    from shield.app.middleware.rate_limit.strategies import KeyStrategy

    return KeyStrategy()


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed-window rate limit for one route class.

    Attributes:
        window_ms: Window length in milliseconds (> 0)
        max_requests: Requests allowed per window (>= 0, 0 denies everything)
        message: Human-readable text returned with a denial
        key_strategy: Derives the counter key and decides whether to skip
    """
    window_ms: int
    max_requests: int
    message: str = DEFAULT_MESSAGE
    key_strategy: "KeyStrategy" = field(default_factory=_default_key_strategy, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.window_ms, bool) or not isinstance(self.window_ms, int) or self.window_ms <= 0:
            raise RateLimitConfigError(f"window_ms must be a positive integer, got {self.window_ms!r}")
        if isinstance(self.max_requests, bool) or not isinstance(self.max_requests, int) or self.max_requests < 0:
            raise RateLimitConfigError(
                f"max_requests must be a non-negative integer, got {self.max_requests!r}"
            )

    @property
    def window_seconds(self) -> int:
        """Window length as a store TTL (whole seconds, at least 1)."""
        return max(1, math.ceil(self.window_ms / 1000))


@dataclass
class RateLimitInfo:
    """Quota state reported to the caller.

    Attributes:
        limit: Configured max_requests
        remaining: Requests left in the current window, never negative
        reset_time: Epoch milliseconds at which the window ends
    """
    limit: int
    remaining: int
    reset_time: int

    @property
    def reset_seconds(self) -> int:
        """Window end as epoch seconds, rounded up."""
        return math.ceil(self.reset_time / 1000)

    def retry_after_seconds(self, now_ms: int) -> int:
        """Seconds a denied client should wait, at least 1."""
        return max(1, math.ceil((self.reset_time - now_ms) / 1000))


@dataclass
class RateLimitResult:
    """Result of a rate limit check.

    ``degraded`` is set when the store could not be consulted and the
    request was allowed without counting it.
    """
    allowed: bool
    info: RateLimitInfo
    degraded: bool = False
