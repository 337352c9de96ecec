"""Rate limiting for the request defense layer.

Fixed-window counters per client identity and route, kept in the shared
counter store so every application instance sees the same counts.
"""

from shield.app.middleware.rate_limit.limiter import RateLimiter
from shield.app.middleware.rate_limit.models import (
    RateLimitConfig,
    RateLimitInfo,
    RateLimitResult,
)
from shield.app.middleware.rate_limit.routes import (
    build_route_configs,
    resolve_route_class,
    resolve_route_config,
)
from shield.app.middleware.rate_limit.strategies import (
    CallableKeyStrategy,
    KeyStrategy,
    UserKeyStrategy,
)

__all__ = [
    # Models
    "RateLimitConfig",
    "RateLimitInfo",
    "RateLimitResult",
    # Key strategies
    "KeyStrategy",
    "CallableKeyStrategy",
    "UserKeyStrategy",
    # Limiter and routing
    "RateLimiter",
    "build_route_configs",
    "resolve_route_class",
    "resolve_route_config",
]
