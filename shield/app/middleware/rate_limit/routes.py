"""Route classes: which rate limit applies to which part of the API.

Each class pairs a window and a quota from settings with the message shown
to a throttled client. Paths are matched by longest prefix; paths outside
every class are not rate limited.
"""

from typing import Optional

from shield.app.core.config import Settings, settings as default_settings
from shield.app.middleware.rate_limit.models import RateLimitConfig

AUTH = "auth"
API = "api"
UPLOAD = "upload"
PAYMENT = "payment"
MESSAGING = "messaging"
ADMIN = "admin"

ROUTE_MESSAGES = {
    AUTH: "Too many authentication attempts, please try again later.",
    API: "Too many requests, please try again later.",
    UPLOAD: "Too many file uploads, please try again later.",
    PAYMENT: "Too many payment requests, please try again later.",
    MESSAGING: "Too many messages, please slow down.",
    ADMIN: "Too many admin requests, please try again later.",
}

# (path prefix, route class); order is irrelevant, the longest prefix wins
ROUTE_PREFIXES: tuple[tuple[str, str], ...] = (
    ("/api/auth", AUTH),
    ("/api/admin", ADMIN),
    ("/api/upload", UPLOAD),
    ("/api/payment", PAYMENT),
    ("/api/payments", PAYMENT),
    ("/api/messages", MESSAGING),
    ("/api", API),
)


def build_route_configs(settings: Optional[Settings] = None) -> dict[str, RateLimitConfig]:
    """Build the RateLimitConfig for every route class from settings."""
    settings = settings or default_settings
    return {
        name: RateLimitConfig(
            window_ms=getattr(settings, f"rate_limit_{name}_window_ms"),
            max_requests=getattr(settings, f"rate_limit_{name}_max"),
            message=message,
        )
        for name, message in ROUTE_MESSAGES.items()
    }


def _prefix_matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def resolve_route_class(path: str) -> Optional[str]:
    """Return the route class for a path, or None if it is not rate limited.

    >>> resolve_route_class("/api/auth/login")
    'auth'
    >>> resolve_route_class("/api/jobs/42")
    'api'
    >>> resolve_route_class("/health") is None
    True
    """
    best: Optional[tuple[int, str]] = None
    for prefix, route_class in ROUTE_PREFIXES:
        if _prefix_matches(path, prefix) and (best is None or len(prefix) > best[0]):
            best = (len(prefix), route_class)
    return best[1] if best else None


def resolve_route_config(
    path: str,
    configs: dict[str, RateLimitConfig],
) -> Optional[RateLimitConfig]:
    route_class = resolve_route_class(path)
    return configs.get(route_class) if route_class else None
