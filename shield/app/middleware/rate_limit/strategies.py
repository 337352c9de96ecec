"""Key derivation and skip policies for rate limiting.

A strategy decides which counter a request is charged against and whether
the request is exempt from counting altogether.
"""

from typing import Callable, Optional

from shield.app.core.request_context import RequestContext
from shield.app.middleware.client_identity import client_identity

KEY_PREFIX = "rate_limit"

KeyGenerator = Callable[[RequestContext], str]
SkipPredicate = Callable[[RequestContext], bool]


class KeyStrategy:
    """Default strategy: one counter per client identity and route."""

    def derive_key(self, request: RequestContext) -> str:
        return f"{KEY_PREFIX}:{client_identity(request)}:{request.path}"

    def should_skip(self, request: RequestContext) -> bool:
        return False


class CallableKeyStrategy(KeyStrategy):
    """Adapt plain functions to the strategy interface.

    Either callable may be omitted, in which case the default behavior
    applies. The key generator's output is used verbatim as the store key.

    Example:
        >>> strategy = CallableKeyStrategy(
        ...     key_generator=lambda req: f"rate_limit:tenant:{req.headers['x-tenant']}",
        ...     skip=lambda req: req.path == "/api/health",
        ... )
    """

    def __init__(
        self,
        key_generator: Optional[KeyGenerator] = None,
        skip: Optional[SkipPredicate] = None,
    ) -> None:
        self._key_generator = key_generator
        self._skip = skip

    def derive_key(self, request: RequestContext) -> str:
        if self._key_generator is None:
            return super().derive_key(request)
        return self._key_generator(request)

    def should_skip(self, request: RequestContext) -> bool:
        if self._skip is None:
            return False
        return bool(self._skip(request))


class UserKeyStrategy(KeyStrategy):
    """Charge every request of one authenticated user against a single counter."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id

    def derive_key(self, request: RequestContext) -> str:
        return f"{KEY_PREFIX}:user:{self.user_id}"
