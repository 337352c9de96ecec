"""Admin authentication for the security dashboard API."""

import hmac
import os

from fastapi import Request

from shield.app.core.logging import get_logger
from shield.app.exceptions import AuthenticationError

logger = get_logger(__name__)


def get_admin_token() -> str:
    """Read the admin token from the ADMIN_TOKEN environment variable.

    Read on every call so a rotated secret takes effect without a restart.
    Surrounding whitespace from env files or secret stores is stripped.
    """
    return (os.getenv("ADMIN_TOKEN") or "").strip()


def get_bearer_token(request: Request) -> str | None:
    """Extract the Bearer token from the Authorization header."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth[len("Bearer "):].strip()


def require_admin(request: Request) -> str:
    """Validate the admin token for protected endpoints.

    Raises:
        AuthenticationError: If the token is missing, wrong, or no admin
            token is configured
    """
    expected_token = get_admin_token()
    if not expected_token:
        logger.error("ADMIN_TOKEN is not set; refusing admin request")
        raise AuthenticationError()

    token = get_bearer_token(request) or ""
    if not hmac.compare_digest(token.encode(), expected_token.encode()):
        raise AuthenticationError()
    return "admin"
