"""Middleware package for the request defense layer.

``SecurityMiddleware`` lives in ``shield.app.middleware.security`` and is
not re-exported here: it depends on the services package, which itself
imports the client identity resolver from this package.
"""

from shield.app.middleware.auth import require_admin
from shield.app.middleware.client_identity import client_identity, resolve_client_identity
from shield.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "require_admin",
    "client_identity",
    "resolve_client_identity",
    "RequestIdMiddleware",
    "get_request_id",
]
