"""Client identity resolution for rate limiting and security events.

Reverse-proxied deployments must attribute requests to the originating
client rather than the proxy hop, so forwarding headers take precedence over
the transport peer address.

Header values are not validated as IP addresses. The proxies in front of the
application are trusted to set them; a client talking to the app directly can
spoof them.
"""

from typing import Mapping, Optional, Union

from starlette.datastructures import Headers

from shield.app.core.request_context import RequestContext

UNKNOWN_CLIENT = "unknown"


def resolve_client_identity(
    peer_address: Optional[str],
    headers: Union[Headers, Mapping[str, str], None],
) -> str:
    """Return the identifying string for the caller.

    Precedence, first non-empty wins:
    1. First comma-separated entry of X-Forwarded-For, trimmed
    2. X-Real-IP, trimmed
    3. The transport peer address
    4. ``"unknown"``

    Args:
        peer_address: Address of the socket peer
        headers: Request headers (looked up case-insensitively)

    Returns:
        Client identity string
    """
    if headers is not None and not isinstance(headers, Headers):
        headers = Headers(headers=dict(headers))

    if headers is not None:
        forwarded = headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

        real_ip = headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    if peer_address and peer_address.strip():
        return peer_address.strip()
    return UNKNOWN_CLIENT


def client_identity(request: RequestContext) -> str:
    """Resolve the identity of a normalized request."""
    return resolve_client_identity(request.client_host, request.headers)
