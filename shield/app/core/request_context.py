"""Normalized request representation consumed by the defense components.

The rate limiter and threat detector never touch framework request objects
directly; the HTTP layer builds a RequestContext once per request.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from starlette.datastructures import Headers
from starlette.requests import Request

from shield.app.core.logging import get_logger

logger = get_logger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass
class RequestContext:
    """What the defense layer knows about a request.

    Attributes:
        client_host: Transport-level peer address, if any
        headers: Case-insensitive header view
        path: URL path used for route-scoped rate limit keys
        method: HTTP method
        url: Full request URL (path + query) inspected for attack patterns
        body: Parsed body (nested dict/list of strings and numbers) or None
        user_id: Authenticated user id, when the caller knows it
    """
    client_host: Optional[str] = None
    headers: Union[Headers, Mapping[str, str]] = field(default_factory=Headers)
    path: str = "/"
    method: str = "GET"
    url: str = ""
    body: Any = None
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            self.headers = Headers(headers=dict(self.headers or {}))
        if not self.url:
            self.url = self.path

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @classmethod
    async def from_request(cls, request: Request, user_id: Optional[str] = None) -> "RequestContext":
        """Build a context from a Starlette request, parsing a JSON body if present.

        Unparseable or non-JSON bodies yield ``body=None``; a broken payload is
        for the threat detector to judge, not a reason to fail the request here.
        """
        body: Any = None
        content_type = request.headers.get("content-type", "")
        if request.method in BODY_METHODS and "json" in content_type:
            raw = await request.body()
            if raw:
                try:
                    body = json.loads(raw)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.debug("Request body is not valid JSON", extra={"path": request.url.path})

        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        return cls(
            client_host=request.client.host if request.client else None,
            headers=request.headers,
            path=request.url.path,
            method=request.method,
            url=url,
            body=body,
            user_id=user_id,
        )
