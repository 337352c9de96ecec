"""Tests for client identity resolution."""

import pytest
from starlette.datastructures import Headers

from shield.app.core.request_context import RequestContext
from shield.app.middleware.client_identity import (
    UNKNOWN_CLIENT,
    client_identity,
    resolve_client_identity,
)


class TestResolveClientIdentity:
    """Precedence: X-Forwarded-For, X-Real-IP, peer address, "unknown"."""

    def test_forwarded_for_first_entry_wins(self):
        headers = {"x-forwarded-for": "1.1.1.1, 2.2.2.2", "x-real-ip": "3.3.3.3"}
        assert resolve_client_identity("4.4.4.4", headers) == "1.1.1.1"

    def test_forwarded_for_entry_is_trimmed(self):
        headers = {"x-forwarded-for": "   203.0.113.9   ,10.0.0.1"}
        assert resolve_client_identity(None, headers) == "203.0.113.9"

    def test_real_ip_used_without_forwarded_for(self):
        assert resolve_client_identity("4.4.4.4", {"x-real-ip": " 3.3.3.3 "}) == "3.3.3.3"

    def test_empty_forwarded_for_falls_through(self):
        headers = {"x-forwarded-for": " , 2.2.2.2", "x-real-ip": "3.3.3.3"}
        assert resolve_client_identity("4.4.4.4", headers) == "3.3.3.3"

    def test_peer_address_without_headers(self):
        assert resolve_client_identity("4.4.4.4", {}) == "4.4.4.4"
        assert resolve_client_identity("4.4.4.4", None) == "4.4.4.4"

    def test_unknown_when_nothing_available(self):
        assert resolve_client_identity(None, {}) == UNKNOWN_CLIENT
        assert resolve_client_identity("", None) == "unknown"

    @pytest.mark.parametrize("name", ["X-Forwarded-For", "x-forwarded-for", "X-FORWARDED-FOR"])
    def test_header_lookup_is_case_insensitive(self, name):
        assert resolve_client_identity("4.4.4.4", {name: "5.5.5.5"}) == "5.5.5.5"

    def test_accepts_starlette_headers(self):
        headers = Headers(headers={"X-Real-IP": "6.6.6.6"})
        assert resolve_client_identity(None, headers) == "6.6.6.6"

    def test_values_are_not_validated(self):
        # Whatever the proxy forwarded is used as-is
        assert resolve_client_identity(None, {"x-forwarded-for": "not-an-ip"}) == "not-an-ip"


class TestRequestContextIdentity:

    def test_client_identity_from_context(self):
        request = RequestContext(client_host="10.0.0.2", headers={"X-Forwarded-For": "198.51.100.4"})
        assert client_identity(request) == "198.51.100.4"

    def test_client_identity_from_peer(self):
        assert client_identity(RequestContext(client_host="10.0.0.2")) == "10.0.0.2"

    def test_url_defaults_to_path(self):
        request = RequestContext(path="/api/jobs")
        assert request.url == "/api/jobs"
        assert request.user_agent == ""
