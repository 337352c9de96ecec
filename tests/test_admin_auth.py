from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from shield.app.exceptions import AuthenticationError
from shield.app.middleware.auth import get_admin_token, get_bearer_token, require_admin


def _protected_app() -> FastAPI:
    app = FastAPI()

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": "authentication_failed", "message": exc.detail})

    @app.get("/protected")
    async def protected(_admin=Depends(require_admin)):
        return {"ok": True}

    return app


def test_get_admin_token_trims_whitespace(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "  token-with-whitespace  \n")

    assert get_admin_token() == "token-with-whitespace"


def test_get_admin_token_reads_rotated_value(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "first")
    assert get_admin_token() == "first"

    monkeypatch.setenv("ADMIN_TOKEN", "second")
    assert get_admin_token() == "second"


def test_require_admin_accepts_trimmed_env_token(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "token-with-newline\n")

    client = TestClient(_protected_app())
    response = client.get("/protected", headers={"Authorization": "Bearer token-with-newline"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_require_admin_rejects_wrong_token(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "expected")

    client = TestClient(_protected_app())
    response = client.get("/protected", headers={"Authorization": "Bearer expected-not"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or missing admin token"


def test_require_admin_rejects_everything_when_unset(monkeypatch):
    monkeypatch.delenv("ADMIN_TOKEN", raising=False)

    client = TestClient(_protected_app())
    response = client.get("/protected", headers={"Authorization": "Bearer "})

    assert response.status_code == 401


def test_get_bearer_token():
    def request(headers):
        scope = {"type": "http", "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()]}
        return Request(scope)

    assert get_bearer_token(request({"Authorization": "Bearer abc "})) == "abc"
    assert get_bearer_token(request({"Authorization": "Basic abc"})) is None
    assert get_bearer_token(request({})) is None
