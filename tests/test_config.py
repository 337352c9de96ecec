import pytest
from pydantic import ValidationError

from shield.app.core.config import Settings


def test_cors_origins_accepts_host_without_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "jobs.example.com")

    settings = Settings(_env_file=None)
    assert "http://jobs.example.com" in settings.cors_origins
    assert "https://jobs.example.com" in settings.cors_origins


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:3000"]', ["http://localhost:3000"]),
        ("https://a.example.com, https://b.example.com", ["https://a.example.com", "https://b.example.com"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected


def test_route_class_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.rate_limit_auth_window_ms == 900_000
    assert settings.rate_limit_auth_max == 5
    assert settings.rate_limit_api_max == 60
    assert settings.threat_block_min_severity == "HIGH"


def test_rate_limit_per_minute_sets_api_quota(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "120")
    assert Settings(_env_file=None).rate_limit_api_max == 120


@pytest.mark.parametrize("raw", ["medium", " low ", "none"])
def test_block_severity_is_normalized(monkeypatch, raw: str) -> None:
    monkeypatch.setenv("THREAT_BLOCK_MIN_SEVERITY", raw)
    assert Settings(_env_file=None).threat_block_min_severity == raw.strip().upper()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("THREAT_BLOCK_MIN_SEVERITY", "CRITICAL"),
        ("RATE_LIMIT_AUTH_WINDOW_MS", "0"),
        ("RATE_LIMIT_UPLOAD_MAX", "-1"),
        ("STORE_TIMEOUT_SECONDS", "0"),
        ("BRUTE_FORCE_MAX_ATTEMPTS", "0"),
    ],
)
def test_invalid_values_fail_at_startup(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_zero_quota_is_allowed(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_PAYMENT_MAX", "0")
    assert Settings(_env_file=None).rate_limit_payment_max == 0


def test_database_url_override(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./events.db")
    assert Settings(_env_file=None).database_url == "sqlite+aiosqlite:///./events.db"


def test_database_url_from_parts(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DB_HOST", "db.internal")
    url = Settings(_env_file=None).database_url
    assert url.startswith("postgresql+asyncpg://")
    assert "@db.internal:5432/" in url
