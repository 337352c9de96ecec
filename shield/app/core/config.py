import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


SEVERITY_LEVELS = ("LOW", "MEDIUM", "HIGH")


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma/space separated values so a misconfigured
    # deployment does not crash at startup.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "*":
                return ["*"] if raw == "*" else []

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    # Deduplicate while preserving order.
    return list(dict.fromkeys(origins))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # PostgreSQL settings
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "shield"
    db_password: str = "shield"
    db_name: str = "shield"

    # Connection pool settings
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True
    db_command_timeout: float = 30.0

    # Explicit DATABASE_URL (takes priority over db_* settings)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    @property
    def database_url(self) -> str:
        """Build database connection URL.

        Priority:
        1. database_url_override (from DATABASE_URL env var or .env file)
        2. Built from db_* settings
        """
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # Counter store (Redis when enabled, in-memory otherwise)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    store_timeout_seconds: float = 0.5  # A slower round trip counts as a store failure

    # Rate limit route classes (window in milliseconds, max requests per window)
    rate_limit_auth_window_ms: int = 15 * 60 * 1000
    rate_limit_auth_max: int = 5
    rate_limit_api_window_ms: int = 60 * 1000
    rate_limit_api_max: int = Field(default=60, validation_alias="RATE_LIMIT_PER_MINUTE")
    rate_limit_upload_window_ms: int = 60 * 1000
    rate_limit_upload_max: int = 10
    rate_limit_payment_window_ms: int = 60 * 1000
    rate_limit_payment_max: int = 5
    rate_limit_messaging_window_ms: int = 60 * 1000
    rate_limit_messaging_max: int = 30
    rate_limit_admin_window_ms: int = 60 * 1000
    rate_limit_admin_max: int = 30

    # Threat detection policy
    threat_detection_enabled: bool = True
    threat_block_min_severity: str = "HIGH"  # LOW | MEDIUM | HIGH | NONE (log only)

    # Brute force tracking
    brute_force_max_attempts: int = 5
    brute_force_window_seconds: int = 15 * 60

    # Response hardening
    security_headers_enabled: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Use NoDecode so values like "example.com" don't crash JSON parsing at startup.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "rate_limit_auth_window_ms",
        "rate_limit_api_window_ms",
        "rate_limit_upload_window_ms",
        "rate_limit_payment_window_ms",
        "rate_limit_messaging_window_ms",
        "rate_limit_admin_window_ms",
    )
    @classmethod
    def validate_window_positive(cls, v: int) -> int:
        """Validate rate limit windows are positive."""
        if v <= 0:
            raise ValueError("Rate limit windows must be positive")
        return v

    @field_validator(
        "rate_limit_auth_max",
        "rate_limit_api_max",
        "rate_limit_upload_max",
        "rate_limit_payment_max",
        "rate_limit_messaging_max",
        "rate_limit_admin_max",
    )
    @classmethod
    def validate_max_not_negative(cls, v: int) -> int:
        """Validate rate limit maximums are not negative (0 means always deny)."""
        if v < 0:
            raise ValueError("Rate limit maximums must not be negative")
        return v

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_store_timeout(cls, v: float) -> float:
        """Validate store timeout is positive."""
        if v <= 0:
            raise ValueError("store_timeout_seconds must be positive")
        return v

    @field_validator("threat_block_min_severity")
    @classmethod
    def validate_block_severity(cls, v: str) -> str:
        """Normalize and validate the blocking threshold."""
        v = v.strip().upper()
        if v not in SEVERITY_LEVELS + ("NONE",):
            raise ValueError(
                "threat_block_min_severity must be one of LOW, MEDIUM, HIGH, NONE"
            )
        return v

    @field_validator("brute_force_max_attempts", "brute_force_window_seconds")
    @classmethod
    def validate_brute_force_positive(cls, v: int) -> int:
        """Validate brute force settings are positive."""
        if v < 1:
            raise ValueError("brute force settings must be at least 1")
        return v

    @field_validator("db_pool_size", "db_max_overflow")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        """Validate pool_size is positive."""
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


# Global settings instance
settings = Settings()
