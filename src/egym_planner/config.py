import os

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load .env for local dev; real env vars / deployment secrets always win
load_dotenv(override=False)


def _bool(name: str, default: bool) -> bool:
    """
    Helper to parse boolean environment variables.
    Accepts: 1, true, yes, on (case-insensitive).
    """
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _norm_db_url(url: str | None) -> str | None:
    """
    Normalize database URL to use async drivers for SQLAlchemy.

    Ensures ``postgres`` URLs use ``asyncpg`` and plain ``sqlite`` URLs use
    ``aiosqlite``. URLs already specifying an async driver are returned as-is.
    """
    if not url:
        return None
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://") :]
    if url.startswith("sqlite://"):
        url = "sqlite+aiosqlite://" + url[len("sqlite://") :]
    return url


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Uses pydantic for validation and parsing.
    """

    DATABASE_URL: str = Field(
        "sqlite+aiosqlite:///./egym_planner.db", description="Database URL"
    )
    OPENAI_API_KEY: str | None = Field(None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1", description="OpenAI API base URL")
    OPENAI_MODEL: str = Field("gpt-4o-mini", description="Model used for plan generation")
    GENERATION_TIMEOUT_SECONDS: float = Field(
        90.0, description="How long a caller waits for a generated plan"
    )
    OPENAI_REQUEST_TIMEOUT_SECONDS: float = Field(
        300.0, description="Limit for the provider request, which outlives the caller's wait"
    )

    AUTH_SECRET: str | None = Field(None, description="HMAC secret for caller tokens")
    AUTH_TOKEN_TTL_SECONDS: int = Field(86400, description="Lifetime of issued caller tokens")

    LOG_LEVEL: str = Field("INFO", description="Root log level")
    ALERT_WEBHOOK_URL: str | None = Field(None, description="Webhook receiving error alerts")
    HOST: str = Field("0.0.0.0", description="HTTP bind host")
    PORT: int = Field(8080, description="HTTP bind port")

    # Feature flags
    FF_ADMIN_ALERTS: bool = Field(
        default_factory=lambda: _bool("FF_ADMIN_ALERTS", True),
        description="Admin alerts feature flag",
    )
    FF_RECOVERY_SCAN: bool = Field(
        default_factory=lambda: _bool("FF_RECOVERY_SCAN", True),
        description="Scan the plan collection when the active pointer was not updated",
    )

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL environment variable is required")
        return _norm_db_url(v)

    @field_validator("GENERATION_TIMEOUT_SECONDS", "OPENAI_REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def timeout_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v


SETTINGS = Config()  # pyright: ignore[reportCallIssue]
