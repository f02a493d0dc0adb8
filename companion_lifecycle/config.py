# companion_lifecycle/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.

Retention windows are fixed in constants.py, not configured here.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        ...,
        description="PostgreSQL connection URL",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key for admin lifecycle endpoints",
    )

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level",
    )
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False = human-readable)",
    )

    # Deletion warnings
    NOTIFICATION_CHANNEL: str = Field(
        default="log",
        description="Deletion warning channel: twilio, log",
    )
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_PHONE_NUMBER: str | None = Field(
        default=None,
        description="Sender number in E.164 format",
    )
    TWILIO_API_BASE: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="Twilio REST API base URL",
    )
    SMS_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Per-message HTTP timeout for the SMS channel",
    )
    SMS_BRAND_NAME: str = Field(
        default="Grace Companion",
        description="Brand prefix used in deletion warning messages",
    )

    # Lifecycle pass
    LIFECYCLE_BATCH_SIZE: int | None = Field(
        default=None,
        ge=1,
        description="Max records per step per pass (unset = all eligible records)",
    )
    LIFECYCLE_LEASE_SECONDS: int = Field(
        default=3600,
        ge=60,
        description="Lease TTL guarding against overlapping lifecycle passes",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres URLs use postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    @field_validator("NOTIFICATION_CHANNEL")
    @classmethod
    def normalize_channel(cls, v: str) -> str:
        return v.lower().strip()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
