"""Application Configuration using Pydantic Settings."""

import logging
import os
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_env_file() -> str:
    """
    Determine which .env file to load based on APP_ENV.

    Returns:
        Path to the .env file to load
    """
    app_env = os.getenv("APP_ENV", "development")
    base_dir = Path(__file__).parent.parent.parent  # project root

    if app_env == "test":
        env_file = base_dir / ".env.test"
        if env_file.exists():
            return str(env_file)

    if app_env == "production":
        env_file = base_dir / ".env.production"
        if env_file.exists():
            return str(env_file)

    # Default to .env
    return str(base_dir / ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=get_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "ecs-cleaner"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # AWS (all optional - empty values fall back to the default credential chain)
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_SESSION_TOKEN: str = ""
    AWS_PROFILE: str = ""
    AWS_DEFAULT_REGION: str = ""  # empty = AWS_REGION env or the profile's region

    # botocore client behaviour
    AWS_CONNECT_TIMEOUT: int = 60  # seconds to establish connection
    AWS_READ_TIMEOUT: int = 60  # seconds to read response
    AWS_MAX_ATTEMPTS: int = 3  # botocore "standard" retry mode attempts

    # Deregistration throttling backoff
    BACKOFF_MIN_SECONDS: float = 0.1
    BACKOFF_MAX_SECONDS: float = 120.0  # 2 minutes
    BACKOFF_FACTOR: float = 2.0
    BACKOFF_JITTER: bool = True

    # Run defaults (overridable from the command line)
    DEFAULT_CUTOFF: int = 5
    DEFAULT_PARALLEL: int = 10

    # Error Tracking (Sentry)
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the log level and make sure logging knows it."""
        level = str(v).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL '{v}' is not a valid logging level")
        return level

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> "Settings":
        """Reject backoff settings that can never produce a usable delay."""
        if self.BACKOFF_MIN_SECONDS <= 0:
            raise ValueError("BACKOFF_MIN_SECONDS must be greater than 0")
        if self.BACKOFF_MAX_SECONDS < self.BACKOFF_MIN_SECONDS:
            raise ValueError(
                f"BACKOFF_MAX_SECONDS ({self.BACKOFF_MAX_SECONDS}) must be >= "
                f"BACKOFF_MIN_SECONDS ({self.BACKOFF_MIN_SECONDS})"
            )
        if self.BACKOFF_FACTOR < 1:
            raise ValueError("BACKOFF_FACTOR must be at least 1")
        return self


# Create global settings instance
settings = Settings()  # type: ignore
