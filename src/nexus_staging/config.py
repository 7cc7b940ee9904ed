"""Configuration using pydantic-settings.

This module defines the StagingSettings class that reads configuration from
environment variables with the NEXUS_STAGING_ prefix. Settings are resolved
once, before any operation runs, into an immutable RetryPolicy and plain
constructor arguments; nothing is re-read between retries.
"""

from typing import Any, Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nexus_staging.nexus.client import DEFAULT_SERVER_URL
from nexus_staging.retry import (
    DEFAULT_DELAY_BETWEEN_ATTEMPTS,
    DEFAULT_MAX_ATTEMPTS,
    RetryPolicy,
)


class StagingSettings(BaseSettings):
    """nexus-staging configuration from environment variables.

    All environment variables are prefixed with NEXUS_STAGING_
    (e.g., NEXUS_STAGING_USERNAME).
    """

    model_config = SettingsConfigDict(
        env_prefix="NEXUS_STAGING_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Nexus Server
    # -------------------------------------------------------------------------
    server_url: str = DEFAULT_SERVER_URL

    username: Optional[str] = None

    password: Optional[SecretStr] = None

    # Request timeout in seconds for a single REST call
    request_timeout: float = 30.0

    # -------------------------------------------------------------------------
    # Staging Target
    # -------------------------------------------------------------------------
    # Name of the staging profile, usually the project's group id
    package_group: Optional[str] = None

    # Skips the profile lookup when set
    staging_profile_id: Optional[str] = None

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    # Seconds between polls
    delay_between_attempts: float = DEFAULT_DELAY_BETWEEN_ATTEMPTS

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = "INFO"

    # "console" or "json"
    log_format: str = "console"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        """Validate the URL scheme and normalise the trailing slash."""
        if not v or not v.strip():
            raise ValueError("server_url cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v.rstrip("/") + "/"

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v

    @field_validator("delay_between_attempts")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delay_between_attempts cannot be negative")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in {"console", "json"}:
            raise ValueError("log_format must be 'console' or 'json'")
        return fmt

    def retry_policy(self) -> RetryPolicy:
        """Resolve the polling settings into an immutable RetryPolicy."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            delay_between_attempts=self.delay_between_attempts,
        )

    def password_value(self) -> Optional[str]:
        return self.password.get_secret_value() if self.password is not None else None


def get_settings(**overrides: Any) -> StagingSettings:
    """Create StagingSettings from the environment.

    Keyword arguments whose value is None are ignored, so CLI options that
    were not given fall back to the environment.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    explicit = {key: value for key, value in overrides.items() if value is not None}
    return StagingSettings(**explicit)
