"""Configuration system for Migration Deployer.

Settings are read from the environment (and an optional ``.env`` file)
without a prefix, so the variable names match the ones deployments already
set (``DATABASE_URL``, ``S3_BUCKET``, ...). Command-line flags override them.
"""

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from migration_deployer.core.errors import ConfigurationError
from migration_deployer.core.utils import normalize_prefix, parse_duration


def _duration(value: Any) -> Any:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return parse_duration(value)
    return value


class Settings(BaseSettings):
    """Migration Deployer Configuration."""

    # Target database
    database_url: str | None = Field(
        default=None,
        description="Connection string of the database to migrate",
    )

    # Object storage
    s3_bucket: str | None = Field(
        default=None,
        description="Bucket holding the version directories",
    )
    s3_path_prefix: str = Field(
        default="",
        description="Prefix under which version directories live (normalized to end with '/')",
    )
    s3_endpoint_url: str | None = Field(
        default=None,
        description="Custom S3 endpoint (MinIO, LocalStack); enables path-style addressing",
    )
    aws_region: str | None = Field(
        default=None,
        description="AWS region for the S3 client",
    )

    # Consumer
    poll_interval: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds between checks in daemon mode (accepts '30s', '5m', ...)",
    )
    outcome_exclusive_write: bool = Field(
        default=False,
        description="Write outcome records create-if-absent instead of last-writer-wins",
    )
    dbmate_binary: str = Field(
        default="dbmate",
        description="Path or name of the dbmate executable",
    )
    runner_timeout: float | None = Field(
        default=None,
        gt=0.0,
        description="Maximum seconds for one runner invocation (unbounded when unset)",
    )
    metrics_addr: str | None = Field(
        default=None,
        description="Listen address for the Prometheus endpoint (host:port or :port)",
    )

    # Waiter
    wait_timeout: float = Field(
        default=600.0,
        gt=0.0,
        description="Overall deadline for wait-and-notify",
    )
    wait_poll_interval: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds between outcome checks in wait-and-notify",
    )
    outcome_fetch_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts to fetch an outcome once it exists",
    )
    outcome_fetch_backoff: float = Field(
        default=1.0,
        ge=0.0,
        description="Initial backoff between fetch attempts (doubles each attempt)",
    )

    # Notifications
    slack_incoming_webhook: str | None = Field(
        default=None,
        description="Incoming webhook URL for outcome notifications",
    )
    notification_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="HTTP timeout for webhook delivery",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator(
        "poll_interval",
        "wait_timeout",
        "wait_poll_interval",
        "outcome_fetch_backoff",
        "notification_timeout",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value: Any) -> Any:
        return _duration(value)

    @field_validator("runner_timeout", mode="before")
    @classmethod
    def _parse_optional_duration(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return _duration(value)

    @field_validator("s3_path_prefix", mode="before")
    @classmethod
    def _normalize_prefix(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return normalize_prefix(value.strip())
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def require(self, *names: str) -> None:
        """Ensure the named settings are set.

        Args:
            names: Field names (e.g. ``"database_url"``).

        Raises:
            ConfigurationError: Naming every missing environment variable.
        """
        missing = [name.upper() for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


# Settings singleton with dependency injection support
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the settings instance (lazy-loaded singleton).

    Returns:
        The Settings instance.

    Example:
        from migration_deployer.config import get_settings
        settings = get_settings()
        print(settings.s3_bucket)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.

    Example:
        from migration_deployer.config import override_settings, Settings
        override_settings(Settings(s3_bucket="test-bucket"))
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None
