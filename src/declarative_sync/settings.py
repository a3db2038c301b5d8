"""Centralized settings using pydantic-settings.

This module provides a single source of truth for the synchronizer's
configuration loaded from environment variables. Uses pydantic for automatic
validation, type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_FINALIZER_DOMAIN,
    DEFAULT_RECREATE_KINDS,
    DEFAULT_REQUEST_TIMEOUT,
)


class Settings(BaseSettings):
    """Synchronizer configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Object store behavior
    request_timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        validation_alias="SYNC_REQUEST_TIMEOUT_SECONDS",
        description="Deadline in seconds for each call to the Kubernetes API",
    )
    recreate_kinds: str = Field(
        default=",".join(DEFAULT_RECREATE_KINDS),
        validation_alias="SYNC_RECREATE_KINDS",
        description="Comma-separated kinds updated by delete and re-create",
    )

    # Finalizers
    finalizer_domain: str = Field(
        default=DEFAULT_FINALIZER_DOMAIN,
        validation_alias="SYNC_FINALIZER_DOMAIN",
        description="Domain suffix used when building finalizer names",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    @property
    def recreate_kind_set(self) -> frozenset[str]:
        """Parse recreate kinds from comma-separated string.

        Returns:
            Set of kind names, empty when the variable is blank
        """
        return frozenset(
            kind.strip() for kind in self.recreate_kinds.split(",") if kind.strip()
        )


# Global settings instance - initialized once at module import
settings = Settings()
