"""
Configuration Management for the Ledger Core

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, one settings class per
concern with its own env prefix. Every field has a default, so a bare
environment runs the in-memory gateway with notifications enabled.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Persistence gateway selection."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Which reference gateway to build"
    )
    sqlite_path: str = Field(
        default="ledger.db",
        description="Database file for the sqlite backend (':memory:' allowed)"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times to try opening the database"
    )


class NotificationSettings(BaseSettings):
    """Change notification queue and retry behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_NOTIFY_",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Publish change notifications at all"
    )
    queue_size: int = Field(
        default=1000,
        ge=1,
        description="Events buffered before new ones are dropped"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Push attempts per event before giving up"
    )
    retry_wait_min: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum backoff between push attempts (seconds)"
    )
    retry_wait_max: float = Field(
        default=5.0,
        ge=0.0,
        description="Maximum backoff between push attempts (seconds)"
    )

    @model_validator(mode="after")
    def check_wait_bounds(self) -> "NotificationSettings":
        if self.retry_wait_max < self.retry_wait_min:
            raise ValueError("retry_wait_max must be >= retry_wait_min")
        return self


class LedgerSettings(BaseSettings):
    """
    Main ledger settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level for structlog's stdlib integration"
    )

    # Business rules
    invite_expiry_days: int = Field(
        default=7,
        ge=1,
        description="Days after which an unaccepted invite expires"
    )
    default_precision: int = Field(
        default=2,
        ge=0,
        le=18,
        description="Precision used when an org or account omits it"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def notifications(self) -> NotificationSettings:
        return NotificationSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings sections.

    Returns a dict of {section: is_valid}, plus "<section>_error" entries
    for the sections that failed. Useful for startup checks.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    for name in ("ledger", "storage", "notifications"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
