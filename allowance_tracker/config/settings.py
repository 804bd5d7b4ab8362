"""
Configuration Management for the Allowance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every setting has a default, so the ledger runs with no environment at all;
environment variables and a .env file only override.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from allowance_tracker.models.ledger import Weekday


class StorageSettings(BaseSettings):
    """Key-value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ALLOWANCE_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory holding the persisted snapshots"
    )
    state_key: str = Field(
        default="saveSpendShareData",
        min_length=1,
        description="Key of the current snapshot"
    )
    backup_key: str = Field(
        default="saveSpendShareData_backup",
        min_length=1,
        description="Key of the rollback snapshot"
    )
    audit_log_name: str = Field(
        default="audit.jsonl",
        description="File name of the JSON Lines audit log inside data_dir"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per key-value write before the save fails"
    )
    retry_wait_max_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Upper bound of the exponential wait between write attempts"
    )

    @field_validator('backup_key')
    @classmethod
    def validate_distinct_keys(cls, v: str, info: ValidationInfo) -> str:
        """The backup slot must never alias the live slot."""
        if v == info.data.get("state_key"):
            raise ValueError("backup_key must differ from state_key")
        return v


class ScheduleSettings(BaseSettings):
    """Allowance schedule and display defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ALLOWANCE_SCHEDULE_",
        extra="ignore"
    )

    default_allowance_day: Weekday = Field(
        default=Weekday.SUNDAY,
        description="Allowance day for a newly set up household"
    )
    currency_symbol: str = Field(
        default="$",
        max_length=3,
        description="Symbol used in transaction descriptions and exports"
    )
    max_child_age: int = Field(
        default=18,
        ge=1,
        le=25,
        description="Oldest age accepted when editing a profile"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for the structured log"
    )
    log_format: str = Field(
        default="json",
        pattern="^(json|console)$",
        description="Render log lines as JSON or as human-readable console text"
    )

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def schedule(self) -> ScheduleSettings:
        return ScheduleSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an
    ``<setting_name>_error`` entry for each failure.
    """
    results = {}
    settings = get_settings()

    for name in ("storage", "schedule", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
