"""Configuration package."""

from allowance_tracker.config.settings import (
    AppSettings,
    ScheduleSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ScheduleSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
