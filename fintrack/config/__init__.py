"""Configuration package."""

from fintrack.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    ProjectionSettings,
    RecurrenceMode,
    Settings,
    StorageBackend,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "ProjectionSettings",
    "RecurrenceMode",
    "Settings",
    "StorageBackend",
    "get_settings",
    "validate_all_settings",
]
