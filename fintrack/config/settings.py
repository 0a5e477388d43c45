"""
Configuration Management for the Finance Tracker

Every knob is read from the environment (or a .env file) through
pydantic-settings. Groups are independent, so a deployment using the
in-memory backend never needs Google Sheets credentials.

DESIGN DECISION: The projection simplifications (flat recurrence,
recurring income subtracted) are settings, not hidden assumptions.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackend(str, Enum):
    """Available document store implementations."""
    MEMORY = "memory"
    GOOGLE_SHEETS = "google_sheets"


class RecurrenceMode(str, Enum):
    """
    How the projection counts recurring transactions per period.

    FLAT: every recurring transaction counts exactly once per period,
          whatever its recurring_rate says. This is the current contract.
    INTERVAL: a transaction recurring every N days counts period_days / N
              times per period.
    """
    FLAT = "flat"
    INTERVAL = "interval"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )
    
    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    
    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for budgets"
    )
    categories_sheet_name: str = Field(
        default="Categories",
        description="Name of the sheet for categories"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )
    
    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class ProjectionSettings(BaseSettings):
    """Balance projection knobs."""
    
    model_config = SettingsConfigDict(
        env_prefix="PROJECTION_",
        extra="ignore"
    )
    
    summary_horizon_periods: int = Field(
        default=3,
        ge=0,
        description="Number of periods the summary projects ahead"
    )
    period_days: int = Field(
        default=30,
        ge=1,
        description="Length of one projection period in days"
    )
    recurrence_mode: RecurrenceMode = Field(
        default=RecurrenceMode.FLAT,
        description="How recurring transactions are counted per period"
    )
    net_recurring_income: bool = Field(
        default=False,
        description="Add recurring income instead of subtracting it"
    )


class AppSettings(BaseSettings):
    """
    Process-wide settings: environment, log level, storage backend.
    
    Unprefixed variables, also read from .env.
    """
    
    model_config = SettingsConfigDict(
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
        description="Minimum level for local structured logs"
    )
    
    storage_backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Which document store to use"
    )
    
    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Entry point for every settings group.
    
    Each property builds its group on access, so a missing Sheets
    configuration only fails when Sheets is actually used.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()
    
    @property
    def projection(self) -> ProjectionSettings:
        return ProjectionSettings()
    
    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide Settings instance.
    
    Tests call get_settings.cache_clear() after changing the environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings group.
    
    Returns {group: loaded}, plus "<group>_error" with the message for
    each group that failed. Meant for startup diagnostics.
    """
    results = {}
    
    settings = get_settings()
    
    for name in ("google_sheets", "projection", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
