"""
Configuration Management for Khata

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage backend selection, ledger placeholders and report thresholds
are validated once at startup and shared by every component.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


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
    ledger_sheet_name: str = Field(
        default="Ledger",
        description="Name of the sheet holding the key-value ledger collections"
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


class StoreProfileSettings(BaseSettings):
    """Default store profile returned until the owner saves their own."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        extra="ignore"
    )

    name: str = Field(default="Mahalaxmi Supermarket")
    address: str = Field(default="Main Market, Pune")
    phone: str = Field(default="9876543210")
    owner_name: str = Field(default="Admin")


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
        description="Minimum level for the structured log"
    )

    # Storage
    storage_backend: Literal["memory", "json", "google_sheets"] = Field(
        default="json",
        description="Which key-value backend holds the ledger collections"
    )
    data_file_path: Path = Field(
        default=Path("data/khata.json"),
        description="JSON document used by the 'json' storage backend"
    )

    # Ledger behaviour
    opening_balance_label: str = Field(
        default="Opening Balance",
        min_length=1,
        description="Items text used for an opening balance entry without items"
    )
    recompute_on_import: bool = Field(
        default=True,
        description="Recompute customer totals from transactions when restoring a snapshot"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a transaction date can be before it is flagged"
    )

    # Reports
    overdue_after_days: int = Field(
        default=30,
        ge=1,
        description="Days without activity after which a customer with dues counts as overdue"
    )
    currency_symbol: str = Field(
        default="₹",
        description="Symbol used in reminder and transaction messages"
    )

    # Sync
    sync_enabled: bool = Field(
        default=False,
        description="Push snapshots to the remote store after every change"
    )
    sync_account: str = Field(
        default="",
        description="Account identifier the remote snapshot is stored under"
    )
    sync_debounce_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Quiet period batching rapid edits before each push"
    )

    @field_validator('log_level')
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        """Accept any casing for the log level name."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
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
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def store(self) -> StoreProfileSettings:
        return StoreProfileSettings()

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

    Returns a dict of {setting_name: is_valid} plus an
    ``<name>_error`` entry for every section that failed.
    """
    results = {}

    settings = get_settings()

    sections = {
        "app": lambda: settings.app,
        "store": lambda: settings.store,
        "google_sheets": lambda: settings.google_sheets,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
