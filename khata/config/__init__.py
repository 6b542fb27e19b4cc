"""Configuration package."""

from khata.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    StoreProfileSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StoreProfileSettings",
    "get_settings",
    "validate_all_settings",
]
