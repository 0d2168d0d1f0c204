"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    AuthSettings,
    ClientSettings,
    GoogleSheetsSettings,
    ObjectStoreSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "ClientSettings",
    "GoogleSheetsSettings",
    "ObjectStoreSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
