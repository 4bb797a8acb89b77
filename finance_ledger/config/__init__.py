"""Configuration package."""

from finance_ledger.config.settings import (
    GoogleSheetsSettings,
    JsonFileStoreSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "JsonFileStoreSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
