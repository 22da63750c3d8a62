"""Configuration package."""

from household_ledger.config.settings import (
    GoogleSheetsSettings,
    LedgerSettings,
    LogSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "LedgerSettings",
    "LogSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
