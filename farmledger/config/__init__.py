"""Configuration package."""

from farmledger.config.settings import (
    DEFAULT_WEB_APP_URL,
    AppSettings,
    GeminiSettings,
    LedgerServiceSettings,
    LocalStoreSettings,
    Settings,
    get_settings,
    resolve_ledger_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_WEB_APP_URL",
    "AppSettings",
    "GeminiSettings",
    "LedgerServiceSettings",
    "LocalStoreSettings",
    "Settings",
    "get_settings",
    "resolve_ledger_settings",
    "validate_all_settings",
]
