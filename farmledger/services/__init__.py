"""Services package."""

from farmledger.services.ledger import (
    AppsScriptLedgerClient,
    InMemoryLedgerBackend,
    LedgerBackendInterface,
    LedgerConnectionError,
    LedgerError,
    MalformedResponseError,
)
from farmledger.services.local import LocalFallbackStore

__all__ = [
    # Ledger backends
    "AppsScriptLedgerClient",
    "InMemoryLedgerBackend",
    "LedgerBackendInterface",
    "LedgerConnectionError",
    "LedgerError",
    "MalformedResponseError",
    # Local cache
    "LocalFallbackStore",
]
