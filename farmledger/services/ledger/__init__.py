"""
Ledger Backend Package

Provides the abstract ledger interface and its implementations: the Apps
Script spreadsheet client and an in-memory backend.
"""

from farmledger.services.ledger.interface import (
    LedgerBackendInterface,
    LedgerConnectionError,
    LedgerError,
    MalformedResponseError,
)
from farmledger.services.ledger.apps_script import AppsScriptLedgerClient
from farmledger.services.ledger.memory import InMemoryLedgerBackend

__all__ = [
    # Interface
    "LedgerBackendInterface",
    # Exceptions
    "LedgerConnectionError",
    "LedgerError",
    "MalformedResponseError",
    # Implementations
    "AppsScriptLedgerClient",
    "InMemoryLedgerBackend",
]
