"""
Abstract Ledger Backend Interface

DESIGN DECISION: We define an abstract interface for the ledger backend.
This allows us to:
1. Talk to the Apps Script spreadsheet endpoint in production
2. Use an in-memory backend for testing and offline demos
3. Keep the flows decoupled from the wire format

The operations mirror the backend's request contract one to one.
"""

from abc import ABC, abstractmethod
from typing import Optional

from farmledger.models.ledger import (
    CloseLedgerResult,
    Transaction,
    User,
    WriteResult,
)


class LedgerBackendInterface(ABC):
    """
    Abstract interface for the remote ledger.

    Reads of categories and users never raise: they degrade to defaults.
    Reads of transactions and archives raise LedgerConnectionError so the
    caller can choose its own fallback. Writes return a WriteResult for
    logical outcomes and raise LedgerConnectionError when the backend is
    unreachable.
    """

    @abstractmethod
    async def fetch_transactions(self, source: Optional[str] = None) -> list[Transaction]:
        """
        Fetch the live ledger, or a named archive.

        Args:
            source: None for the live ledger, otherwise an archive name

        Raises:
            LedgerConnectionError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def fetch_categories(self) -> list[str]:
        """Category names; the default list if none are available."""
        pass

    @abstractmethod
    async def fetch_users(self) -> list[User]:
        """User records; the built-in admin if none can be trusted."""
        pass

    @abstractmethod
    async def fetch_archived_batches(self) -> list[str]:
        """
        Names of closed ledgers, without their data.

        Raises:
            LedgerConnectionError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> WriteResult:
        """Append one record to the live ledger."""
        pass

    @abstractmethod
    async def add_category(self, name: str) -> WriteResult:
        """Append a category unless it exists case-insensitively."""
        pass

    @abstractmethod
    async def add_user(self, user: User) -> WriteResult:
        """Create a user; rejected if the username exists."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> WriteResult:
        """Remove a record by id. Deleting an unknown id is not an error."""
        pass

    @abstractmethod
    async def delete_user(self, username: str) -> WriteResult:
        """Remove a user by name. Deleting an unknown user is not an error."""
        pass

    @abstractmethod
    async def close_ledger(self, batch_name: str) -> CloseLedgerResult:
        """
        Move every live transaction into a new archive and empty the ledger.

        Returns a logical failure for an empty ledger or a name that is
        already used.
        """
        pass


class LedgerError(Exception):
    """Base exception for ledger backend operations."""
    pass


class LedgerConnectionError(LedgerError):
    """Could not reach the ledger backend, or it timed out."""
    pass


class MalformedResponseError(LedgerConnectionError):
    """The backend answered with something that is not JSON."""
    pass
