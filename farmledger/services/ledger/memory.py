"""
In-Memory Ledger Backend

Implements the ledger contract with the same semantics as the spreadsheet
script: case-insensitive category dedupe, duplicate-user rejection,
idempotent deletes and archive-on-close. Used for tests and for running
the app without a deployed backend.
"""

from typing import Optional

from farmledger.models.ledger import (
    DEFAULT_CATEGORIES,
    FALLBACK_ADMIN,
    ArchiveBatch,
    CloseLedgerResult,
    Transaction,
    User,
    WriteResult,
    contains_category,
)
from farmledger.services.ledger.interface import (
    LedgerBackendInterface,
    LedgerConnectionError,
)


class InMemoryLedgerBackend(LedgerBackendInterface):
    """
    Ledger backend held in process memory.

    Set `online = False` to simulate an unreachable backend.
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        categories: Optional[list[str]] = None,
        users: Optional[list[User]] = None,
    ):
        self.transactions: list[Transaction] = list(transactions or [])
        self.categories: list[str] = list(
            DEFAULT_CATEGORIES if categories is None else categories
        )
        self.users: list[User] = list([FALLBACK_ADMIN] if users is None else users)
        self.archives: dict[str, ArchiveBatch] = {}
        self.online = True

    def _check_online(self) -> None:
        if not self.online:
            raise LedgerConnectionError("In-memory backend is offline")

    async def fetch_transactions(self, source: Optional[str] = None) -> list[Transaction]:
        self._check_online()
        if source:
            batch = self.archives.get(source)
            return list(batch.transactions) if batch else []
        return sorted(self.transactions, key=lambda t: t.timestamp, reverse=True)

    async def fetch_categories(self) -> list[str]:
        if not self.online or not self.categories:
            return list(DEFAULT_CATEGORIES)
        return list(self.categories)

    async def fetch_users(self) -> list[User]:
        if not self.online or not self.users:
            return [FALLBACK_ADMIN]
        return list(self.users)

    async def fetch_archived_batches(self) -> list[str]:
        self._check_online()
        return list(self.archives)

    async def add_transaction(self, transaction: Transaction) -> WriteResult:
        self._check_online()
        self.transactions.append(transaction)
        return WriteResult.success()

    async def add_category(self, name: str) -> WriteResult:
        self._check_online()
        name = name.strip()
        if not name:
            return WriteResult.rejected("Empty category")
        if contains_category(self.categories, name):
            return WriteResult.success("Category already exists")
        self.categories.append(name)
        return WriteResult.success("Category added")

    async def add_user(self, user: User) -> WriteResult:
        self._check_online()
        if any(u.username == user.username for u in self.users):
            return WriteResult.rejected("User exists")
        self.users.append(user)
        return WriteResult.success()

    async def delete_transaction(self, transaction_id: str) -> WriteResult:
        self._check_online()
        self.transactions = [t for t in self.transactions if t.id != str(transaction_id)]
        return WriteResult.success()

    async def delete_user(self, username: str) -> WriteResult:
        self._check_online()
        self.users = [u for u in self.users if u.username != username]
        return WriteResult.success()

    async def close_ledger(self, batch_name: str) -> CloseLedgerResult:
        self._check_online()
        batch_name = batch_name.strip()
        if not batch_name:
            return CloseLedgerResult.rejected("Batch name is required")
        if batch_name.lower() in {name.lower() for name in self.archives}:
            return CloseLedgerResult.rejected(f"Archive {batch_name} already exists")
        if not self.transactions:
            return CloseLedgerResult.rejected("No transactions to archive")

        self.archives[batch_name] = ArchiveBatch(
            name=batch_name,
            transactions=tuple(self.transactions),
        )
        count = len(self.transactions)
        self.transactions = []
        return CloseLedgerResult.success(
            f"Archived {count} transactions to {batch_name}"
        )
