"""
Main Orchestrator for Farm Ledger

This module ties together all the components and defines the flows for:
1. Ledger (load, add/delete transactions, add categories)
2. Ledger close (archive the live ledger into a named batch)
3. Users (login/logout, add/delete accounts)
4. History (browse archived batches)

DESIGN DECISION: Writes are optimistic. The in-memory state is updated
before the backend answers and is NOT rolled back when the backend is
unreachable or refuses the write; the write is cached locally and a
warning is returned.
Logical rejections (duplicates, protected accounts) are checked before
anything changes, so they never leave partial state behind.
"""

from enum import Enum
from typing import NamedTuple, Optional

from pydantic import ValidationError

from farmledger.agents import FarmAdvisor
from farmledger.audit import AuditLogger, get_logger
from farmledger.auth import SessionManager, can_delete_user
from farmledger.config import Settings, get_settings, resolve_ledger_settings
from farmledger.models.ledger import (
    ArchiveBatch,
    CloseLedgerResult,
    LedgerSummary,
    MonthlyPoint,
    Transaction,
    TransactionType,
    User,
    UserRole,
    WriteResult,
    contains_category,
)
from farmledger.reporting import monthly_series, summarize
from farmledger.services.ledger import (
    AppsScriptLedgerClient,
    LedgerBackendInterface,
    LedgerConnectionError,
)
from farmledger.services.local import LocalFallbackStore


OFFLINE_MESSAGE = "Could not reach the spreadsheet. Showing offline data."
SAVED_LOCALLY_MESSAGE = "Could not save to the spreadsheet; kept on this device only."
CLOSE_CONNECTIVITY_MESSAGE = "Connection error while closing the ledger."

logger = get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates the live ledger.

    Holds the currently loaded transactions and categories. Reporting
    helpers work on whatever is loaded, online or offline.
    """

    def __init__(
        self,
        backend: LedgerBackendInterface,
        store: LocalFallbackStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

        self.transactions: list[Transaction] = []
        self.categories: list[str] = []
        self.users: list[User] = []
        self.offline = False

    async def load_data(self) -> tuple[bool, str]:
        """
        Load transactions, categories and users.

        Returns:
            (online, message)

        On a connectivity failure the local cache is used instead.
        """
        try:
            transactions = await self._backend.fetch_transactions()
        except LedgerConnectionError as e:
            await self._audit_logger.log_offline_fallback("load_data", str(e))
            self.transactions = self._store.get_transactions()
            self.categories = self._store.get_categories()
            self.users = await self._backend.fetch_users()
            self.offline = True
            return False, OFFLINE_MESSAGE

        self.categories = await self._backend.fetch_categories()
        self.users = await self._backend.fetch_users()
        self.transactions = transactions
        self.offline = False

        # Refresh the offline copy
        self._store.replace_transactions(transactions)
        self._store.replace_categories(self.categories)

        await self._audit_logger.log_data_loaded(
            transaction_count=len(transactions),
            category_count=len(self.categories),
            user_count=len(self.users),
        )
        return True, ""

    def reset(self) -> None:
        """Drop the live ledger and its offline copy (after it has been archived)."""
        self.transactions = []
        self._store.replace_transactions([])

    async def add_transaction(
        self,
        date: str,
        type: TransactionType,
        category: str,
        quantity: float,
        unit_price: float,
        note: str = "",
        actor: Optional[str] = None,
    ) -> tuple[Optional[Transaction], WriteResult]:
        """
        Record a transaction.

        Returns:
            (transaction, result). transaction is None when the input was
            rejected.
        """
        try:
            tx = Transaction.create(
                date=date,
                type=type,
                category=category,
                quantity=quantity,
                unit_price=unit_price,
                note=note,
            )
        except (ValidationError, ValueError) as e:
            return None, WriteResult.rejected(_describe_validation_error(e))

        self.transactions = [tx, *self.transactions]

        try:
            result = await self._backend.add_transaction(tx)
        except LedgerConnectionError as e:
            self._store.save_transaction(tx)
            await self._audit_logger.log_remote_write_failed("add_transaction", tx.id, str(e))
            return tx, WriteResult.unreachable(SAVED_LOCALLY_MESSAGE)

        if not result.ok:
            self._store.save_transaction(tx)
            await self._audit_logger.log_remote_write_failed(
                "add_transaction", tx.id, result.message
            )
            return tx, result

        await self._audit_logger.log_transaction_added(
            transaction_id=tx.id,
            category=tx.category,
            amount=tx.amount,
            actor=actor,
        )
        return tx, result

    async def delete_transaction(
        self,
        transaction_id: str,
        actor: Optional[str] = None,
    ) -> WriteResult:
        """Delete a transaction. Unknown ids are a no-op."""
        self.transactions = [t for t in self.transactions if t.id != str(transaction_id)]

        try:
            result = await self._backend.delete_transaction(transaction_id)
        except LedgerConnectionError as e:
            self._store.delete_transaction(transaction_id)
            await self._audit_logger.log_remote_write_failed(
                "delete_transaction", str(transaction_id), str(e)
            )
            return WriteResult.unreachable(SAVED_LOCALLY_MESSAGE)

        if not result.ok:
            self._store.delete_transaction(transaction_id)
            await self._audit_logger.log_remote_write_failed(
                "delete_transaction", str(transaction_id), result.message
            )
            return result

        await self._audit_logger.log_transaction_deleted(str(transaction_id), actor)
        return result

    async def add_category(self, name: str, actor: Optional[str] = None) -> WriteResult:
        """
        Add a category.

        A name that already exists (ignoring case) changes nothing.
        """
        name = (name or "").strip()
        if not name:
            return WriteResult.rejected("Category name is required")
        if contains_category(self.categories, name):
            return WriteResult.success("Category already exists")

        self.categories = [*self.categories, name]
        self._store.save_category(name)

        try:
            result = await self._backend.add_category(name)
        except LedgerConnectionError as e:
            await self._audit_logger.log_remote_write_failed("add_category", name, str(e))
            return WriteResult.unreachable(SAVED_LOCALLY_MESSAGE)

        await self._audit_logger.log_category_added(name, actor)
        return result

    def summary(self) -> LedgerSummary:
        return summarize(self.transactions)

    def monthly(self) -> list[MonthlyPoint]:
        return monthly_series(self.transactions)


class LedgerState(str, Enum):
    """Lifecycle of the live ledger."""
    OPEN = "open"
    CLOSING = "closing"


class LedgerCloseFlow:
    """
    Orchestrates closing the ledger.

    Flow:
    1. Validate the batch name (non-empty, not an existing archive)
    2. Check the live ledger is not empty
    3. Ask the backend to archive and clear it
    4. Reload the (now empty) ledger

    Preconditions are checked before the state leaves OPEN, so a rejected
    close never changes anything.
    """

    def __init__(
        self,
        ledger_flow: LedgerFlow,
        backend: LedgerBackendInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger_flow = ledger_flow
        self._backend = backend
        self._audit_logger = audit_logger or AuditLogger()
        self._state = LedgerState.OPEN

    @property
    def state(self) -> LedgerState:
        return self._state

    async def close(self, batch_name: str, actor: Optional[str] = None) -> CloseLedgerResult:
        """Archive the live ledger under `batch_name`."""
        name = (batch_name or "").strip()

        result, live_count = await self._check_preconditions(name)
        if result is not None:
            await self._audit_logger.log_ledger_close_rejected(
                batch_name=name,
                reason=result.message,
                failure=result.failure.value,
                actor=actor,
            )
            return result

        self._state = LedgerState.CLOSING
        try:
            result = await self._backend.close_ledger(name)
        except LedgerConnectionError as e:
            logger.warning("ledger_close_unreachable", batch_name=name, error=str(e))
            result = CloseLedgerResult.unreachable(CLOSE_CONNECTIVITY_MESSAGE)
        finally:
            self._state = LedgerState.OPEN

        if not result.succeeded:
            await self._audit_logger.log_ledger_close_rejected(
                batch_name=name,
                reason=result.message,
                failure=result.failure.value,
                actor=actor,
            )
            return result

        self._ledger_flow.reset()
        await self._audit_logger.log_ledger_closed(name, live_count, actor)
        await self._ledger_flow.load_data()
        return result

    async def _check_preconditions(
        self,
        name: str,
    ) -> tuple[Optional[CloseLedgerResult], int]:
        """
        Validate a close request.

        Returns:
            (failure, live_count). failure is None if the close may proceed.
        """
        if self._state == LedgerState.CLOSING:
            return CloseLedgerResult.rejected("A ledger close is already in progress"), 0
        if not name:
            return CloseLedgerResult.rejected("Batch name is required"), 0

        try:
            existing = await self._backend.fetch_archived_batches()
            live = await self._backend.fetch_transactions()
        except LedgerConnectionError as e:
            logger.warning("ledger_close_precheck_failed", batch_name=name, error=str(e))
            return CloseLedgerResult.unreachable(CLOSE_CONNECTIVITY_MESSAGE), 0

        if name.lower() in {batch.lower() for batch in existing}:
            return CloseLedgerResult.rejected(f"An archive named {name} already exists"), len(live)
        if not live:
            return CloseLedgerResult.rejected("The ledger is empty; nothing to close"), 0
        return None, len(live)


class UserFlow:
    """
    Orchestrates accounts and the login session.

    Only admins may add or delete users. The root admin account and the
    logged-in account cannot be deleted.
    """

    def __init__(
        self,
        backend: LedgerBackendInterface,
        session_manager: SessionManager,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._sessions = session_manager
        self._audit_logger = audit_logger or AuditLogger()
        self.users: list[User] = []

    @property
    def current_user(self) -> Optional[User]:
        return self._sessions.current

    async def load_users(self) -> list[User]:
        self.users = await self._backend.fetch_users()
        return self.users

    async def login(self, username: str, password: str) -> Optional[User]:
        if not self.users:
            await self.load_users()
        user = self._sessions.login(username, password, self.users)
        if user is None:
            await self._audit_logger.log_login_failed(username)
        else:
            await self._audit_logger.log_login(user.username)
        return user

    async def logout(self) -> None:
        user = self._sessions.logout()
        if user is not None:
            await self._audit_logger.log_logout(user.username)

    async def add_user(
        self,
        username: str,
        password: str,
        role: UserRole = UserRole.STAFF,
    ) -> WriteResult:
        """Create an account. Duplicate usernames are rejected."""
        current = self.current_user
        if current is None:
            return WriteResult.rejected("Not logged in")
        if not current.is_admin:
            return WriteResult.rejected("Only admins can manage users")

        try:
            user = User(username=username, password=password, role=role)
        except ValidationError as e:
            return WriteResult.rejected(_describe_validation_error(e))
        if not user.password:
            return WriteResult.rejected("Password is required")
        if any(u.username == user.username for u in self.users):
            return WriteResult.rejected("Username already exists")

        self.users = [*self.users, user]
        actor = current.username

        try:
            result = await self._backend.add_user(user)
        except LedgerConnectionError as e:
            await self._audit_logger.log_remote_write_failed("add_user", user.username, str(e))
            return WriteResult.unreachable("Could not save the user to the spreadsheet.")

        if not result.ok:
            # The backend knew a user we did not
            self.users = [u for u in self.users if u.username != user.username]
            return result

        await self._audit_logger.log_user_added(user.username, user.role.value, actor)
        return result

    async def delete_user(self, username: str) -> WriteResult:
        current = self.current_user
        if current is None:
            return WriteResult.rejected("Not logged in")

        allowed, reason = can_delete_user(username, current)
        if not allowed:
            return WriteResult.rejected(reason)

        self.users = [u for u in self.users if u.username != username]

        try:
            result = await self._backend.delete_user(username)
        except LedgerConnectionError as e:
            await self._audit_logger.log_remote_write_failed("delete_user", username, str(e))
            return WriteResult.unreachable("Could not delete the user in the spreadsheet.")

        await self._audit_logger.log_user_deleted(username, current.username)
        return result


class HistoryFlow:
    """Read-only access to archived batches."""

    def __init__(
        self,
        backend: LedgerBackendInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._audit_logger = audit_logger or AuditLogger()

    async def list_batches(self) -> list[str]:
        """Archive names, or an empty list if the backend is unreachable."""
        try:
            return await self._backend.fetch_archived_batches()
        except LedgerConnectionError as e:
            await self._audit_logger.log_error(
                "archive_list_failed",
                str(e),
                {"operation": "list_batches"},
            )
            return []

    async def load_batch(self, name: str) -> tuple[ArchiveBatch, LedgerSummary]:
        """
        Load an archive and its totals.

        Raises:
            LedgerConnectionError: If the archive cannot be read
        """
        transactions = await self._backend.fetch_transactions(source=name)
        batch = ArchiveBatch(name=name, transactions=tuple(transactions))
        return batch, summarize(transactions)


class AppComponents(NamedTuple):
    ledger: LedgerFlow
    closer: LedgerCloseFlow
    users: UserFlow
    history: HistoryFlow
    advisor: Optional[FarmAdvisor]
    audit_logger: AuditLogger


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[LedgerBackendInterface] = None,
    store: Optional[LocalFallbackStore] = None,
    use_advisor: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to get_settings()
        backend: Ledger backend; defaults to the Apps Script client built
                 from the environment plus any connection config the user
                 saved locally
        store: Local fallback store; defaults to the configured path
        use_advisor: Whether to build the Gemini advisor
    """
    settings = settings or get_settings()
    store = store or LocalFallbackStore(settings.local_store.path)

    if backend is None:
        ledger_settings = resolve_ledger_settings(store.get_config())
        backend = AppsScriptLedgerClient(ledger_settings)

    audit_logger = AuditLogger()
    ledger_flow = LedgerFlow(backend, store, audit_logger)
    closer = LedgerCloseFlow(ledger_flow, backend, audit_logger)
    user_flow = UserFlow(backend, SessionManager(store), audit_logger)
    history_flow = HistoryFlow(backend, audit_logger)

    advisor = None
    if use_advisor:
        try:
            advisor = FarmAdvisor(settings.gemini)
        except Exception as e:
            # Advisor not configured - continue without it
            logger.warning("advisor_not_configured", error=str(e))

    return AppComponents(
        ledger=ledger_flow,
        closer=closer,
        users=user_flow,
        history=history_flow,
        advisor=advisor,
        audit_logger=audit_logger,
    )


def _describe_validation_error(error: Exception) -> str:
    """First human-readable message from a validation error."""
    if isinstance(error, ValidationError):
        errors = error.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            message = first.get("msg", "Invalid value")
            return f"{field}: {message}" if field else message
    return str(error)
