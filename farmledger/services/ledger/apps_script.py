"""
Apps Script Ledger Client

DESIGN DECISION: The farm's data lives in a Google spreadsheet behind an
Apps Script web app. The web app exposes:
- GET  ?type=transactions|categories|users|archives
- POST {"action": "create" | "create_category" | "create_user" |
        "delete" | "delete_user" | "close_ledger", ...}

TRADEOFFS:
- No transactions on the backend (last write wins)
- No schema enforcement (we coerce every response)
- Apps Script answers POSTs with a redirect; requests follows it

Every call is bounded by a timeout and retried with exponential backoff for
transient network errors. Writes are only retried when the connection was
never established, so a slow backend cannot end up with duplicate rows.
"""

import asyncio
import json
from typing import Any, Optional

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from farmledger.audit.logger import get_logger
from farmledger.config.settings import LedgerServiceSettings
from farmledger.models.ledger import (
    DEFAULT_CATEGORIES,
    FALLBACK_ADMIN,
    CloseLedgerResult,
    Transaction,
    User,
    WriteResult,
    archive_sheet_name,
    parse_archive_names,
    parse_categories,
    parse_transactions,
    parse_users,
)
from farmledger.services.ledger.interface import (
    LedgerBackendInterface,
    LedgerConnectionError,
    MalformedResponseError,
)


# Apps Script rejects CORS-preflighted content types
POST_HEADERS = {"Content-Type": "text/plain;charset=utf-8"}

READ_RETRY_ERRORS = (requests.ConnectionError, requests.Timeout)
WRITE_RETRY_ERRORS = (requests.ConnectionError,)


class AppsScriptLedgerClient(LedgerBackendInterface):
    """
    HTTP client for the spreadsheet-backed ledger.

    Configuration is injected at construction; the client never reads
    global settings on its own.
    """

    def __init__(
        self,
        settings: LedgerServiceSettings,
        session: Optional[requests.Session] = None,
        retry_wait=None,
    ):
        self._settings = settings
        self._session = session or requests.Session()
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=8)
        self._logger = get_logger(__name__)

    @property
    def settings(self) -> LedgerServiceSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _retrying(self, errors: tuple) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self._settings.max_retries),
            wait=self._retry_wait,
            retry=retry_if_exception_type(errors),
            reraise=True,
        )

    def _ensure_cloud(self) -> None:
        if not self._settings.use_cloud:
            raise LedgerConnectionError("Cloud sync is disabled")

    def _get(self, params: dict) -> Any:
        """Issue a read and decode the JSON body."""
        self._ensure_cloud()
        try:
            for attempt in self._retrying(READ_RETRY_ERRORS):
                with attempt:
                    response = self._session.get(
                        self._settings.web_app_url,
                        params=params,
                        timeout=self._settings.timeout_seconds,
                    )
                    response.raise_for_status()
        except requests.RequestException as e:
            raise LedgerConnectionError(
                f"Failed to read {params.get('type')}: {e}"
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Backend returned non-JSON for {params.get('type')}"
            ) from e

    def _post(self, body: dict) -> Any:
        """
        Issue a write.

        Returns the decoded body, or None when the backend answered with
        something that is not JSON.
        """
        self._ensure_cloud()
        try:
            for attempt in self._retrying(WRITE_RETRY_ERRORS):
                with attempt:
                    response = self._session.post(
                        self._settings.web_app_url,
                        data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
                        headers=POST_HEADERS,
                        timeout=self._settings.timeout_seconds,
                    )
                    response.raise_for_status()
        except requests.RequestException as e:
            raise LedgerConnectionError(
                f"Failed to send {body.get('action')}: {e}"
            ) from e

        try:
            return response.json()
        except ValueError:
            return None

    async def _read(self, params: dict) -> Any:
        return await asyncio.to_thread(self._get, params)

    async def _write(self, body: dict) -> Any:
        return await asyncio.to_thread(self._post, body)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def fetch_transactions(self, source: Optional[str] = None) -> list[Transaction]:
        """Fetch the live ledger or an archive."""
        params = {"type": "transactions"}
        if source:
            params["sheetName"] = archive_sheet_name(source)

        payload = await self._read(params)
        if not isinstance(payload, list):
            self._logger.warning(
                "unexpected_transactions_payload",
                source=source,
                payload_type=type(payload).__name__,
            )
            return []

        transactions = parse_transactions(payload)
        skipped = len(payload) - len(transactions)
        if skipped:
            self._logger.info("skipped_malformed_transactions", count=skipped, source=source)
        return transactions

    async def fetch_categories(self) -> list[str]:
        """Fetch categories, falling back to the defaults."""
        try:
            categories = parse_categories(await self._read({"type": "categories"}))
        except LedgerConnectionError as e:
            self._logger.warning("categories_fallback", error=str(e))
            return list(DEFAULT_CATEGORIES)

        return categories or list(DEFAULT_CATEGORIES)

    async def fetch_users(self) -> list[User]:
        """
        Fetch users, falling back to the built-in admin.

        A response whose first element has no username usually means the
        backend script is outdated and answered with transactions instead.
        """
        try:
            payload = await self._read({"type": "users"})
        except LedgerConnectionError as e:
            self._logger.error("users_fallback", error=str(e))
            return [FALLBACK_ADMIN]

        if (
            isinstance(payload, list)
            and payload
            and isinstance(payload[0], dict)
            and "username" in payload[0]
        ):
            users = parse_users(payload)
            if users:
                return users

        self._logger.warning("invalid_user_payload")
        return [FALLBACK_ADMIN]

    async def fetch_archived_batches(self) -> list[str]:
        """Fetch archive names."""
        return parse_archive_names(await self._read({"type": "archives"}))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> WriteResult:
        payload = await self._write({"action": "create", "data": transaction.to_wire()})
        return WriteResult.from_response(payload)

    async def add_category(self, name: str) -> WriteResult:
        name = name.strip()
        if not name:
            return WriteResult.rejected("Empty category")
        payload = await self._write({"action": "create_category", "category": name})
        return WriteResult.from_response(payload)

    async def add_user(self, user: User) -> WriteResult:
        payload = await self._write({"action": "create_user", "user": user.to_wire()})
        return WriteResult.from_response(payload)

    async def delete_transaction(self, transaction_id: str) -> WriteResult:
        payload = await self._write({"action": "delete", "id": str(transaction_id)})
        return WriteResult.from_response(payload)

    async def delete_user(self, username: str) -> WriteResult:
        payload = await self._write({"action": "delete_user", "username": username})
        return WriteResult.from_response(payload)

    async def close_ledger(self, batch_name: str) -> CloseLedgerResult:
        """Ask the backend to archive the live ledger."""
        batch_name = batch_name.strip()
        if not batch_name:
            return CloseLedgerResult.rejected("Batch name is required")
        payload = await self._write({"action": "close_ledger", "batchName": batch_name})
        return CloseLedgerResult.from_response(payload)
