"""
Local Fallback Store

A small JSON-file key-value store that keeps:
- a cached copy of the live transactions
- the category list
- the logged-in session
- the user's connection config (web app URL, cloud toggle)

It is only read when the remote ledger is unreachable (or, for the session
and config, at startup). A corrupt cache file is treated as empty.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional, Union

from farmledger.audit.logger import get_logger
from farmledger.models.ledger import (
    DEFAULT_CATEGORIES,
    Session,
    Transaction,
    contains_category,
    parse_categories,
    parse_transactions,
)


TRANSACTIONS_KEY = "transactions"
CATEGORIES_KEY = "categories"
SESSION_KEY = "session"
CONFIG_KEY = "config"


class LocalFallbackStore:
    """JSON-file backed cache."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._logger = get_logger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    # -------------------------------------------------------------------------
    # Raw key-value access
    # -------------------------------------------------------------------------

    def _load(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._logger.warning("local_store_unreadable", path=str(self._path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def get_transactions(self) -> list[Transaction]:
        return parse_transactions(self.get(TRANSACTIONS_KEY, []))

    def replace_transactions(self, transactions: list[Transaction]) -> None:
        """Overwrite the cache with a fresh copy of the ledger."""
        self.set(TRANSACTIONS_KEY, [t.to_wire() for t in transactions])

    def save_transaction(self, transaction: Transaction) -> list[Transaction]:
        """Prepend a transaction to the cache, replacing any with the same id."""
        current = [t for t in self.get_transactions() if t.id != transaction.id]
        updated = [transaction, *current]
        self.replace_transactions(updated)
        return updated

    def delete_transaction(self, transaction_id: str) -> list[Transaction]:
        updated = [t for t in self.get_transactions() if t.id != str(transaction_id)]
        self.replace_transactions(updated)
        return updated

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def get_categories(self) -> list[str]:
        categories = parse_categories(self.get(CATEGORIES_KEY, []))
        return categories or list(DEFAULT_CATEGORIES)

    def replace_categories(self, categories: list[str]) -> None:
        self.set(CATEGORIES_KEY, list(categories))

    def save_category(self, name: str) -> list[str]:
        current = self.get_categories()
        name = name.strip()
        if not name or contains_category(current, name):
            return current
        updated = [*current, name]
        self.replace_categories(updated)
        return updated

    # -------------------------------------------------------------------------
    # Session and config
    # -------------------------------------------------------------------------

    def get_session(self) -> Optional[Session]:
        raw = self.get(SESSION_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return Session.model_validate(raw)
        except ValueError:
            self._logger.warning("local_session_invalid")
            return None

    def save_session(self, session: Session) -> None:
        self.set(SESSION_KEY, session.model_dump(mode="json"))

    def clear_session(self) -> None:
        self.delete(SESSION_KEY)

    def get_config(self) -> dict:
        config = self.get(CONFIG_KEY, {})
        return config if isinstance(config, dict) else {}

    def save_config(self, web_app_url: str, use_cloud: bool) -> None:
        self.set(CONFIG_KEY, {"web_app_url": web_app_url, "use_cloud": use_cloud})
