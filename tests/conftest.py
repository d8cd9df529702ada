"""Shared fixtures and test doubles."""

import asyncio
import json
from typing import Any, Callable, Optional

import pytest
import requests

from farmledger.models.ledger import Transaction, TransactionType
from farmledger.services.ledger import InMemoryLedgerBackend
from farmledger.services.local import LocalFallbackStore


def run(coro):
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


def make_transaction(
    id: str,
    date: str,
    type: TransactionType,
    amount: float,
    category: str = "Thức ăn",
    timestamp: Optional[int] = None,
) -> Transaction:
    return Transaction(
        id=id,
        date=date,
        type=type,
        category=category,
        amount=amount,
        quantity=1,
        unit_price=amount,
        timestamp=timestamp if timestamp is not None else int(id),
    )


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload: Any = None, status_code: int = 200, raw_text: Optional[str] = None):
        self._payload = payload
        self.status_code = status_code
        self._raw_text = raw_text

    def json(self):
        if self._raw_text is not None:
            return json.loads(self._raw_text)
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    """
    Records calls and answers through a handler.

    The handler receives (method, params_or_body) and returns a
    FakeResponse or raises a requests exception.
    """

    def __init__(self, handler: Callable[[str, dict], FakeResponse]):
        self._handler = handler
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", dict(params or {})))
        return self._handler("GET", dict(params or {}))

    def post(self, url, data=None, headers=None, timeout=None):
        body = json.loads(data.decode("utf-8") if isinstance(data, bytes) else data)
        self.calls.append(("POST", body))
        return self._handler("POST", body)


@pytest.fixture
def store(tmp_path) -> LocalFallbackStore:
    return LocalFallbackStore(tmp_path / "cache.json")


@pytest.fixture
def may_ledger() -> list[Transaction]:
    return [
        make_transaction("1714521600000", "2024-05-01", TransactionType.EXPENSE, 500000),
        make_transaction("1715299200000", "2024-05-10", TransactionType.INCOME, 800000, "Bán Gà"),
    ]


@pytest.fixture
def backend(may_ledger) -> InMemoryLedgerBackend:
    return InMemoryLedgerBackend(transactions=may_ledger)
