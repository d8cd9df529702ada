"""
Tests for the Apps Script ledger client

The HTTP session is replaced with a recording fake; no network access.
"""

import pytest
import requests
from tenacity import wait_none

from conftest import FakeResponse, FakeSession, make_transaction, run
from farmledger.config import LedgerServiceSettings
from farmledger.models.ledger import (
    DEFAULT_CATEGORIES,
    FALLBACK_ADMIN,
    FailureKind,
    TransactionType,
    User,
)
from farmledger.services.ledger import (
    AppsScriptLedgerClient,
    LedgerConnectionError,
    MalformedResponseError,
)


URL = "https://example.test/exec"

ROWS = [
    {
        "id": 1715299200000,
        "date": "2024-05-10",
        "type": "THU",
        "category": "Bán Gà",
        "amount": 800000,
        "quantity": 4,
        "unitPrice": 200000,
        "note": "",
        "timestamp": 1715299200000,
    },
    {
        "id": "1714521600000",
        "date": "2024-05-01",
        "type": "CHI",
        "category": "Thức ăn",
        "amount": "500000",
        "timestamp": "1714521600000",
    },
]


def make_client(handler, **overrides):
    settings = LedgerServiceSettings(
        web_app_url=URL,
        max_retries=overrides.pop("max_retries", 3),
        **overrides,
    )
    session = FakeSession(handler)
    client = AppsScriptLedgerClient(settings, session=session, retry_wait=wait_none())
    return client, session


def respond(payload=None, raw_text=None, status_code=200):
    """Handler that always gives the same answer."""
    def handler(method, data):
        return FakeResponse(payload, status_code=status_code, raw_text=raw_text)
    return handler


def fail_then(error, payload, failures=1):
    """Handler that raises `failures` times, then answers."""
    state = {"left": failures}

    def handler(method, data):
        if state["left"]:
            state["left"] -= 1
            raise error
        return FakeResponse(payload)
    return handler


class TestReads:
    """Tests for GET requests."""

    def test_fetch_transactions(self):
        """Test the live ledger is requested and parsed."""
        client, session = make_client(respond(ROWS))

        transactions = run(client.fetch_transactions())

        assert session.calls == [("GET", {"type": "transactions"})]
        assert [t.id for t in transactions] == ["1715299200000", "1714521600000"]
        assert transactions[1].unit_price == 500000

    def test_fetch_archive_uses_sheet_name(self):
        """Test archives are read from their prefixed sheet."""
        client, session = make_client(respond([]))

        run(client.fetch_transactions(source="Lứa 1"))

        assert session.calls == [
            ("GET", {"type": "transactions", "sheetName": "Archive_Lứa 1"})
        ]

    def test_non_list_transactions_payload(self):
        """Test an error object yields an empty ledger."""
        client, _ = make_client(respond({"status": "error", "message": "No sheet"}))
        assert run(client.fetch_transactions()) == []

    def test_non_json_is_malformed(self):
        """Test an HTML answer raises MalformedResponseError."""
        client, _ = make_client(respond(raw_text="<html>Sign in</html>"))
        with pytest.raises(MalformedResponseError):
            run(client.fetch_transactions())

    def test_http_error_is_not_retried(self):
        """Test a server error fails immediately as a connection error."""
        client, session = make_client(respond(status_code=500))

        with pytest.raises(LedgerConnectionError):
            run(client.fetch_transactions())
        assert len(session.calls) == 1

    def test_read_retried_after_connection_error(self):
        """Test a dropped connection is retried."""
        client, session = make_client(fail_then(requests.ConnectionError("reset"), ROWS))

        transactions = run(client.fetch_transactions())

        assert len(transactions) == 2
        assert len(session.calls) == 2

    def test_read_retried_after_timeout(self):
        """Test a read timeout on a GET is retried."""
        client, session = make_client(fail_then(requests.ReadTimeout("slow"), ROWS))

        run(client.fetch_transactions())

        assert len(session.calls) == 2

    def test_read_gives_up_after_max_retries(self):
        """Test persistent failures surface as LedgerConnectionError."""
        client, session = make_client(
            fail_then(requests.ConnectionError("down"), ROWS, failures=10),
            max_retries=3,
        )

        with pytest.raises(LedgerConnectionError):
            run(client.fetch_transactions())
        assert len(session.calls) == 3

    def test_fetch_categories(self):
        """Test categories are parsed and deduplicated."""
        client, _ = make_client(respond(["Bán Gà", "bán gà", "Khác"]))
        assert run(client.fetch_categories()) == ["Bán Gà", "Khác"]

    def test_fetch_categories_falls_back(self):
        """Test an empty or unreachable backend gives the defaults."""
        client, _ = make_client(respond([]))
        assert run(client.fetch_categories()) == DEFAULT_CATEGORIES

        client, _ = make_client(fail_then(requests.ConnectionError("down"), [], failures=10))
        assert run(client.fetch_categories()) == DEFAULT_CATEGORIES

    def test_fetch_users(self):
        """Test users are parsed."""
        client, _ = make_client(respond([
            {"username": "admin", "password": 123, "role": "admin"},
            {"username": "binh", "password": "456", "role": "staff"},
        ]))

        users = run(client.fetch_users())

        assert [u.username for u in users] == ["admin", "binh"]
        assert users[0].password == "123"

    def test_fetch_users_empty_list_gives_fallback_admin(self):
        """Test an empty user sheet yields exactly the built-in admin."""
        client, _ = make_client(respond([]))
        assert run(client.fetch_users()) == [FALLBACK_ADMIN]

    def test_fetch_users_wrong_shape_gives_fallback_admin(self):
        """Test an outdated script answering with transactions."""
        client, _ = make_client(respond(ROWS))
        assert run(client.fetch_users()) == [FALLBACK_ADMIN]

    def test_fetch_users_unreachable_gives_fallback_admin(self):
        """Test connection failures never block login."""
        client, _ = make_client(fail_then(requests.ConnectionError("down"), [], failures=10))
        assert run(client.fetch_users()) == [FALLBACK_ADMIN]

    def test_fetch_archived_batches(self):
        """Test archive names are requested and cleaned."""
        client, session = make_client(respond(["Archive_Lứa 1", {"name": "Lứa 2"}]))

        assert run(client.fetch_archived_batches()) == ["Lứa 1", "Lứa 2"]
        assert session.calls == [("GET", {"type": "archives"})]


class TestWrites:
    """Tests for POST requests."""

    def test_add_transaction_body(self):
        """Test the create action carries the wire record."""
        client, session = make_client(respond({"status": "success"}))
        tx = make_transaction("1714521600000", "2024-05-01", TransactionType.EXPENSE, 500000)

        result = run(client.add_transaction(tx))

        assert result.ok
        [(method, body)] = session.calls
        assert method == "POST"
        assert body["action"] == "create"
        assert body["data"]["id"] == "1714521600000"
        assert body["data"]["type"] == "CHI"
        assert body["data"]["unitPrice"] == 500000

    def test_write_not_retried_on_read_timeout(self):
        """Test a slow backend is never sent the same write twice."""
        client, session = make_client(
            fail_then(requests.ReadTimeout("slow"), {"status": "success"})
        )
        tx = make_transaction("1", "2024-05-01", TransactionType.INCOME, 10)

        with pytest.raises(LedgerConnectionError):
            run(client.add_transaction(tx))
        assert len(session.calls) == 1

    def test_write_retried_on_connection_error(self):
        """Test a write that never connected is retried."""
        client, session = make_client(
            fail_then(requests.ConnectionError("refused"), {"status": "success"})
        )
        tx = make_transaction("1", "2024-05-01", TransactionType.INCOME, 10)

        assert run(client.add_transaction(tx)).ok
        assert len(session.calls) == 2

    def test_non_json_write_counts_as_success(self):
        """Test an unreadable write answer is treated as accepted."""
        client, _ = make_client(respond(raw_text="<html>ok</html>"))
        assert run(client.delete_transaction("1")).ok

    def test_add_category_body(self):
        """Test the category is trimmed and sent."""
        client, session = make_client(respond({"status": "success"}))

        run(client.add_category("  Vắc xin "))

        assert session.calls == [("POST", {"action": "create_category", "category": "Vắc xin"})]

    def test_blank_category_not_sent(self):
        """Test a blank category is rejected locally."""
        client, session = make_client(respond({"status": "success"}))

        result = run(client.add_category("  "))

        assert result.failure == FailureKind.LOGICAL
        assert session.calls == []

    def test_add_user_rejected(self):
        """Test a backend error is a logical rejection."""
        client, session = make_client(respond({"status": "error", "message": "User exists"}))

        result = run(client.add_user(User(username="binh", password="456")))

        assert result.failure == FailureKind.LOGICAL
        assert result.message == "User exists"
        assert session.calls[0][1] == {
            "action": "create_user",
            "user": {"username": "binh", "password": "456", "role": "staff"},
        }

    def test_delete_bodies(self):
        """Test delete actions carry their keys."""
        client, session = make_client(respond({"status": "success"}))

        run(client.delete_transaction(1714521600000))
        run(client.delete_user("binh"))

        assert [body for _, body in session.calls] == [
            {"action": "delete", "id": "1714521600000"},
            {"action": "delete_user", "username": "binh"},
        ]


class TestCloseLedger:
    """Tests for the close_ledger action."""

    def test_close_success(self):
        """Test the batch name is sent and success parsed."""
        client, session = make_client(
            respond({"status": "success", "message": "Archived 2 transactions"})
        )

        result = run(client.close_ledger(" Lứa 1 "))

        assert result.succeeded
        assert result.message == "Archived 2 transactions"
        assert session.calls == [("POST", {"action": "close_ledger", "batchName": "Lứa 1"})]

    def test_close_rejected(self):
        """Test a backend refusal is a logical failure."""
        client, _ = make_client(respond({"status": "error", "message": "Sheet exists"}))

        result = run(client.close_ledger("Lứa 1"))

        assert result.failure == FailureKind.LOGICAL
        assert result.message == "Sheet exists"

    def test_close_non_json_is_connectivity_failure(self):
        """Test an unreadable answer to a close is not treated as success."""
        client, _ = make_client(respond(raw_text="<html>"))

        result = run(client.close_ledger("Lứa 1"))

        assert not result.succeeded
        assert result.failure == FailureKind.CONNECTIVITY

    def test_blank_batch_name_not_sent(self):
        """Test a blank name is rejected without a request."""
        client, session = make_client(respond({"status": "success"}))

        result = run(client.close_ledger(""))

        assert result.failure == FailureKind.LOGICAL
        assert session.calls == []


class TestCloudDisabled:
    """Tests for running with cloud sync turned off."""

    def test_reads_raise_without_request(self):
        """Test the ledger read fails fast when sync is off."""
        client, session = make_client(respond(ROWS), use_cloud=False)

        with pytest.raises(LedgerConnectionError):
            run(client.fetch_transactions())
        assert session.calls == []

    def test_users_fall_back(self):
        """Test login still works with sync off."""
        client, _ = make_client(respond([]), use_cloud=False)
        assert run(client.fetch_users()) == [FALLBACK_ADMIN]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
