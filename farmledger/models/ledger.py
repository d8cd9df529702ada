"""
Core Data Models for Farm Ledger

These models define the schemas for everything that crosses the wire to
the spreadsheet backend or lives in the local cache.

DESIGN DECISION: The backend is a spreadsheet with no schema enforcement.
Numbers arrive as strings, ids arrive as numbers, optional columns go
missing. The models coerce at the boundary (mode="before" validators) and
the parse_* helpers skip records that still fail validation, so a single
bad row never fails a whole fetch.
"""

import time
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)


ARCHIVE_PREFIX = "Archive_"

# Used when the backend has no categories yet or is unreachable
DEFAULT_CATEGORIES = [
    "Bán Gà",
    "Bán Trứng",
    "Thức ăn",
    "Thuốc men",
    "Gà giống",
    "Dụng cụ",
    "Điện nước",
    "Khác",
]


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of money flow.

    The values are what the spreadsheet stores ("thu" = income,
    "chi" = expense).
    """
    INCOME = "THU"
    EXPENSE = "CHI"

    @classmethod
    def coerce(cls, value: Any) -> "TransactionType":
        """Accept wire values or member names, case-insensitively."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper()
        for member in cls:
            if text in (member.value, member.name):
                return member
        raise ValueError(f"Unknown transaction type: {value!r}")


class UserRole(str, Enum):
    """Account roles. Only admins can manage users."""
    ADMIN = "admin"
    STAFF = "staff"


class FailureKind(str, Enum):
    """
    Why an operation did not succeed.

    LOGICAL failures are rejected requests (duplicate name, empty ledger).
    CONNECTIVITY failures mean the backend could not be reached or
    answered with something unreadable.
    """
    NONE = "none"
    LOGICAL = "logical"
    CONNECTIVITY = "connectivity"


# =============================================================================
# COERCION HELPERS
# =============================================================================

def _coerce_number(value: Any) -> Any:
    """Turn spreadsheet cell values into floats where possible."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return value
        try:
            return float(text)
        except ValueError:
            return value
    return value


def _coerce_id(value: Any) -> Any:
    """Sheets hands numeric ids back as floats; keep them integral."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _now_millis() -> int:
    return int(time.time() * 1000)


def parse_date(value: Any) -> Optional[date]:
    """
    Parse the date formats the backend is known to produce.

    Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in ("%d/%m/%Y", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


# =============================================================================
# CORE MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense line in a ledger.

    Records are immutable: they are created, deleted, or moved wholesale
    into an archive when the ledger is closed.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Client-generated id (epoch millis at creation)"
    )
    date: str = Field(
        ...,
        description="Calendar date, YYYY-MM-DD"
    )
    type: TransactionType
    category: str = ""
    amount: float = Field(
        ...,
        gt=0,
        description="Total amount (quantity x unit price)"
    )
    quantity: float = Field(default=1, ge=0)
    unit_price: float = Field(default=0, ge=0, alias="unitPrice")
    note: str = ""
    timestamp: int = Field(
        default=0,
        description="Creation time in epoch milliseconds"
    )

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator('type', mode='before')
    @classmethod
    def coerce_type(cls, v: Any) -> TransactionType:
        return TransactionType.coerce(v)

    @field_validator('amount', 'quantity', 'unit_price', mode='before')
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _coerce_number(v)

    @field_validator('timestamp', mode='before')
    @classmethod
    def coerce_timestamp(cls, v: Any) -> int:
        number = _coerce_number(v)
        if isinstance(number, (int, float)) and not isinstance(number, bool):
            return int(number)
        return 0

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> str:
        if isinstance(v, (date, datetime)):
            return (v.date() if isinstance(v, datetime) else v).isoformat()
        return "" if v is None else str(v)

    @field_validator('category', 'note', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @classmethod
    def create(
        cls,
        date: str,
        type: TransactionType,
        category: str,
        quantity: float,
        unit_price: float,
        note: str = "",
        now_millis: Optional[int] = None,
    ) -> "Transaction":
        """
        Build a new transaction from form input.

        The amount is always quantity x unit price and the date is stored
        as YYYY-MM-DD. Raises ValueError (pydantic ValidationError) when
        the category is blank, the date is unparseable or the amount is
        not positive.
        """
        if not str(category).strip():
            raise ValueError("Category is required")
        parsed = parse_date(date)
        if parsed is None:
            raise ValueError("Invalid date")
        stamp = now_millis if now_millis is not None else _now_millis()
        return cls(
            id=str(stamp),
            date=parsed.isoformat(),
            type=type,
            category=category,
            amount=float(quantity) * float(unit_price),
            quantity=quantity,
            unit_price=unit_price,
            note=note,
            timestamp=stamp,
        )

    @property
    def parsed_date(self) -> "Optional[date]":
        return parse_date(self.date)

    def to_wire(self) -> dict:
        """Serialize with the backend's column keys."""
        return self.model_dump(mode="json", by_alias=True)


class User(BaseModel):
    """
    An application account.

    Passwords are stored and compared in plaintext because that is what
    the spreadsheet backend holds.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    username: str = Field(..., min_length=1)
    password: str = ""
    role: UserRole = UserRole.STAFF

    @field_validator('username', 'password', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        # Sheets turns a password like 123 into a number
        return "" if v is None else str(_coerce_id(v))

    @field_validator('role', mode='before')
    @classmethod
    def coerce_role(cls, v: Any) -> UserRole:
        text = str(v or "").strip().lower()
        return UserRole(text) if text in {r.value for r in UserRole} else UserRole.STAFF

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_wire(self) -> dict:
        return self.model_dump(mode="json")


# Built-in account used whenever the user list cannot be trusted
FALLBACK_ADMIN = User(username="admin", password="123", role=UserRole.ADMIN)


class Session(BaseModel):
    """The currently authenticated user."""

    user: User
    logged_in_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ArchiveBatch(BaseModel):
    """
    A frozen snapshot of a ledger taken when it was closed.

    Read-only once created.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    transactions: tuple[Transaction, ...] = ()

    @property
    def sheet_name(self) -> str:
        return archive_sheet_name(self.name)


def archive_sheet_name(name: str) -> str:
    """Backend sheet name for an archive."""
    return f"{ARCHIVE_PREFIX}{name}"


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class WriteResult(BaseModel):
    """Outcome of an add/delete call against the ledger."""

    ok: bool
    message: str = ""
    failure: FailureKind = FailureKind.NONE

    @classmethod
    def success(cls, message: str = "") -> "WriteResult":
        return cls(ok=True, message=message)

    @classmethod
    def rejected(cls, message: str) -> "WriteResult":
        return cls(ok=False, message=message, failure=FailureKind.LOGICAL)

    @classmethod
    def unreachable(cls, message: str) -> "WriteResult":
        return cls(ok=False, message=message, failure=FailureKind.CONNECTIVITY)

    @classmethod
    def from_response(cls, payload: Any) -> "WriteResult":
        """
        Interpret a write response.

        Only an explicit {"status": "error"} is a rejection; anything else
        the backend returns counts as accepted.
        """
        if isinstance(payload, dict):
            message = str(payload.get("message") or "")
            if str(payload.get("status", "")).lower() == "error":
                return cls.rejected(message or "Request rejected by backend")
            return cls.success(message)
        return cls.success()


class CloseLedgerResult(BaseModel):
    """Outcome of closing the live ledger."""

    status: Literal["success", "error"]
    message: str = ""
    failure: FailureKind = FailureKind.NONE

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, message: str) -> "CloseLedgerResult":
        return cls(status="success", message=message)

    @classmethod
    def rejected(cls, message: str) -> "CloseLedgerResult":
        return cls(status="error", message=message, failure=FailureKind.LOGICAL)

    @classmethod
    def unreachable(cls, message: str) -> "CloseLedgerResult":
        return cls(status="error", message=message, failure=FailureKind.CONNECTIVITY)

    @classmethod
    def from_response(cls, payload: Any) -> "CloseLedgerResult":
        if not isinstance(payload, dict):
            return cls.unreachable("Unexpected response from backend")
        message = str(payload.get("message") or "")
        if str(payload.get("status", "")).lower() == "success":
            return cls.success(message or "Ledger closed")
        return cls.rejected(message or "Ledger close rejected by backend")


# =============================================================================
# REPORTING MODELS
# =============================================================================

class LedgerSummary(BaseModel):
    """Totals over a set of transactions."""

    income: float = 0.0
    expense: float = 0.0
    profit: float = 0.0


class MonthlyPoint(BaseModel):
    """Income and expense for one calendar month."""

    period: str = Field(..., description="M/YYYY, no leading zero")
    year: int
    month: int = Field(..., ge=1, le=12)
    income: float = 0.0
    expense: float = 0.0


# =============================================================================
# WIRE PARSING
# =============================================================================

def parse_transactions(payload: Any) -> list[Transaction]:
    """
    Parse a transactions response, skipping malformed rows.

    Missing quantity defaults to 1 and missing unit price to the amount,
    matching how older rows were written.
    """
    if not isinstance(payload, list):
        return []

    transactions = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        record = dict(item)
        if record.get("quantity") in (None, ""):
            record["quantity"] = 1
        if record.get("unitPrice") in (None, "") and record.get("unit_price") in (None, ""):
            record["unitPrice"] = record.get("amount")
        try:
            transactions.append(Transaction.model_validate(record))
        except ValidationError:
            continue  # Skip malformed rows
    return transactions


def parse_categories(payload: Any) -> list[str]:
    """Parse a categories response into unique, non-blank names."""
    if not isinstance(payload, list):
        return []

    categories: list[str] = []
    for item in payload:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            continue
        name = str(_coerce_id(item)).strip()
        if name and not contains_category(categories, name):
            categories.append(name)
    return categories


def parse_users(payload: Any) -> list[User]:
    """Parse a users response, skipping rows without a username."""
    if not isinstance(payload, list):
        return []

    users = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            users.append(User.model_validate(item))
        except ValidationError:
            continue
    return users


def parse_archive_names(payload: Any) -> list[str]:
    """
    Parse an archives response into batch names.

    Entries may be plain strings or objects; the "Archive_" sheet prefix is
    stripped if the backend left it on.
    """
    if not isinstance(payload, list):
        return []

    names = []
    for item in payload:
        if item is None:
            continue
        if isinstance(item, dict):
            raw = next(
                (item[k] for k in ("name", "batchName", "label", "id") if item.get(k)),
                "",
            )
        else:
            raw = item
        name = str(_coerce_id(raw)).strip()
        if name.startswith(ARCHIVE_PREFIX):
            name = name[len(ARCHIVE_PREFIX):]
        if name:
            names.append(name)
    return names


def contains_category(categories: Iterable[str], name: str) -> bool:
    """Case-insensitive membership test."""
    needle = name.strip().lower()
    return any(c.strip().lower() == needle for c in categories)
