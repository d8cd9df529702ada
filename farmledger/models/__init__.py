"""
Data Models Package

This package contains all Pydantic models used in Farm Ledger.
All data flowing through the system must conform to these schemas.
"""

from farmledger.models.ledger import (
    ARCHIVE_PREFIX,
    DEFAULT_CATEGORIES,
    FALLBACK_ADMIN,
    ArchiveBatch,
    CloseLedgerResult,
    FailureKind,
    LedgerSummary,
    MonthlyPoint,
    Session,
    Transaction,
    TransactionType,
    User,
    UserRole,
    WriteResult,
    archive_sheet_name,
    contains_category,
    parse_archive_names,
    parse_categories,
    parse_date,
    parse_transactions,
    parse_users,
)
from farmledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ARCHIVE_PREFIX",
    "DEFAULT_CATEGORIES",
    "FALLBACK_ADMIN",
    "ArchiveBatch",
    "CloseLedgerResult",
    "FailureKind",
    "LedgerSummary",
    "MonthlyPoint",
    "Session",
    "Transaction",
    "TransactionType",
    "User",
    "UserRole",
    "WriteResult",
    "archive_sheet_name",
    "contains_category",
    # Wire parsing
    "parse_archive_names",
    "parse_categories",
    "parse_date",
    "parse_transactions",
    "parse_users",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
