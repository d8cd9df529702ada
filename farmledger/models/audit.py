"""
Audit Models for Farm Ledger

Every change to the ledger, the category list or the user list is logged.
This gives the farm owner a trail of who recorded what, and shows when the
app fell back to offline data.

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"
    CATEGORY_ADDED = "category_added"
    LEDGER_CLOSED = "ledger_closed"
    LEDGER_CLOSE_REJECTED = "ledger_close_rejected"

    # Accounts
    USER_ADDED = "user_added"
    USER_DELETED = "user_deleted"
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"
    LOGIN_FAILED = "login_failed"

    # Sync
    DATA_LOADED = "data_loaded"
    OFFLINE_FALLBACK = "offline_fallback"
    REMOTE_WRITE_FAILED = "remote_write_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What the event is about: "transaction", "user", "ledger", ...
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    actor: Optional[str] = Field(
        default=None,
        description="Username that triggered the event, if any"
    )
    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor": self.actor,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx, actor="admin")
        event = AuditEventBuilder.ledger_closed("Batch A", count=12)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        category: str,
        amount: float,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            actor=actor,
            description=f"Transaction recorded: {category} - {amount:,.0f}",
            details={"category": category, "amount": amount},
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            actor=actor,
            description=f"Transaction deleted: {transaction_id}",
        )

    @staticmethod
    def category_added(name: str, actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=name,
            actor=actor,
            description=f"Category added: {name}",
        )

    @staticmethod
    def ledger_closed(
        batch_name: str,
        transaction_count: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLOSED,
            entity_type="ledger",
            entity_id=batch_name,
            actor=actor,
            description=f"Ledger closed into batch {batch_name}",
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def ledger_close_rejected(
        batch_name: str,
        reason: str,
        failure: str,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLOSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            entity_id=batch_name or None,
            actor=actor,
            description="Ledger close did not complete",
            details={"failure": failure},
            error_message=reason,
        )

    @staticmethod
    def user_added(username: str, role: str, actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_ADDED,
            entity_type="user",
            entity_id=username,
            actor=actor,
            description=f"User created: {username} ({role})",
            details={"role": role},
        )

    @staticmethod
    def user_deleted(username: str, actor: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_DELETED,
            entity_type="user",
            entity_id=username,
            actor=actor,
            description=f"User deleted: {username}",
        )

    @staticmethod
    def user_logged_in(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=username,
            actor=username,
            description=f"User logged in: {username}",
        )

    @staticmethod
    def user_logged_out(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_OUT,
            entity_type="user",
            entity_id=username,
            actor=username,
            description=f"User logged out: {username}",
        )

    @staticmethod
    def login_failed(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=username or None,
            description="Login failed: wrong username or password",
        )

    @staticmethod
    def data_loaded(
        transaction_count: int,
        category_count: int,
        user_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            description=f"Loaded {transaction_count} transactions from backend",
            details={
                "transactions": transaction_count,
                "categories": category_count,
                "users": user_count,
            },
        )

    @staticmethod
    def offline_fallback(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OFFLINE_FALLBACK,
            severity=AuditSeverity.WARNING,
            description=f"Using offline data for {operation}",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def remote_write_failed(
        operation: str,
        entity_id: Optional[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            description=f"Remote write failed: {operation}",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
