"""
Audit Logger

DESIGN DECISION: Every change to farm data is logged, along with every
time the app had to fall back to offline data. This provides:
1. A trail of who recorded or deleted what
2. Debugging capability when the spreadsheet misbehaves
3. A visible record of writes that never reached the backend

The audit logger:
- Is async so flows can await it in sequence
- Never raises into the caller's flow
- Keeps the most recent events in memory for the UI
"""

from collections import deque
from typing import Optional

import structlog

from farmledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Module-level structured logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log and into a bounded in-memory
    history.
    """

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("farmledger.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be recorded.
        """
        try:
            self._history.append(event)
            log_dict = event.to_log_dict()

            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
            return True
        except Exception as e:
            # Audit logging must never break the main flow
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    async def log_transaction_added(
        self,
        transaction_id: str,
        category: str,
        amount: float,
        actor: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            category=category,
            amount=amount,
            actor=actor,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        actor: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(transaction_id, actor))

    async def log_category_added(self, name: str, actor: Optional[str] = None) -> None:
        await self.log(AuditEventBuilder.category_added(name, actor))

    async def log_ledger_closed(
        self,
        batch_name: str,
        transaction_count: int,
        actor: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_closed(
            batch_name=batch_name,
            transaction_count=transaction_count,
            actor=actor,
        ))

    async def log_ledger_close_rejected(
        self,
        batch_name: str,
        reason: str,
        failure: str,
        actor: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_close_rejected(
            batch_name=batch_name,
            reason=reason,
            failure=failure,
            actor=actor,
        ))

    async def log_user_added(
        self,
        username: str,
        role: str,
        actor: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.user_added(username, role, actor))

    async def log_user_deleted(self, username: str, actor: Optional[str] = None) -> None:
        await self.log(AuditEventBuilder.user_deleted(username, actor))

    async def log_login(self, username: str) -> None:
        await self.log(AuditEventBuilder.user_logged_in(username))

    async def log_logout(self, username: str) -> None:
        await self.log(AuditEventBuilder.user_logged_out(username))

    async def log_login_failed(self, username: str) -> None:
        await self.log(AuditEventBuilder.login_failed(username))

    async def log_data_loaded(
        self,
        transaction_count: int,
        category_count: int,
        user_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.data_loaded(
            transaction_count=transaction_count,
            category_count=category_count,
            user_count=user_count,
        ))

    async def log_offline_fallback(self, operation: str, error_message: str) -> None:
        """Log that a read was served from local data."""
        await self.log(AuditEventBuilder.offline_fallback(operation, error_message))

    async def log_remote_write_failed(
        self,
        operation: str,
        entity_id: Optional[str],
        error_message: str,
    ) -> None:
        """Log a write that only landed locally."""
        await self.log(AuditEventBuilder.remote_write_failed(
            operation=operation,
            entity_id=entity_id,
            error_message=error_message,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        ))
