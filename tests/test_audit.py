"""Tests for the audit logger."""

import pytest

from conftest import run
from farmledger.audit import AuditLogger
from farmledger.models.audit import AuditEventType, AuditSeverity


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_recent_events_newest_first(self):
        """Test the in-memory history order."""
        audit_logger = AuditLogger()
        run(audit_logger.log_login("admin"))
        run(audit_logger.log_category_added("Khác", actor="admin"))

        events = audit_logger.recent_events()
        assert [e.event_type for e in events] == [
            AuditEventType.CATEGORY_ADDED,
            AuditEventType.USER_LOGGED_IN,
        ]

    def test_history_is_bounded(self):
        """Test old events are dropped past the history size."""
        audit_logger = AuditLogger(history_size=2)
        for name in ("a", "b", "c"):
            run(audit_logger.log_login(name))

        assert [e.entity_id for e in audit_logger.recent_events()] == ["c", "b"]

    def test_limit(self):
        """Test recent_events honors the limit."""
        audit_logger = AuditLogger()
        for name in ("a", "b", "c"):
            run(audit_logger.log_login(name))

        assert len(audit_logger.recent_events(limit=1)) == 1

    def test_error_event(self):
        """Test system errors are recorded at error severity."""
        audit_logger = AuditLogger()
        run(audit_logger.log_error("backend", "boom", {"operation": "load_data"}))

        [event] = audit_logger.recent_events()
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "boom"

    def test_remote_write_failed_is_warning(self):
        """Test local-only writes are flagged."""
        audit_logger = AuditLogger()
        run(audit_logger.log_remote_write_failed("add_transaction", "1", "timeout"))

        [event] = audit_logger.recent_events()
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "1"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
