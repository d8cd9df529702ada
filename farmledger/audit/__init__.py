"""Audit logging package."""

from farmledger.audit.logger import AuditLogger, get_logger

__all__ = ["AuditLogger", "get_logger"]
