"""Authentication package."""

from farmledger.auth.session import SessionManager, authenticate, can_delete_user

__all__ = ["SessionManager", "authenticate", "can_delete_user"]
