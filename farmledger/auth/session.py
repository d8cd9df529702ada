"""
Session and Authentication

Credentials are matched against the user list fetched from the backend.
Passwords are plaintext on the backend, so the comparison is a plain
string comparison.
"""

from typing import Optional

from farmledger.models.ledger import FALLBACK_ADMIN, Session, User
from farmledger.services.local import LocalFallbackStore


def authenticate(username: str, password: str, users: list[User]) -> Optional[User]:
    """
    Find the user matching the credentials.

    An empty user list means the backend could not be read; the built-in
    admin account is used so the owner can still log in and fix settings.
    """
    candidates = users or [FALLBACK_ADMIN]
    for user in candidates:
        if user.username == username and str(user.password) == str(password):
            return user
    return None


def can_delete_user(target: str, current: User) -> tuple[bool, str]:
    """
    Check whether `current` may delete the account `target`.

    Returns (allowed, reason).
    """
    if not current.is_admin:
        return False, "Only admins can manage users"
    if target == FALLBACK_ADMIN.username:
        return False, "The root admin account cannot be deleted"
    if target == current.username:
        return False, "You cannot delete your own account"
    return True, ""


class SessionManager:
    """Keeps the logged-in user across restarts via the local store."""

    def __init__(self, store: LocalFallbackStore):
        self._store = store
        self._session: Optional[Session] = store.get_session()

    @property
    def current(self) -> Optional[User]:
        return self._session.user if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def login(self, username: str, password: str, users: list[User]) -> Optional[User]:
        """Authenticate and persist the session. Returns None on bad credentials."""
        user = authenticate(username, password, users)
        if user is None:
            return None
        self._session = Session(user=user)
        self._store.save_session(self._session)
        return user

    def logout(self) -> Optional[User]:
        """End the session. Returns the user that was logged in."""
        user = self.current
        self._session = None
        self._store.clear_session()
        return user
