"""
Durable identifiers for the current registration session.

session_id names the server-side progress record; it is not a credential.
auth_token is only present after a login that returned one.
"""

from typing import Optional

import structlog

from ira_registration.core.exceptions import StorageError
from ira_registration.infrastructure.storage import KeyValueStorage

logger = structlog.get_logger(__name__)

SESSION_ID_KEY = "session_id"
AUTH_TOKEN_KEY = "auth_token"
LAST_LOGIN_EMAIL_KEY = "last_login_email"


class SessionIdentityStore:
    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def _get(self, key: str) -> Optional[str]:
        try:
            return self.storage.get(key) or None
        except StorageError as e:
            logger.error("session_identity_read_failed", key=key, error=str(e))
            return None

    @property
    def session_id(self) -> Optional[str]:
        return self._get(SESSION_ID_KEY)

    @session_id.setter
    def session_id(self, value: Optional[str]) -> None:
        if value:
            self.storage.set(SESSION_ID_KEY, value)
        else:
            self.storage.remove(SESSION_ID_KEY)

    @property
    def auth_token(self) -> Optional[str]:
        return self._get(AUTH_TOKEN_KEY)

    @auth_token.setter
    def auth_token(self, value: Optional[str]) -> None:
        if value:
            self.storage.set(AUTH_TOKEN_KEY, value)
        else:
            self.storage.remove(AUTH_TOKEN_KEY)

    @property
    def last_login_email(self) -> Optional[str]:
        """Remembered for pre-filling the login form; survives logout."""
        return self._get(LAST_LOGIN_EMAIL_KEY)

    @last_login_email.setter
    def last_login_email(self, value: Optional[str]) -> None:
        if value:
            self.storage.set(LAST_LOGIN_EMAIL_KEY, value)
        else:
            self.storage.remove(LAST_LOGIN_EMAIL_KEY)

    def clear(self) -> None:
        """Destroy the session id and auth token together."""
        for key in (SESSION_ID_KEY, AUTH_TOKEN_KEY):
            try:
                self.storage.remove(key)
            except StorageError as e:
                logger.error("session_identity_clear_failed", key=key, error=str(e))
        logger.info("session_identity_cleared")
