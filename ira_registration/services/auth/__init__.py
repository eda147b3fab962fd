from ira_registration.services.auth.session_identity import (
    AUTH_TOKEN_KEY,
    LAST_LOGIN_EMAIL_KEY,
    SESSION_ID_KEY,
    SessionIdentityStore,
)

__all__ = [
    "AUTH_TOKEN_KEY",
    "LAST_LOGIN_EMAIL_KEY",
    "SESSION_ID_KEY",
    "SessionIdentityStore",
]
