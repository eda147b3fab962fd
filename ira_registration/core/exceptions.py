"""Custom exceptions for registration errors"""

from enum import Enum
from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# Local validation
class ValidationError(DomainException):
    """Raised when input validation fails"""

    pass


class StepValidationError(ValidationError):
    """Raised when a step payload fails its field rules"""

    def __init__(self, step: int, errors: Dict[str, str]):
        self.step = step
        self.errors = dict(errors)
        super().__init__(
            message=f"Step {step} has {len(errors)} invalid field(s)",
            details={"step": step, "fields": sorted(errors)},
        )


# Remote progress service
class ErrorKind(str, Enum):
    """Discriminant set by the transport so callers never parse message text"""

    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    TRANSIENT = "transient"


class ExternalServiceError(DomainException):
    """Raised when external service call fails"""

    pass


class RegistrationApiError(ExternalServiceError):
    """Raised when the registration progress service rejects or fails a call"""

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.kind = kind
        self.status_code = status_code
        super().__init__(message, details)


class SessionExpiredError(RegistrationApiError):
    """Raised when the server no longer recognises the session id"""

    def __init__(
        self,
        message: str = "Session expired. Please log in again.",
        status_code: Optional[int] = 401,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorKind.UNAUTHORIZED, status_code, details)


# Authentication
class AuthenticationError(DomainException):
    """Raised when authentication fails"""

    pass


class InvalidCredentialsError(AuthenticationError):
    """Raised when login is rejected with 401/403"""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Incorrect user ID or password. Please enter the correct user ID and password.",
            details=details,
        )


# Wizard misuse
class WizardStateError(DomainException):
    """Raised when an operation is not allowed in the current wizard state"""

    pass


class StorageError(DomainException):
    """Raised when the local key-value store cannot be read or written"""

    pass
