"""
Error taxonomy for the task tracking API.

Services raise these; the HTTP layer maps each class to a status code in
one place (see tasktrack.main). Entities raise TaskRuleError, which services
re-classify as ValidationFailed before it can reach the transport.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """A single (field, message) validation failure."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class TaskTrackError(Exception):
    """Base exception for all expected service errors"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationFailed(TaskTrackError):
    """Bad input shape or range. Carries every failing field."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[FieldError], message: str = "Validation failed"):
        self.errors = list(errors)
        super().__init__(message)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailed":
        return cls([FieldError(field, message)], message=message)


class NotFound(TaskTrackError):
    status_code = 404
    code = "NOT_FOUND"


class DuplicateAccount(TaskTrackError):
    status_code = 409
    code = "DUPLICATE_ACCOUNT"

    def __init__(self, message: str = "Username or email already exists"):
        super().__init__(message)


class AuthenticationFailed(TaskTrackError):
    """Missing, forged, expired or revoked credentials."""

    status_code = 401
    code = "UNAUTHORIZED"


class InvalidCredentials(AuthenticationFailed):
    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class InvalidOrExpiredToken(AuthenticationFailed):
    code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid or expired refresh token"):
        super().__init__(message)


class AccessDenied(TaskTrackError):
    """Caller is known but not allowed to do this."""

    status_code = 403
    code = "FORBIDDEN"


class AccountDeactivated(AccessDenied):
    code = "ACCOUNT_DEACTIVATED"

    def __init__(self, message: str = "Account is deactivated"):
        super().__init__(message)


class SessionNotOwned(AccessDenied):
    code = "SESSION_NOT_OWNED"

    def __init__(self, message: str = "Session not found or does not belong to the user"):
        super().__init__(message)


class TaskRuleError(ValueError):
    """Raised by entity mutators when a domain rule is violated."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)
