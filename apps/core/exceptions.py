"""
Error kinds raised by services and rendered by the API.

Services raise these; config.urls registers a single handler on the NinjaAPI
that turns any AppError into a JSON error response. Nothing here is retried.
"""
from typing import Dict, List, Optional


class AppError(Exception):
    """Base class for request-scoped, deterministic failures."""
    status_code = 400
    code = "ERROR"
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
        }


class AuthFailure:
    """
    Canonical string constants for authentication rejection kinds.
    All of them collapse to HTTP 401 but stay distinct for logs and tests.
    """
    MISSING_AUTH = "MissingAuth"
    MALFORMED_AUTH = "MalformedAuth"
    INVALID_TOKEN = "InvalidToken"
    UNKNOWN_SUBJECT = "UnknownSubject"
    DEACTIVATED = "Deactivated"
    STALE_CREDENTIAL = "StaleCredential"
    # Login only, not part of the bearer flow
    INVALID_CREDENTIALS = "InvalidCredentials"


AUTH_FAILURE_MESSAGES = {
    AuthFailure.MISSING_AUTH: "Authorization header is required",
    AuthFailure.MALFORMED_AUTH: "Authorization header must be 'Bearer <token>'",
    AuthFailure.INVALID_TOKEN: "Invalid or expired token",
    AuthFailure.UNKNOWN_SUBJECT: "User no longer exists",
    AuthFailure.DEACTIVATED: "User account is deactivated",
    AuthFailure.STALE_CREDENTIAL: "User recently changed password. Please log in again",
    AuthFailure.INVALID_CREDENTIALS: "Invalid email or password",
}


class AuthenticationFailed(AppError):
    status_code = 401

    def __init__(self, kind: str, message: Optional[str] = None):
        self.kind = kind
        self.code = kind
        super().__init__(message or AUTH_FAILURE_MESSAGES.get(kind, "Authentication failed"))


class MissingAuth(AuthenticationFailed):
    def __init__(self, message: Optional[str] = None):
        super().__init__(AuthFailure.MISSING_AUTH, message)


class MalformedAuth(AuthenticationFailed):
    def __init__(self, message: Optional[str] = None):
        super().__init__(AuthFailure.MALFORMED_AUTH, message)


class InvalidToken(AuthenticationFailed):
    def __init__(self, message: Optional[str] = None):
        super().__init__(AuthFailure.INVALID_TOKEN, message)


class Forbidden(AppError):
    status_code = 403
    code = "Forbidden"
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    code = "NotFound"
    default_message = "Resource not found"


class ValidationFailed(AppError):
    status_code = 400
    code = "ValidationFailed"
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, List[str]]] = None):
        self.errors = errors or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


class Conflict(ValidationFailed):
    """Uniqueness violation (duplicate username or email)."""
    code = "Conflict"
