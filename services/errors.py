"""
Error kinds raised by the service layer.

Services raise ServiceError tagged with an ErrorKind; the HTTP layer turns
the kind into a status code in exactly one place (api.errors).
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST_BODY = "INVALID_REQUEST_BODY"
    USER_EXISTS = "USER_EXISTS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    UNAUTHORIZED = "UNAUTHORIZED"
    REFRESH_TOKEN_REQUIRED = "REFRESH_TOKEN_REQUIRED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


DEFAULT_MESSAGES = {
    ErrorKind.VALIDATION_ERROR: "Email and password are required",
    ErrorKind.INVALID_REQUEST_BODY: (
        "Request body is missing or invalid. Please send JSON data with Content-Type: application/json"
    ),
    ErrorKind.USER_EXISTS: "User with this email already exists",
    # Same text for unknown email and wrong password
    ErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorKind.ACCOUNT_DEACTIVATED: "Account is deactivated",
    ErrorKind.UNAUTHORIZED: "Invalid or expired access token",
    ErrorKind.REFRESH_TOKEN_REQUIRED: "Refresh token is required",
    ErrorKind.INVALID_REFRESH_TOKEN: "Invalid refresh token",
    ErrorKind.REFRESH_TOKEN_EXPIRED: "Refresh token expired or invalid",
    ErrorKind.USER_NOT_FOUND: "User not found",
    ErrorKind.INTERNAL_ERROR: "Internal server error",
}


class ServiceError(Exception):
    """A failure the client is allowed to see, tagged with its kind."""

    def __init__(self, kind: ErrorKind, message: str | None = None):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        super().__init__(self.message)

    def __repr__(self):
        return f"ServiceError({self.kind.value}, {self.message!r})"
