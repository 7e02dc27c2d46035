"""Typed errors raised by the services and rendered by the API."""

from typing import Any, Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base class for errors surfaced to API callers.

    Attributes:
        status_code: HTTP status the error maps to.
        error_code: Stable machine-readable code.
        message: Human-readable message.
        details: Optional structured context (e.g. validation errors).
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error_code": self.error_code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class DuplicateIdentity(ServiceError):
    """Username or email is already registered."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "DUPLICATE_IDENTITY"
    default_message = "User already exists"


class InvalidCredentials(ServiceError):
    """Unknown username or wrong password. Deliberately non-specific."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class InvalidToken(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_TOKEN"
    default_message = "Invalid token"
    headers = {"WWW-Authenticate": "Bearer"}


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = "Not found"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_message = "Not allowed"


class ValidationFailed(ServiceError):
    """Input rejected before reaching the record store."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_FAILED"
    default_message = "Validation failed"

    def __init__(self, errors: List[Dict[str, Any]], message: Optional[str] = None) -> None:
        self.errors = errors
        super().__init__(message, details={"errors": errors})
