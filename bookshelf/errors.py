"""Error taxonomy shared by the service and the API client.

Every error carries the HTTP status the API layer answers with, so handlers
never need their own mapping table.
"""
from __future__ import annotations

from typing import Dict, Optional, Type


class BookshelfError(Exception):
    """Base class for all errors raised by bookshelf components."""

    status_code: int = 500
    default_message: str = "Something went wrong!"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(BookshelfError):
    """Missing or malformed caller input."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(BookshelfError):
    """Missing, invalid or expired token, or a credential mismatch."""

    status_code = 401
    default_message = "Authorization failed."

    MISSING = "missing"
    INVALID = "invalid"
    EXPIRED = "expired"
    CREDENTIALS = "credentials"

    def __init__(self, message: Optional[str] = None, *, reason: str = INVALID) -> None:
        super().__init__(message)
        self.reason = reason


class NotFoundError(BookshelfError):
    """Record absent or not owned by the caller."""

    status_code = 404
    default_message = "Not found"


class ConflictError(BookshelfError):
    """Uniqueness violation."""

    status_code = 409
    default_message = "Resource already exists"


class UpstreamError(BookshelfError):
    """The external catalog failed or timed out."""

    status_code = 502
    default_message = "Error searching books from Google Books API"


class InternalError(BookshelfError):
    """Unexpected failure; details stay in the server log."""

    status_code = 500


_BY_STATUS: Dict[int, Type[BookshelfError]] = {
    400: ValidationError,
    401: AuthError,
    404: NotFoundError,
    409: ConflictError,
    502: UpstreamError,
    503: UpstreamError,
    504: UpstreamError,
}


def error_for_status(status_code: int, message: Optional[str] = None) -> BookshelfError:
    """Rebuild the error kind matching an HTTP status (used by the API client)."""
    cls = _BY_STATUS.get(status_code, InternalError)
    if cls is AuthError:
        return AuthError(message)
    return cls(message, status_code=status_code)


__all__ = [
    "BookshelfError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
    "InternalError",
    "error_for_status",
]
