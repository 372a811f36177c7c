"""Error taxonomy shared by the webhook and query paths.

Each error carries the HTTP status it maps to and a short ``error`` label; the
exception message, when present, is the remediation hint shown to the caller.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict


class RelayError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error: str = "Internal error"

    def as_body(self) -> Dict[str, Any]:
        message = str(self) or None
        return {"error": self.error, "message": message}


class InvalidSignatureError(RelayError):
    """Raised when a webhook signature is missing or does not match."""

    status_code = HTTPStatus.UNAUTHORIZED
    error = "Invalid signature"


class MalformedPayloadError(RelayError):
    """Raised when a request body is missing required fields or has wrong types."""

    status_code = HTTPStatus.BAD_REQUEST
    error = "Malformed payload"


class StorageError(RelayError):
    """Raised when the backing persistence is unavailable or a write failed."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    error = "Storage unavailable"


class CorruptRecordError(RelayError):
    """Raised when a stored record cannot be decoded."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    error = "Corrupt record"


class UnauthorizedError(RelayError):
    """Raised when a caller presents the wrong shared secret."""

    status_code = HTTPStatus.UNAUTHORIZED
    error = "Unauthorized"


class TokenNotFoundError(RelayError):
    """Raised when no valid token is stored for a merchant."""

    status_code = HTTPStatus.NOT_FOUND
    error = "No valid token found"


class StoreDataUnavailableError(RelayError):
    """Raised when live store data cannot be served for a merchant."""

    status_code = HTTPStatus.NOT_FOUND
    error = "No data available"


__all__ = [
    "CorruptRecordError",
    "InvalidSignatureError",
    "MalformedPayloadError",
    "RelayError",
    "StorageError",
    "StoreDataUnavailableError",
    "TokenNotFoundError",
    "UnauthorizedError",
]
