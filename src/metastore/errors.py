"""Store error taxonomy.

Every backend-specific failure is translated into one of these before it
leaves the store layer.
"""

from __future__ import annotations


class StoreError(RuntimeError):
    """Base class for persistence layer errors."""

    code = "UNKNOWN"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class NotFound(StoreError):
    """Raised when no row matched or was affected."""

    code = "NOT_FOUND"


class AlreadyExists(StoreError):
    """Raised on a uniqueness violation during create."""

    code = "ALREADY_EXISTS"


class InvalidArgument(StoreError):
    """Raised for unparsable resource names, filters or page tokens."""

    code = "INVALID_ARGUMENT"


class Internal(StoreError):
    """Raised for backend or serialization failures."""

    code = "INTERNAL"


class EncodingError(StoreError):
    """Raised when a page token cannot be encrypted."""

    code = "ENCODING_ERROR"


class Cancelled(StoreError):
    """Raised when the caller cancelled the operation or its deadline passed."""

    code = "CANCELLED"
