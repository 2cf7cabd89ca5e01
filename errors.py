from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from library import BookRecord


class LibraryError(Exception):
    """Base class for every recoverable error raised by the library core."""


class ValidationKind(str, Enum):
    MISSING_FIELD = "missing_field"
    TOO_SHORT = "too_short"
    DUPLICATE_BOOK = "duplicate_book"
    INVALID_CHOICE = "invalid_choice"


class ValidationError(LibraryError):
    """A candidate book was rejected; the collection was left untouched."""

    def __init__(self, kind: ValidationKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class NotFoundError(LibraryError):
    def __init__(self, book_id: str):
        super().__init__(f"No book with id {book_id!r}")
        self.book_id = book_id


class PersistenceError(LibraryError):
    """Writing the collection failed. In-memory state stays authoritative.

    ``record`` carries the book touched by the mutation that could not be
    saved (``None`` for bare persists and deletes of unknown ids).
    """

    def __init__(self, message: str, record: Optional["BookRecord"] = None):
        super().__init__(message)
        self.record = record


class StorageError(Exception):
    """Raised by slot storage backends."""


class StorageQuotaExceeded(StorageError):
    def __init__(self, size: int, quota: int):
        super().__init__(f"Payload of {size} bytes exceeds the {quota} byte quota")
        self.size = size
        self.quota = quota
