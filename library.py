from __future__ import annotations

import json
import logging
import secrets
import string
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol

from config import Config, get_config
from errors import NotFoundError, PersistenceError, StorageError, ValidationError, ValidationKind
from storage import SqliteSlotStorage

logger = logging.getLogger(__name__)

CATEGORIES = [
    "Fiction",
    "Non-Fiction",
    "Science",
    "Biography",
    "History",
    "Self-Help",
    "Business",
    "Technology",
    "Romance",
    "Mystery",
    "Fantasy",
    "Educational",
    "Other",
]

STATUSES = ["to-read", "reading", "finished"]
FILTERS = ["all"] + STATUSES

DEFAULT_CATEGORY = "Other"
DEFAULT_STATUS = "to-read"
MIN_TEXT_LENGTH = 2

STATUS_DISPLAY_NAMES = {
    "to-read": "To Read",
    "reading": "Currently Reading",
    "finished": "Finished",
}

STATUS_ICONS = {
    "to-read": "📝",
    "reading": "📖",
    "finished": "✅",
}

CATEGORY_ICONS = {
    "Fiction": "📖",
    "Non-Fiction": "📚",
    "Science": "🔬",
    "Biography": "👤",
    "History": "🏛️",
    "Self-Help": "💡",
    "Business": "💼",
    "Technology": "💻",
    "Romance": "💝",
    "Mystery": "🔍",
    "Fantasy": "🧙‍♂️",
    "Educational": "🎓",
    "Other": "📋",
}

RECORD_FIELDS = ["id", "title", "author", "category", "status", "notes", "dateAdded", "dateModified"]

_ID_ALPHABET = string.digits + string.ascii_lowercase


@dataclass
class BookRecord:
    id: str
    title: str
    author: str
    category: str
    status: str
    notes: str
    date_added: datetime
    date_modified: datetime

    def matches(self, title: str, author: str) -> bool:
        """Case-insensitive comparison of the (title, author) pair."""
        return self.title.lower() == title.lower() and self.author.lower() == author.lower()


# --------------------------------------------------------------------------- #
# Timestamps and identifiers
# --------------------------------------------------------------------------- #
def utc_now() -> datetime:
    """Current UTC time truncated to the millisecond precision we persist."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits: List[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ID_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_id(now: Optional[datetime] = None) -> str:
    """Millisecond timestamp in base 36 followed by nine random base-36 characters."""
    moment = now or datetime.now(timezone.utc)
    millis = int(moment.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return _to_base36(millis) + suffix


# --------------------------------------------------------------------------- #
# Record codec
# --------------------------------------------------------------------------- #
def record_to_dict(record: BookRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "author": record.author,
        "category": record.category,
        "status": record.status,
        "notes": record.notes,
        "dateAdded": format_timestamp(record.date_added),
        "dateModified": format_timestamp(record.date_modified),
    }


def record_from_dict(data: Mapping[str, Any]) -> BookRecord:
    """Build a record from its serialized form. Raises ValueError when invalid."""
    if not isinstance(data, Mapping):
        raise ValueError("Book entry must be an object")
    missing = [name for name in RECORD_FIELDS if name not in data]
    if missing:
        raise ValueError(f"Book entry is missing fields: {', '.join(missing)}")
    for name in ("id", "title", "author", "category", "status", "notes"):
        if not isinstance(data[name], str):
            raise ValueError(f"Field {name!r} must be a string")
    if not data["id"]:
        raise ValueError("Book id must not be empty")
    if data["category"] not in CATEGORIES:
        raise ValueError(f"Unknown category {data['category']!r}")
    if data["status"] not in STATUSES:
        raise ValueError(f"Unknown status {data['status']!r}")
    if len(data["title"].strip()) < MIN_TEXT_LENGTH or len(data["author"].strip()) < MIN_TEXT_LENGTH:
        raise ValueError(f"Book {data['id']!r} has a title or author that is too short")

    date_added = parse_timestamp(data["dateAdded"])
    date_modified = parse_timestamp(data["dateModified"])
    if date_modified < date_added:
        raise ValueError(f"Book {data['id']!r} was modified before it was added")

    return BookRecord(
        id=data["id"],
        title=data["title"],
        author=data["author"],
        category=data["category"],
        status=data["status"],
        notes=data["notes"],
        date_added=date_added,
        date_modified=date_modified,
    )


def dump_records(records: List[BookRecord]) -> str:
    return json.dumps([record_to_dict(record) for record in records], ensure_ascii=False)


def load_records(payload: str) -> List[BookRecord]:
    """Decode a serialized collection.

    Raises ValueError when the payload is not a JSON list. Individual entries
    that are invalid or that repeat an earlier id are skipped with a warning.
    """
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("Stored collection must be a list")
    records: List[BookRecord] = []
    seen: set = set()
    for position, entry in enumerate(data):
        try:
            record = record_from_dict(entry)
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping stored book at position %d: %s", position, exc)
            continue
        if record.id in seen:
            logger.warning("Skipping stored book with duplicate id %r", record.id)
            continue
        seen.add(record.id)
        records.append(record)
    return records


# --------------------------------------------------------------------------- #
# Record store
# --------------------------------------------------------------------------- #
class SlotLike(Protocol):
    def read(self) -> Optional[str]: ...

    def write(self, value: str) -> None: ...


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _validate_text(title: str, author: str) -> None:
    if not title or not author:
        raise ValidationError(
            ValidationKind.MISSING_FIELD,
            "Please fill in both title and author fields!",
        )
    if len(title) < MIN_TEXT_LENGTH or len(author) < MIN_TEXT_LENGTH:
        raise ValidationError(
            ValidationKind.TOO_SHORT,
            f"Title and author must be at least {MIN_TEXT_LENGTH} characters long!",
        )


class BookStore:
    """Owns the in-memory book collection and writes it back to a storage slot."""

    def __init__(
        self,
        slot: SlotLike,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[datetime], str] = generate_id,
        autoload: bool = True,
    ):
        self.slot = slot
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.RLock()
        self._books: List[BookRecord] = []
        if autoload:
            self._books = self.load()

    # --------------------------------------------------------------------- #
    # Loading and saving
    # --------------------------------------------------------------------- #
    def load(self) -> List[BookRecord]:
        """Read the persisted collection, falling back to empty when absent or malformed."""
        try:
            payload = self.slot.read()
        except StorageError as exc:
            logger.warning("Unable to read stored books, starting empty: %s", exc)
            return []
        if payload is None or not payload.strip():
            logger.info("No stored books found, starting with an empty library")
            return []
        try:
            records = load_records(payload)
        except (ValueError, TypeError, RecursionError) as exc:
            logger.warning("Ignoring malformed stored books: %s", exc)
            return []
        logger.info("Loaded %d books from storage", len(records))
        return records

    def persist(self, record: Optional[BookRecord] = None) -> None:
        with self._lock:
            payload = dump_records(self._books)
            try:
                self.slot.write(payload)
            except StorageError as exc:
                logger.exception("Error saving books")
                raise PersistenceError(f"Error saving data: {exc}", record=record) from exc

    # --------------------------------------------------------------------- #
    # Read access
    # --------------------------------------------------------------------- #
    @property
    def records(self) -> List[BookRecord]:
        with self._lock:
            return [replace(book) for book in self._books]

    def get(self, book_id: str) -> Optional[BookRecord]:
        with self._lock:
            book = next((book for book in self._books if book.id == book_id), None)
            return replace(book) if book else None

    def __len__(self) -> int:
        return len(self._books)

    def __iter__(self) -> Iterator[BookRecord]:
        return iter(self.records)

    # --------------------------------------------------------------------- #
    # Mutations
    # --------------------------------------------------------------------- #
    def _new_id(self, now: datetime) -> str:
        existing = {book.id for book in self._books}
        book_id = self._id_factory(now)
        while book_id in existing:
            book_id = self._id_factory(now)
        return book_id

    def add(self, candidate: Mapping[str, Any]) -> BookRecord:
        """Validate and append a new book. Returns the stored record."""
        title = _clean(candidate.get("title"))
        author = _clean(candidate.get("author"))
        category = _clean(candidate.get("category")) or DEFAULT_CATEGORY
        status = _clean(candidate.get("status")) or DEFAULT_STATUS
        notes = _clean(candidate.get("notes"))

        with self._lock:
            _validate_text(title, author)
            if any(book.matches(title, author) for book in self._books):
                raise ValidationError(
                    ValidationKind.DUPLICATE_BOOK,
                    "This book already exists in your library!",
                )
            if category not in CATEGORIES:
                raise ValidationError(ValidationKind.INVALID_CHOICE, f"Unknown category: {category}")
            if status not in STATUSES:
                raise ValidationError(ValidationKind.INVALID_CHOICE, f"Unknown status: {status}")

            now = self._clock()
            record = BookRecord(
                id=self._new_id(now),
                title=title,
                author=author,
                category=category,
                status=status,
                notes=notes,
                date_added=now,
                date_modified=now,
            )
            self._books.append(record)
            logger.debug("Added book %s (%s by %s)", record.id, title, author)
            self.persist(record)
            return replace(record)

    def edit(self, book_id: str, title: Any, author: Any, notes: Any) -> BookRecord:
        """Update title, author and notes of an existing book.

        The duplicate (title, author) rule is only enforced when adding.
        """
        new_title = _clean(title)
        new_author = _clean(author)
        new_notes = _clean(notes)

        with self._lock:
            record = next((book for book in self._books if book.id == book_id), None)
            if record is None:
                raise NotFoundError(book_id)
            _validate_text(new_title, new_author)

            record.title = new_title
            record.author = new_author
            record.notes = new_notes
            record.date_modified = max(self._clock(), record.date_added)
            logger.debug("Edited book %s", book_id)
            self.persist(record)
            return replace(record)

    def delete(self, book_id: str) -> Optional[BookRecord]:
        """Remove a book if present. Missing ids are ignored."""
        with self._lock:
            removed = next((book for book in self._books if book.id == book_id), None)
            if removed is not None:
                self._books = [book for book in self._books if book.id != book_id]
                logger.debug("Deleted book %s", book_id)
            self.persist(removed)
            return removed

    def close(self) -> None:
        close = getattr(self.slot, "close", None)
        if callable(close):
            close()


def open_store(config: Optional[Config] = None) -> BookStore:
    """Open the store backed by the configured SQLite slot."""
    config = config or get_config()
    storage = SqliteSlotStorage(config.DB_PATH, quota_bytes=config.quota)
    return BookStore(storage.slot(config.SLOT_NAME))
