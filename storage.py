from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from errors import StorageError, StorageQuotaExceeded

logger = logging.getLogger(__name__)


def _check_payload(value: str, quota_bytes: Optional[int]) -> None:
    """Reject values that cannot be stored as UTF-8 text or exceed the quota."""
    try:
        size = len(value.encode("utf-8"))
    except UnicodeEncodeError as exc:
        raise StorageError(f"Value is not valid UTF-8 text: {exc}") from exc
    if quota_bytes and size > quota_bytes:
        raise StorageQuotaExceeded(size, quota_bytes)


class Slot:
    """A single named location inside a slot storage backend."""

    def __init__(self, storage: "SqliteSlotStorage | MemorySlotStorage", name: str):
        self.storage = storage
        self.name = name

    def read(self) -> Optional[str]:
        return self.storage.get(self.name)

    def write(self, value: str) -> None:
        self.storage.set(self.name, value)

    def close(self) -> None:
        self.storage.close()

    def __repr__(self) -> str:
        return f"Slot({self.name!r})"


class SqliteSlotStorage:
    """SQLite-backed key-value storage, one text value per slot name."""

    def __init__(self, db_path: Path, *, quota_bytes: Optional[int] = None):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()
        logger.info("Opened slot storage at %s", self.db_path)

    # --------------------------------------------------------------------- #
    # Schema
    # --------------------------------------------------------------------- #
    def _ensure_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS slots (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT
                );
                """
            )

    # --------------------------------------------------------------------- #
    # Utility helpers
    # --------------------------------------------------------------------- #
    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def slot(self, name: str) -> Slot:
        return Slot(self, name)

    # --------------------------------------------------------------------- #
    # Key-value access
    # --------------------------------------------------------------------- #
    def get(self, name: str) -> Optional[str]:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM slots WHERE name = ?", (name,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Unable to read slot {name!r}: {exc}") from exc
        return row["value"] if row else None

    def set(self, name: str, value: str) -> None:
        _check_payload(value, self.quota_bytes)
        stamp = datetime.now(timezone.utc).isoformat()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO slots (name, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE
                    SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (name, value, stamp),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Unable to write slot {name!r}: {exc}") from exc


class MemorySlotStorage:
    """Dictionary-backed storage for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, *, quota_bytes: Optional[int] = None):
        self.values: Dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes

    def slot(self, name: str) -> Slot:
        return Slot(self, name)

    def get(self, name: str) -> Optional[str]:
        return self.values.get(name)

    def set(self, name: str, value: str) -> None:
        _check_payload(value, self.quota_bytes)
        self.values[name] = value

    def close(self) -> None:
        pass
