from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest

from library import BookStore
from storage import MemorySlotStorage


class FakeClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_storage() -> MemorySlotStorage:
    return MemorySlotStorage()


@pytest.fixture
def store(memory_storage: MemorySlotStorage, clock: FakeClock) -> Iterator[BookStore]:
    book_store = BookStore(memory_storage.slot("readStackBooks"), clock=clock)
    yield book_store
    book_store.close()
