from __future__ import annotations

import json

import pytest

from errors import NotFoundError, PersistenceError, StorageError, ValidationError, ValidationKind
from library import BookStore, generate_id, load_records
from storage import MemorySlotStorage


def _candidate(title: str = "Dune", author: str = "Frank Herbert", **extra: str) -> dict[str, str]:
    candidate = {
        "title": title,
        "author": author,
        "category": "Fiction",
        "status": "to-read",
        "notes": "",
    }
    candidate.update(extra)
    return candidate


def _stored(book_id: str, title: str, author: str, **extra: str) -> dict[str, str]:
    entry = {
        "id": book_id,
        "title": title,
        "author": author,
        "category": "Fiction",
        "status": "to-read",
        "notes": "",
        "dateAdded": "2024-05-01T10:00:00.000Z",
        "dateModified": "2024-05-01T10:00:00.000Z",
    }
    entry.update(extra)
    return entry


def test_add_then_reload_keeps_existing_books(memory_storage: MemorySlotStorage, store: BookStore) -> None:
    first = store.add(_candidate("Dune", "Frank Herbert"))
    second = store.add(_candidate("Emma", "Jane Austen", category="Romance", status="finished"))

    reloaded = BookStore(memory_storage.slot("readStackBooks"))
    assert [book.id for book in reloaded.records] == [first.id, second.id]
    assert reloaded.get(first.id) == first
    assert reloaded.get(second.id).title == "Emma"


def test_add_trims_values_and_assigns_identity(store: BookStore) -> None:
    record = store.add(_candidate("  Dune  ", " Frank Herbert ", notes="  spice  "))

    assert record.title == "Dune"
    assert record.author == "Frank Herbert"
    assert record.notes == "spice"
    assert record.id
    assert record.date_added == record.date_modified


def test_add_defaults_category_and_status(store: BookStore) -> None:
    record = store.add({"title": "Dune", "author": "Frank Herbert"})

    assert record.category == "Other"
    assert record.status == "to-read"
    assert record.notes == ""


@pytest.mark.parametrize(
    "title, author, kind",
    [
        ("", "Frank Herbert", ValidationKind.MISSING_FIELD),
        ("Dune", "   ", ValidationKind.MISSING_FIELD),
        ("D", "Frank Herbert", ValidationKind.TOO_SHORT),
        ("Dune", " F ", ValidationKind.TOO_SHORT),
    ],
)
def test_add_rejects_missing_or_short_text(store: BookStore, title: str, author: str, kind: ValidationKind) -> None:
    with pytest.raises(ValidationError) as excinfo:
        store.add(_candidate(title, author))

    assert excinfo.value.kind is kind
    assert len(store) == 0


def test_missing_field_is_reported_before_too_short(store: BookStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        store.add(_candidate("", "F"))
    assert excinfo.value.kind is ValidationKind.MISSING_FIELD


def test_duplicate_books_are_rejected_case_insensitively(store: BookStore) -> None:
    store.add(_candidate("Foo", "Bar"))

    with pytest.raises(ValidationError) as excinfo:
        store.add(_candidate("foo", "BAR"))

    assert excinfo.value.kind is ValidationKind.DUPLICATE_BOOK
    assert len(store) == 1


def test_same_title_with_other_author_is_allowed(store: BookStore) -> None:
    store.add(_candidate("Foo", "Bar"))
    store.add(_candidate("Foo", "Baz"))
    assert len(store) == 2


def test_unknown_category_or_status_is_rejected(store: BookStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        store.add(_candidate(category="Poetry"))
    assert excinfo.value.kind is ValidationKind.INVALID_CHOICE

    with pytest.raises(ValidationError) as excinfo:
        store.add(_candidate(status="abandoned"))
    assert excinfo.value.kind is ValidationKind.INVALID_CHOICE
    assert len(store) == 0


def test_edit_updates_fields_and_refreshes_modified(store: BookStore) -> None:
    record = store.add(_candidate())

    edited = store.edit(record.id, "Dune", "Frank Herbert", "Great book")

    assert edited.notes == "Great book"
    assert edited.title == "Dune"
    assert edited.author == "Frank Herbert"
    assert edited.id == record.id
    assert edited.date_added == record.date_added
    assert edited.date_modified > record.date_modified


def test_edit_missing_book_raises_not_found(store: BookStore) -> None:
    with pytest.raises(NotFoundError):
        store.edit("missing", "Dune", "Frank Herbert", "")


def test_edit_validates_text_but_not_duplicates(store: BookStore) -> None:
    store.add(_candidate("Foo", "Bar"))
    other = store.add(_candidate("Emma", "Jane Austen"))

    with pytest.raises(ValidationError) as excinfo:
        store.edit(other.id, "E", "Jane Austen", "")
    assert excinfo.value.kind is ValidationKind.TOO_SHORT
    assert store.get(other.id).title == "Emma"

    edited = store.edit(other.id, "foo", "bar", "")
    assert edited.title == "foo"
    assert len(store) == 2


def test_delete_removes_book_and_ignores_unknown_ids(memory_storage: MemorySlotStorage, store: BookStore) -> None:
    record = store.add(_candidate())

    assert store.delete("unknown") is None
    assert len(store) == 1

    removed = store.delete(record.id)
    assert removed is not None and removed.id == record.id
    assert len(store) == 0
    assert load_records(memory_storage.get("readStackBooks")) == []


def test_load_treats_malformed_payloads_as_empty(clock) -> None:
    payloads = [
        "not json",
        json.dumps({"books": []}),
        json.dumps([{"id": "a1", "title": "Dune"}]),
        json.dumps(
            [
                {
                    "id": "a1",
                    "title": "Dune",
                    "author": "Frank Herbert",
                    "category": "Fiction",
                    "status": "paused",
                    "notes": "",
                    "dateAdded": "2024-05-01T10:00:00.000Z",
                    "dateModified": "2024-05-01T10:00:00.000Z",
                }
            ]
        ),
    ]
    for payload in payloads:
        storage = MemorySlotStorage({"readStackBooks": payload})
        store = BookStore(storage.slot("readStackBooks"), clock=clock)
        assert store.records == []


def test_load_accepts_browser_timestamps() -> None:
    payload = json.dumps(
        [
            {
                "id": "lx1abc123def",
                "title": "Dune",
                "author": "Frank Herbert",
                "category": "Fiction",
                "status": "reading",
                "notes": "",
                "dateAdded": "2024-05-01T10:00:00.000Z",
                "dateModified": "2024-05-02T08:30:00.250Z",
            }
        ]
    )
    storage = MemorySlotStorage({"readStackBooks": payload})
    store = BookStore(storage.slot("readStackBooks"))

    [record] = store.records
    assert record.status == "reading"
    assert record.date_modified.microsecond == 250000


def test_persist_failure_keeps_in_memory_state(clock) -> None:
    storage = MemorySlotStorage(quota_bytes=10)
    store = BookStore(storage.slot("readStackBooks"), clock=clock)

    with pytest.raises(PersistenceError) as excinfo:
        store.add(_candidate())

    assert excinfo.value.record is not None
    assert len(store) == 1
    assert storage.get("readStackBooks") is None


def test_generated_ids_are_unique() -> None:
    ids = {generate_id() for _ in range(500)}
    assert len(ids) == 500


def test_colliding_id_factory_is_retried(memory_storage: MemorySlotStorage, clock) -> None:
    produced = iter(["same", "same", "other"])
    store = BookStore(memory_storage.slot("readStackBooks"), clock=clock, id_factory=lambda _now: next(produced))

    first = store.add(_candidate("Dune", "Frank Herbert"))
    second = store.add(_candidate("Emma", "Jane Austen"))

    assert first.id == "same"
    assert second.id == "other"


def test_load_treats_deeply_nested_json_as_empty(clock) -> None:
    storage = MemorySlotStorage({"readStackBooks": "[" * 200000 + "]" * 200000})
    store = BookStore(storage.slot("readStackBooks"), clock=clock)

    assert store.records == []


def test_load_skips_only_the_bad_entries(clock) -> None:
    payload = json.dumps(
        [
            _stored("a1", "Dune", "Frank Herbert"),
            _stored("b2", "Emma", "Jane Austen", category="Poetry"),
            _stored("a1", "Ulysses", "James Joyce"),
        ]
    )
    storage = MemorySlotStorage({"readStackBooks": payload})
    store = BookStore(storage.slot("readStackBooks"), clock=clock)

    assert [(book.id, book.title) for book in store.records] == [("a1", "Dune")]


def test_load_keeps_books_sharing_title_and_author(clock) -> None:
    payload = json.dumps([_stored("a1", "Foo", "Bar"), _stored("b2", "foo", "bar")])
    storage = MemorySlotStorage({"readStackBooks": payload})
    store = BookStore(storage.slot("readStackBooks"), clock=clock)

    assert [book.id for book in store.records] == ["a1", "b2"]


class _UnreadableSlot:
    def read(self):
        raise StorageError("disk unavailable")

    def write(self, value: str) -> None:
        raise AssertionError("nothing should be written")


def test_load_falls_back_to_empty_when_slot_cannot_be_read(clock) -> None:
    store = BookStore(_UnreadableSlot(), clock=clock)

    assert store.records == []
    assert len(store) == 0


def test_edit_persist_failure_keeps_in_memory_change(memory_storage: MemorySlotStorage, store: BookStore) -> None:
    record = store.add(_candidate())
    saved = memory_storage.get("readStackBooks")
    memory_storage.quota_bytes = 10

    with pytest.raises(PersistenceError) as excinfo:
        store.edit(record.id, "Dune", "Frank Herbert", "Great book")

    assert excinfo.value.record is not None
    assert excinfo.value.record.id == record.id
    assert store.get(record.id).notes == "Great book"
    assert memory_storage.get("readStackBooks") == saved


def test_delete_persist_failure_keeps_in_memory_removal(memory_storage: MemorySlotStorage, store: BookStore) -> None:
    record = store.add(_candidate())
    saved = memory_storage.get("readStackBooks")
    memory_storage.quota_bytes = 10

    with pytest.raises(PersistenceError) as excinfo:
        store.delete(record.id)

    assert excinfo.value.record is not None
    assert excinfo.value.record.id == record.id
    assert len(store) == 0
    assert memory_storage.get("readStackBooks") == saved
