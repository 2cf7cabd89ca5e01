from __future__ import annotations

from datetime import datetime, timezone

import pytest

from library import BookRecord
from views import completion_percent, filter_counts, filtered_view, statistics

STAMP = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _book(book_id: str, status: str) -> BookRecord:
    return BookRecord(
        id=book_id,
        title=f"Title {book_id}",
        author=f"Author {book_id}",
        category="Other",
        status=status,
        notes="",
        date_added=STAMP,
        date_modified=STAMP,
    )


@pytest.fixture
def books() -> list[BookRecord]:
    return [
        _book("a", "reading"),
        _book("b", "finished"),
        _book("c", "to-read"),
        _book("d", "finished"),
        _book("e", "reading"),
    ]


def test_filtered_view_keeps_insertion_order(books: list[BookRecord]) -> None:
    assert [book.id for book in filtered_view(books, "all")] == ["a", "b", "c", "d", "e"]
    assert [book.id for book in filtered_view(books, "reading")] == ["a", "e"]
    assert [book.id for book in filtered_view(books, "finished")] == ["b", "d"]
    assert [book.id for book in filtered_view(books, "to-read")] == ["c"]


@pytest.mark.parametrize("value", ["to-read", "reading", "finished"])
def test_filtered_view_only_returns_matching_status(books: list[BookRecord], value: str) -> None:
    assert all(book.status == value for book in filtered_view(books, value))


def test_filtered_view_rejects_unknown_filter(books: list[BookRecord]) -> None:
    with pytest.raises(ValueError):
        filtered_view(books, "paused")


def test_statistics_counts_finished_books(books: list[BookRecord]) -> None:
    stats = statistics(books)
    assert (stats.total, stats.finished, stats.completion) == (5, 2, 40)
    assert statistics(books) == stats


def test_statistics_for_empty_collection() -> None:
    stats = statistics([])
    assert stats.to_dict() == {"total": 0, "finished": 0, "completion": 0}


@pytest.mark.parametrize(
    "finished, total, expected",
    [(1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 200, 1), (1, 201, 0), (3, 3, 100), (0, 4, 0)],
)
def test_completion_percent_rounds_half_up(finished: int, total: int, expected: int) -> None:
    assert completion_percent(finished, total) == expected


def test_filter_counts(books: list[BookRecord]) -> None:
    assert filter_counts(books) == {"all": 5, "to-read": 1, "reading": 2, "finished": 2}
    assert filter_counts([]) == {"all": 0, "to-read": 0, "reading": 0, "finished": 0}
