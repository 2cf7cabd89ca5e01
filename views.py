from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

from library import FILTERS, STATUSES, BookRecord


@dataclass(frozen=True)
class LibraryStats:
    total: int
    finished: int
    completion: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def filtered_view(records: Iterable[BookRecord], filter_value: str) -> List[BookRecord]:
    """Return the records whose status matches ``filter_value`` in insertion order."""
    if filter_value not in FILTERS:
        raise ValueError(f"Unknown filter: {filter_value!r}")
    if filter_value == "all":
        return list(records)
    return [record for record in records if record.status == filter_value]


def completion_percent(finished: int, total: int) -> int:
    if total <= 0:
        return 0
    # Integer half-up rounding of finished / total * 100.
    return (finished * 200 + total) // (2 * total)


def statistics(records: Iterable[BookRecord]) -> LibraryStats:
    books = list(records)
    total = len(books)
    finished = sum(1 for book in books if book.status == "finished")
    return LibraryStats(total=total, finished=finished, completion=completion_percent(finished, total))


def filter_counts(records: Iterable[BookRecord]) -> Dict[str, int]:
    counts = {value: 0 for value in FILTERS}
    for record in records:
        counts["all"] += 1
        if record.status in STATUSES:
            counts[record.status] += 1
    return counts
