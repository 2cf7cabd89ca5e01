from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from errors import NotFoundError, PersistenceError, ValidationError, ValidationKind
from library import BookRecord, BookStore, record_to_dict
from navigation import FilterNavigator
from views import LibraryStats, filter_counts, filtered_view, statistics

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to Read Stack! Start building your digital library."
SAVE_ERROR_MESSAGE = "Error saving data! Please try again."


@dataclass(frozen=True)
class ViewSnapshot:
    filter: str
    books: List[BookRecord]
    stats: LibraryStats
    counts: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filter": self.filter,
            "books": [record_to_dict(book) for book in self.books],
            "stats": self.stats.to_dict(),
            "counts": dict(self.counts),
        }


RenderCallback = Callable[[ViewSnapshot], None]
NotifyCallback = Callable[[str, str], None]


def _ignore_render(_snapshot: ViewSnapshot) -> None:
    pass


def _ignore_notify(_message: str, _severity: str) -> None:
    pass


class TrackerSession:
    """Wires store, filter navigation and the presentation callbacks together.

    Every successful mutation or filter change ends in a ``render`` call with a
    fresh ``ViewSnapshot``; every user-facing outcome ends in ``notify``.
    """

    def __init__(
        self,
        store: BookStore,
        navigator: FilterNavigator,
        *,
        render: Optional[RenderCallback] = None,
        notify: Optional[NotifyCallback] = None,
    ):
        self.store = store
        self.navigator = navigator
        self.render = render or _ignore_render
        self.notify = notify or _ignore_notify
        navigator.subscribe(lambda _value: self.refresh())

    @property
    def current_filter(self) -> str:
        return self.navigator.current_filter

    def snapshot(self) -> ViewSnapshot:
        books = self.store.records
        return ViewSnapshot(
            filter=self.current_filter,
            books=filtered_view(books, self.current_filter),
            stats=statistics(books),
            counts=filter_counts(books),
        )

    def refresh(self) -> ViewSnapshot:
        snapshot = self.snapshot()
        self.render(snapshot)
        return snapshot

    def start(self) -> ViewSnapshot:
        self.navigator.init_from_location()
        snapshot = self.refresh()
        if not snapshot.stats.total:
            self.notify(WELCOME_MESSAGE, "info")
        return snapshot

    # --------------------------------------------------------------------- #
    # User actions
    # --------------------------------------------------------------------- #
    def _reject(self, error: ValidationError) -> None:
        severity = "warning" if error.kind is ValidationKind.DUPLICATE_BOOK else "error"
        self.notify(error.message, severity)

    def add_book(self, candidate: Mapping[str, Any]) -> Optional[BookRecord]:
        try:
            record = self.store.add(candidate)
        except ValidationError as error:
            self._reject(error)
            return None
        except PersistenceError as error:
            self.refresh()
            self.notify(SAVE_ERROR_MESSAGE, "error")
            return error.record
        self.refresh()
        self.notify("Book added successfully!", "success")
        return record

    def edit_book(self, book_id: str, title: Any, author: Any, notes: Any) -> Optional[BookRecord]:
        try:
            record = self.store.edit(book_id, title, author, notes)
        except NotFoundError:
            logger.info("Edit requested for missing book %s", book_id)
            self.notify("That book is no longer in your library.", "error")
            return None
        except ValidationError as error:
            if error.kind is ValidationKind.MISSING_FIELD:
                self.notify("Title and author cannot be empty!", "error")
            else:
                self._reject(error)
            return None
        except PersistenceError as error:
            self.refresh()
            self.notify(SAVE_ERROR_MESSAGE, "error")
            return error.record
        self.refresh()
        self.notify("Book updated successfully!", "success")
        return record

    def delete_book(self, book_id: str) -> Optional[BookRecord]:
        try:
            removed = self.store.delete(book_id)
        except PersistenceError as error:
            self.refresh()
            self.notify(SAVE_ERROR_MESSAGE, "error")
            return error.record
        if removed is None:
            return None
        self.refresh()
        self.notify("Book deleted successfully!", "success")
        return removed

    def set_filter(self, filter_value: str) -> None:
        self.navigator.set_filter(filter_value)
