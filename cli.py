from __future__ import annotations

import shlex
import sys
from pathlib import Path
from typing import Any, Dict, List

import pandas

from config import configure_logging
from library import (
    CATEGORIES,
    CATEGORY_ICONS,
    DEFAULT_CATEGORY,
    DEFAULT_STATUS,
    FILTERS,
    STATUS_DISPLAY_NAMES,
    STATUS_ICONS,
    STATUSES,
    BookRecord,
    open_store,
    record_to_dict,
)
from navigation import FilterNavigator, HistoryNavigation
from session import TrackerSession, ViewSnapshot

CLEAR_NOTES = "-"
EXPORT_COLUMNS = ["id", "title", "author", "category", "status", "notes", "dateAdded", "dateModified"]

HELP_TEXT = """Commands:
  list                 show books for the current filter
  add                  add a new book
  edit <id>            edit title, author and notes
  delete <id>          delete a book
  filter <value>       one of: all, to-read, reading, finished
  back / forward       move through filter history
  stats                show library statistics
  export <path.csv>    write the current view to a CSV file
  help                 show this message
  quit                 leave the session"""


def describe_book(book: BookRecord, index: int) -> str:
    """Return a printable description for a stored book."""
    lines = [
        f"{index}. {book.title}",
        f"   by {book.author}",
        f"   {CATEGORY_ICONS.get(book.category, '📋')} {book.category} | "
        f"{STATUS_ICONS.get(book.status, '📋')} {STATUS_DISPLAY_NAMES.get(book.status, book.status)}",
        f"   id: {book.id}",
    ]
    if book.notes:
        lines.append(f"   Notes: {book.notes}")
    return "\n".join(lines)


def print_stats(snapshot: ViewSnapshot) -> None:
    stats = snapshot.stats
    print(f"Total: {stats.total}  Finished: {stats.finished}  Progress: {stats.completion}%")
    counts = "  ".join(f"{value}: {snapshot.counts[value]}" for value in FILTERS)
    print(f"Filters -> {counts}")


def print_snapshot(snapshot: ViewSnapshot) -> None:
    print()
    print_stats(snapshot)
    print(f"Showing: {snapshot.filter}")
    if not snapshot.books:
        if snapshot.filter == "all":
            print("Your library is empty. Use 'add' to record your first book.")
        else:
            print(f"No books match the current filter: {STATUS_DISPLAY_NAMES[snapshot.filter]}")
        return
    for idx, book in enumerate(snapshot.books, start=1):
        print(describe_book(book, idx))


def print_notification(message: str, severity: str) -> None:
    print(f"[{severity.upper()}] {message}")


def export_books(books: List[BookRecord], path: Path) -> Path:
    """Write books to a CSV spreadsheet."""
    frame = pandas.DataFrame([record_to_dict(book) for book in books], columns=EXPORT_COLUMNS)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path


def choose_option(label: str, options: List[str], default: str) -> str:
    """Ask for one of ``options`` by number or name; blank keeps ``default``."""
    for idx, option in enumerate(options, start=1):
        print(f"   {idx}. {option}")
    while True:
        response = input(f"{label} [{default}]: ").strip()
        if not response:
            return default
        if response.isdigit() and 1 <= int(response) <= len(options):
            return options[int(response) - 1]
        matches = [option for option in options if option.lower() == response.lower()]
        if matches:
            return matches[0]
        print("Please choose one of the listed options.")


def prompt_new_book() -> Dict[str, Any]:
    title = input("Title: ").strip()
    author = input("Author: ").strip()
    category = choose_option("Category", CATEGORIES, DEFAULT_CATEGORY)
    status = choose_option("Status", STATUSES, DEFAULT_STATUS)
    notes = input("Notes (optional): ").strip()
    return {"title": title, "author": author, "category": category, "status": status, "notes": notes}


def prompt_edit(book: BookRecord) -> Dict[str, str]:
    """Prompt for new values; a blank answer keeps the current one.

    Answering ``-`` to the notes prompt clears the notes.
    """
    title = input(f"Edit book title [{book.title}]: ").strip() or book.title
    author = input(f"Edit author name [{book.author}]: ").strip() or book.author
    notes = input(f"Edit notes [{book.notes}] ('-' clears): ").strip() or book.notes
    if notes == CLEAR_NOTES:
        notes = ""
    return {"title": title, "author": author, "notes": notes}


def confirm(prompt: str) -> bool:
    return input(prompt).strip().lower() in {"y", "yes"}


def run_command(session: TrackerSession, history: HistoryNavigation, line: str) -> bool:
    """Execute one command line. Returns False when the session should end."""
    try:
        tokens = shlex.split(line)
    except ValueError:
        print("Unable to parse that command.")
        return True
    if not tokens:
        return True
    command, args = tokens[0].lower(), tokens[1:]

    if command in {"quit", "exit", "q"}:
        return False
    if command in {"help", "?"}:
        print(HELP_TEXT)
    elif command in {"list", "ls"}:
        session.refresh()
    elif command == "stats":
        print_stats(session.snapshot())
    elif command == "add":
        session.add_book(prompt_new_book())
    elif command == "edit":
        if len(args) != 1:
            print("Use the format 'edit <id>'.")
            return True
        book = session.store.get(args[0])
        if not book:
            print("No book with that id.")
            return True
        values = prompt_edit(book)
        session.edit_book(book.id, values["title"], values["author"], values["notes"])
    elif command == "delete":
        if len(args) != 1:
            print("Use the format 'delete <id>'.")
            return True
        book = session.store.get(args[0])
        if not book:
            print("No book with that id.")
            return True
        if confirm(f'Are you sure you want to delete "{book.title}" by {book.author}? (y/n): '):
            session.delete_book(book.id)
    elif command == "filter":
        if len(args) != 1 or args[0] not in FILTERS:
            print(f"Choose a filter from: {', '.join(FILTERS)}")
            return True
        session.set_filter(args[0])
    elif command == "back":
        if not history.back():
            print("Already at the oldest entry.")
    elif command == "forward":
        if not history.forward():
            print("Already at the newest entry.")
    elif command == "export":
        if len(args) != 1:
            print("Use the format 'export <path.csv>'.")
            return True
        target = export_books(session.snapshot().books, Path(args[0]))
        print(f"Exported {session.current_filter} view to {target}")
    else:
        print("Unknown command. Type 'help' for the list of commands.")
    return True


def interactive_session(location: str = "/") -> None:
    """Run the interactive reading tracker session."""
    history = HistoryNavigation(location)
    session = TrackerSession(
        open_store(),
        FilterNavigator(history),
        render=print_snapshot,
        notify=print_notification,
    )

    print("\nRead Stack - your personal reading tracker.")
    print("Type 'help' for commands or 'quit' to exit.")
    session.start()

    while True:
        try:
            line = input("\n> ")
        except EOFError:
            break
        if not run_command(session, history, line):
            break

    session.store.close()
    print("\nSession complete. Library saved.")


def main() -> None:
    configure_logging()
    interactive_session(sys.argv[1] if len(sys.argv) > 1 else "/")


if __name__ == "__main__":
    main()
