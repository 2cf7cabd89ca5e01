"""Keep the active status filter in step with a navigable history.

The filter lives in a single ``filter`` query parameter. Moving back or
forward through history restores whichever filter that entry recorded, and
choosing a new filter records a fresh entry.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from library import FILTERS

logger = logging.getLogger(__name__)

FILTER_PARAM = "filter"
DEFAULT_FILTER = "all"

ChangeCallback = Callable[[Optional[str]], None]


class NavigationState(Protocol):
    def push(self, filter_value: str) -> None: ...

    def on_change(self, callback: ChangeCallback) -> None: ...

    def read_initial(self) -> Optional[str]: ...


def filter_from_url(url: str) -> Optional[str]:
    """Return the raw ``filter`` query value of ``url``, if any."""
    query = urlsplit(url).query
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == FILTER_PARAM:
            return value
    return None


def url_with_filter(url: str, filter_value: str) -> str:
    parts = urlsplit(url)
    params = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != FILTER_PARAM]
    params.append((FILTER_PARAM, filter_value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", urlencode(params), parts.fragment))


class HistoryNavigation:
    """In-process history stack that behaves like a browser's session history."""

    def __init__(self, url: str = "/"):
        self.entries: List[Dict[str, Any]] = [{"url": url, "state": None}]
        self.index = 0
        self._listeners: List[ChangeCallback] = []

    @property
    def location(self) -> str:
        return self.entries[self.index]["url"]

    @property
    def state(self) -> Optional[Dict[str, Any]]:
        return self.entries[self.index]["state"]

    def push(self, filter_value: str) -> None:
        entry = {"url": url_with_filter(self.location, filter_value), "state": {FILTER_PARAM: filter_value}}
        del self.entries[self.index + 1 :]
        self.entries.append(entry)
        self.index += 1

    def on_change(self, callback: ChangeCallback) -> None:
        self._listeners.append(callback)

    def read_initial(self) -> Optional[str]:
        return filter_from_url(self.location)

    def can_go_back(self) -> bool:
        return self.index > 0

    def can_go_forward(self) -> bool:
        return self.index < len(self.entries) - 1

    def back(self) -> bool:
        if not self.can_go_back():
            return False
        self.index -= 1
        self._notify()
        return True

    def forward(self) -> bool:
        if not self.can_go_forward():
            return False
        self.index += 1
        self._notify()
        return True

    def _notify(self) -> None:
        state = self.state
        value = state.get(FILTER_PARAM) if state else None
        for callback in list(self._listeners):
            callback(value)


class FilterNavigator:
    """Tracks the current filter and mirrors it into a navigation state."""

    def __init__(self, navigation: NavigationState, on_filter_change: Optional[Callable[[str], None]] = None):
        self.navigation = navigation
        self.current_filter = DEFAULT_FILTER
        self._subscribers: List[Callable[[str], None]] = []
        if on_filter_change is not None:
            self._subscribers.append(on_filter_change)
        navigation.on_change(self.on_history_navigate)

    def subscribe(self, callback: Callable[[str], None]) -> None:
        self._subscribers.append(callback)

    def _signal(self) -> None:
        for callback in list(self._subscribers):
            callback(self.current_filter)

    def set_filter(self, filter_value: str) -> None:
        if filter_value not in FILTERS:
            raise ValueError(f"Unknown filter: {filter_value!r}")
        self.current_filter = filter_value
        self.navigation.push(filter_value)
        self._signal()

    def on_history_navigate(self, filter_value: Optional[str]) -> None:
        if filter_value not in FILTERS:
            if filter_value is not None:
                logger.debug("Ignoring unrecognized filter from history: %r", filter_value)
            return
        self.current_filter = filter_value
        self._signal()

    def init_from_location(self) -> str:
        value = self.navigation.read_initial()
        if value in FILTERS:
            self.current_filter = value
        elif value is not None:
            logger.debug("Ignoring unrecognized filter in location: %r", value)
        return self.current_filter
