"""
Per-directory handler table with nearest-ancestor lookup.
"""

import threading
from typing import Callable, Dict, List, Optional

from filewatcher.events import validate_event_kind
from filewatcher.paths import parent_directories

# Handlers are called as handler(watched_directory, filename, relative_path, event_kind)
Handler = Callable[[str, str, str, str], None]


class HandlerTable:
    """
    Maps directory -> (event kind -> handler).

    Each (directory, event kind) pair holds at most one handler; registering
    again replaces the previous one.
    """

    def __init__(self):
        self._handlers: Dict[str, Dict[str, Handler]] = {}
        self._lock = threading.Lock()

    def set(self, directory: str, event_kind: str, handler: Handler) -> None:
        validate_event_kind(event_kind)
        if not callable(handler):
            raise TypeError("handler must be callable")
        with self._lock:
            by_kind = dict(self._handlers.get(directory, {}))
            by_kind[event_kind] = handler
            self._handlers[directory] = by_kind

    def remove(self, directory: str, event_kind: Optional[str] = None) -> bool:
        """
        Remove the handler for one event kind, or all handlers of directory.

        Returns:
            True if anything was removed
        """
        with self._lock:
            by_kind = self._handlers.get(directory)
            if not by_kind:
                return False
            if event_kind is None:
                del self._handlers[directory]
                return True
            if event_kind not in by_kind:
                return False
            remaining = {k: v for k, v in by_kind.items() if k != event_kind}
            if remaining:
                self._handlers[directory] = remaining
            else:
                del self._handlers[directory]
            return True

    def find(self, directory: str, event_kind: str) -> Optional[Handler]:
        """
        Find the handler for event_kind closest to directory.

        Walks from directory up to the filesystem root and returns the first
        handler registered for event_kind, or None.
        """
        for candidate in parent_directories(directory):
            by_kind = self._handlers.get(candidate)
            if by_kind and event_kind in by_kind:
                return by_kind[event_kind]
        return None

    def directories(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, directory: str) -> bool:
        return directory in self._handlers

    def __len__(self) -> int:
        return sum(len(by_kind) for by_kind in self._handlers.values())
