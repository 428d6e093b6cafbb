"""
Event kinds and the broadcast channel used for generic observers.
"""

import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

ADD = "add"
CHANGE = "change"
UNLINK = "unlink"
ERROR = "error"

EVENT_KINDS = (ADD, CHANGE, UNLINK)


def validate_event_kind(event_kind: str, allow_error: bool = False) -> str:
    """Return event_kind if it is known, otherwise raise ValueError."""
    allowed = EVENT_KINDS + (ERROR,) if allow_error else EVENT_KINDS
    if event_kind not in allowed:
        raise ValueError(
            f"Unknown event kind '{event_kind}', expected one of: {', '.join(allowed)}"
        )
    return event_kind


class EventEmitter:
    """
    Broadcast channel keyed by event kind.

    Listeners for add/change/unlink receive (watched_directory, filename,
    relative_path). Listeners for "error" receive the exception.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def on(self, event_kind: str, listener: Callable) -> None:
        validate_event_kind(event_kind, allow_error=True)
        if not callable(listener):
            raise TypeError("listener must be callable")
        with self._lock:
            current = self._listeners.get(event_kind, [])
            self._listeners[event_kind] = current + [listener]

    def off(self, event_kind: str, listener: Callable) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        with self._lock:
            current = self._listeners.get(event_kind, [])
            if listener not in current:
                return False
            remaining = list(current)
            remaining.remove(listener)
            self._listeners[event_kind] = remaining
            return True

    def listeners(self, event_kind: str) -> List[Callable]:
        return list(self._listeners.get(event_kind, []))

    def emit(self, event_kind: str, *args) -> List[Exception]:
        """
        Call every listener for event_kind.

        A raising listener does not prevent the remaining listeners from
        running; the exceptions are returned to the caller.
        """
        errors = []
        for listener in self._listeners.get(event_kind, []):
            try:
                listener(*args)
            except Exception as e:
                errors.append(e)
        return errors

    def emit_error(self, error: Exception) -> None:
        """Publish error on the "error" channel, or log it if nobody listens."""
        listeners = self._listeners.get(ERROR, [])
        if not listeners:
            logger.error(f"Unhandled watcher error: {error}", exc_info=error)
            return
        for listener in listeners:
            try:
                listener(error)
            except Exception as e:
                logger.exception(f"Error listener raised: {e}")
