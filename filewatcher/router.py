"""
Event router: turns raw notifications into generic events and handler calls.
"""

import logging
import threading
from typing import Callable, FrozenSet, Optional

from filewatcher.errors import HandlerInvocationError
from filewatcher.events import ADD, EventEmitter
from filewatcher.handlers import HandlerTable
from filewatcher.paths import containing_directory, split_filename

logger = logging.getLogger(__name__)


class EventRouter:
    """
    Filters raw notifications and dispatches the survivors.

    The router reads its configuration through callables so that the owning
    watcher can swap its sets atomically at any time.

    Args:
        base_dir: Absolute base directory used for relative paths
        handlers: Handler table consulted for every event
        emitter: Broadcast channel for generic listeners
        allowed_extensions: Returns the current allowed extension set
        initial_files: Returns the current initial file set
        owner_of: Returns the nearest watched directory for a path
    """

    def __init__(
        self,
        base_dir: str,
        handlers: HandlerTable,
        emitter: EventEmitter,
        allowed_extensions: Callable[[], FrozenSet[str]],
        initial_files: Callable[[], FrozenSet[str]],
        owner_of: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.base_dir = base_dir
        self.handlers = handlers
        self.emitter = emitter
        self.allowed_extensions = allowed_extensions
        self.initial_files = initial_files
        self.owner_of = owner_of
        self.stats = {"received": 0, "dispatched": 0, "filtered": 0, "errors": 0}
        self._lock = threading.RLock()

    def dispatch(self, event_kind: str, directory: str, file_path: str) -> bool:
        """
        Route one raw notification.

        Args:
            event_kind: "add", "change" or "unlink"
            directory: Watched directory whose subscription reported the event
            file_path: Absolute path of the file

        Returns:
            True if the event survived filtering and was dispatched
        """
        with self._lock:
            self.stats["received"] += 1
            if not self._accepts(event_kind, directory, file_path):
                self.stats["filtered"] += 1
                return False

            filename, _ = split_filename(file_path)
            relative_path = containing_directory(file_path, self.base_dir)
            logger.debug(f"{event_kind}: {file_path} (watched: {directory})")

            for error in self.emitter.emit(event_kind, directory, filename, relative_path):
                self._report(event_kind, file_path, error)

            handler = self.handlers.find(directory, event_kind)
            if handler is not None:
                try:
                    handler(directory, filename, relative_path, event_kind)
                except Exception as e:
                    self._report(event_kind, file_path, e)

            self.stats["dispatched"] += 1
            return True

    def _accepts(self, event_kind: str, directory: str, file_path: str) -> bool:
        _, extension = split_filename(file_path)
        allowed = self.allowed_extensions()
        if allowed and extension not in allowed:
            return False

        if event_kind == ADD and file_path in self.initial_files():
            return False

        # Nested watched directories observe the same files; only the
        # nearest one dispatches.
        if self.owner_of is not None:
            owner = self.owner_of(file_path)
            if owner is not None and owner != directory:
                return False

        return True

    def _report(self, event_kind: str, file_path: str, error: Exception) -> None:
        self.stats["errors"] += 1
        wrapped = HandlerInvocationError(event_kind, file_path, error)
        wrapped.__cause__ = error
        self.emitter.emit_error(wrapped)
