"""
FileWatcher: directory-scoped file event routing.

Example:
    watcher = (
        FileWatcher()
        .set_allowed_extensions(".py")
        .set_monitored_directories("src")
        .set_handler("src/api", "change", on_api_change)
        .start_watching()
    )
"""

import logging
import os
import warnings
from typing import Callable, Dict, FrozenSet, List, Optional, Set

from filewatcher.errors import (ConfigurationWarning, NotificationSourceError,
                                SnapshotFailure)
from filewatcher.events import EventEmitter, validate_event_kind
from filewatcher.handlers import Handler, HandlerTable
from filewatcher.paths import is_within, resolve_directory
from filewatcher.registry import WatchRegistry
from filewatcher.router import EventRouter
from filewatcher.snapshot import capture_initial_files
from filewatcher.source import NotificationSource

logger = logging.getLogger(__name__)


def _require_directory(directory: str) -> None:
    if not os.path.isdir(directory):
        raise SnapshotFailure(directory, "not an existing directory")


class FileWatcher:
    """
    Watches directory trees and routes file events to handlers.

    Attributes:
        base_dir: Absolute directory that relative paths are resolved against
        process_id: Process id reported by status()
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        process_id: Optional[int] = None,
        use_polling: bool = False,
        poll_interval: float = 1.0,
        source: Optional[NotificationSource] = None,
    ):
        self.base_dir = os.path.abspath(base_dir or os.getcwd())
        self.process_id = process_id or os.getpid()

        self._ignored_directories: FrozenSet[str] = frozenset()
        self._allowed_extensions: FrozenSet[str] = frozenset()
        self._monitored_directories: FrozenSet[str] = frozenset()
        self._initial_files: FrozenSet[str] = frozenset()
        self._running = False

        self.emitter = EventEmitter()
        self.handlers = HandlerTable()
        self.registry = WatchRegistry(
            source or NotificationSource(use_polling=use_polling, poll_interval=poll_interval),
            self.is_ignored,
            self._on_raw_event,
            self._on_source_error,
        )
        self.router = EventRouter(
            self.base_dir,
            self.handlers,
            self.emitter,
            lambda: self._allowed_extensions,
            lambda: self._initial_files,
            self.registry.owner_of,
        )

    # Configuration

    def set_allowed_extensions(self, *extensions: str) -> "FileWatcher":
        """Only report files with these extensions; no arguments allows all."""
        normalized = set()
        for ext in extensions:
            ext = ext.strip().lower()
            if ext and not ext.startswith("."):
                ext = "." + ext
            normalized.add(ext)
        self._allowed_extensions = frozenset(normalized)
        return self

    def set_monitored_directories(self, *directories: str) -> "FileWatcher":
        """Directories to snapshot and watch on start_watching()."""
        self._monitored_directories = frozenset(
            resolve_directory(d, self.base_dir) for d in directories
        )
        return self

    def ignore_directory(self, *directories: str) -> "FileWatcher":
        """
        Exclude directories from all notifications.

        Directories that do not exist are reported with a ConfigurationWarning
        and not recorded.
        """
        ignored = set(self._ignored_directories)
        for directory in directories:
            resolved = resolve_directory(directory, self.base_dir)
            if not os.path.exists(resolved):
                self._warn(f"Directory {resolved} does not exist, ignoring it will not work.")
                continue
            ignored.add(resolved)
        self._ignored_directories = frozenset(ignored)
        return self

    def unignore_directory(self, *directories: str) -> "FileWatcher":
        ignored = set(self._ignored_directories)
        for directory in directories:
            resolved = resolve_directory(directory, self.base_dir)
            if resolved in ignored:
                ignored.discard(resolved)
            else:
                self._warn(f"Directory {resolved} is not ignored.")
        self._ignored_directories = frozenset(ignored)
        return self

    def is_ignored(self, path: str) -> bool:
        """True if path lies inside an ignored directory."""
        return any(is_within(path, d) for d in self._ignored_directories)

    @property
    def allowed_extensions(self) -> FrozenSet[str]:
        return self._allowed_extensions

    @property
    def monitored_directories(self) -> FrozenSet[str]:
        return self._monitored_directories

    @property
    def ignored_directories(self) -> FrozenSet[str]:
        return self._ignored_directories

    @property
    def initial_files(self) -> FrozenSet[str]:
        return self._initial_files

    # Handlers and listeners

    def set_handler(self, directory: str, event_kind: str, callback: Handler) -> "FileWatcher":
        """
        Register callback for event_kind in directory and its subdirectories.

        The directory is watched immediately, even before start_watching().
        The callback is called as callback(watched_directory, filename,
        relative_path, event_kind).
        """
        validate_event_kind(event_kind)
        if not callable(callback):
            raise TypeError("callback must be callable")
        resolved = resolve_directory(directory, self.base_dir)
        self.watch_directory(resolved)
        self.handlers.set(resolved, event_kind, callback)
        return self

    def remove_handler(self, directory: str, event_kind: Optional[str] = None) -> bool:
        return self.handlers.remove(resolve_directory(directory, self.base_dir), event_kind)

    def find_handler(self, directory: str, event_kind: str) -> Optional[Handler]:
        return self.handlers.find(resolve_directory(directory, self.base_dir), event_kind)

    def on(self, event_kind: str, listener: Callable) -> "FileWatcher":
        """
        Subscribe to every event of a kind.

        Listeners for "add", "change" and "unlink" receive (watched_directory,
        filename, relative_path); listeners for "error" receive the exception.
        """
        self.emitter.on(event_kind, listener)
        return self

    def off(self, event_kind: str, listener: Callable) -> "FileWatcher":
        self.emitter.off(event_kind, listener)
        return self

    # Lifecycle

    def watch_directory(self, directory: str) -> bool:
        """
        Watch directory, snapshotting it first. No-op if already watched.

        A directory that an active subscription already observes is not
        snapshotted: files created there since are real additions.

        Returns:
            True if a new subscription was opened
        """
        resolved = resolve_directory(directory, self.base_dir)
        if resolved in self.registry:
            return False
        if self.registry.covers(resolved):
            _require_directory(resolved)
            return self.registry.watch_directory(resolved, report_existing=False)
        self._initial_files = self._initial_files | self._capture_unobserved(resolved)
        return self.registry.watch_directory(resolved)

    def start_watching(self) -> "FileWatcher":
        """
        Snapshot and watch the monitored directories (or the base directory).

        All snapshots complete before any subscription opens. The initial
        file set is rebuilt when nothing is watched yet; otherwise only the
        directories no subscription observes are added to it.

        Raises:
            SnapshotFailure: If a monitored directory cannot be read
        """
        directories = sorted(self._monitored_directories or {self.base_dir})
        directories += [d for d in self.handlers.directories() if d not in directories]
        pending = [d for d in directories if d not in self.registry]
        covered = {d for d in pending if self.registry.covers(d)}

        initial = set(self._initial_files) if len(self.registry) else set()
        for directory in pending:
            if directory in covered:
                _require_directory(directory)
            else:
                initial |= self._capture_unobserved(directory)
        self._initial_files = frozenset(initial)
        logger.info(
            f"Captured {len(self._initial_files)} initial files in {len(directories)} directories"
        )

        for directory in pending:
            if directory in covered:
                self.registry.watch_directory(directory, report_existing=False)
            else:
                self.registry.watch_directory(directory)

        self._running = True
        return self

    def stop_watching(self) -> "FileWatcher":
        """Close every subscription. Handlers and configuration are kept."""
        self.registry.stop_watching()
        self._running = False
        return self

    @property
    def running(self) -> bool:
        return self._running

    def watched_directories(self) -> List[str]:
        return self.registry.directories()

    def status(self) -> Dict:
        """Return a JSON-serializable summary of the watcher state."""
        return {
            "pid": self.process_id,
            "base_dir": self.base_dir,
            "running": self._running,
            "watched_directories": self.registry.directories(),
            "handler_directories": self.handlers.directories(),
            "monitored_directories": sorted(self._monitored_directories),
            "ignored_directories": sorted(self._ignored_directories),
            "allowed_extensions": sorted(self._allowed_extensions),
            "initial_files": len(self._initial_files),
            "events": dict(self.router.stats),
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop_watching()
        return False

    def _capture_unobserved(self, directory: str) -> Set[str]:
        # Files below a nested watched directory are already observed.
        return {f for f in capture_initial_files(directory) if self.registry.owner_of(f) is None}

    def _on_raw_event(self, event_kind: str, directory: str, file_path: str) -> None:
        self.router.dispatch(event_kind, directory, file_path)

    def _on_source_error(self, directory: str, error: Exception) -> None:
        if not isinstance(error, NotificationSourceError):
            error = NotificationSourceError(directory, str(error))
        logger.error(f"Subscription for {directory} closed: {error.reason}")
        self.emitter.emit_error(error)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        warnings.warn(message, ConfigurationWarning, stacklevel=3)
