"""
Registry of active subscriptions, one per watched directory.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from filewatcher.paths import is_within
from filewatcher.source import NotificationSource, Subscription

logger = logging.getLogger(__name__)


class WatchRegistry:
    """
    Keeps at most one subscription per watched directory.

    Args:
        source: Notification source used to open subscriptions
        ignore: Predicate shared by every subscription
        on_event: Called as on_event(event_kind, watched_directory, file_path)
        on_error: Called as on_error(watched_directory, error) after the
            failed subscription has been removed
    """

    def __init__(
        self,
        source: NotificationSource,
        ignore: Callable[[str], bool],
        on_event: Callable[[str, str, str], None],
        on_error: Callable[[str, Exception], None],
    ):
        self.source = source
        self.ignore = ignore
        self.on_event = on_event
        self.on_error = on_error
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = threading.RLock()

    def watch_directory(self, directory: str, report_existing: Optional[bool] = None) -> bool:
        """
        Subscribe to directory unless it is already watched.

        Args:
            directory: Absolute directory to watch
            report_existing: Override the source setting for reporting
                pre-existing files as "add" on activation

        Returns:
            True if a new subscription was opened

        Raises:
            NotificationSourceError: If the backend cannot watch directory
        """
        with self._lock:
            if directory in self._subscriptions:
                return False
            # Placeholder for idempotence only. owner_of() skips it, so an
            # enclosing subscription keeps dispatching nested files until
            # this one is scheduled.
            self._subscriptions = {**self._subscriptions, directory: None}

        # Opened outside the lock: activation reports existing files, and the
        # callbacks of those events may register handlers themselves.
        try:
            subscription = self.source.subscribe(
                directory,
                self.ignore,
                lambda kind, path: self.on_event(kind, directory, path),
                lambda error: self._subscription_failed(directory, error),
                report_existing=report_existing,
            )
        except Exception:
            with self._lock:
                self._discard(directory)
            raise

        with self._lock:
            stopped = directory not in self._subscriptions
            if not stopped:
                self._subscriptions = {**self._subscriptions, directory: subscription}
        if stopped:
            subscription.close()
            return False
        logger.info(f"Watching directory: {directory}")
        return True

    def unwatch_directory(self, directory: str) -> bool:
        with self._lock:
            if directory not in self._subscriptions:
                return False
            subscription = self._discard(directory)
        if subscription is None:
            return True
        subscription.close()
        logger.info(f"Stopped watching directory: {directory}")
        return True

    def stop_watching(self) -> None:
        """Close every subscription and stop the notification source."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions = {}
        for subscription in subscriptions:
            if subscription is not None:
                subscription.close()
        self.source.stop()
        if subscriptions:
            logger.info(f"Closed {len(subscriptions)} subscriptions")

    def owner_of(self, path: str) -> Optional[str]:
        """Return the nearest watched directory containing path."""
        owner = None
        for directory, subscription in self._subscriptions.items():
            if subscription is None:
                continue
            if is_within(path, directory) and (owner is None or len(directory) > len(owner)):
                owner = directory
        return owner

    def covers(self, directory: str) -> bool:
        """True if an active subscription already observes directory."""
        return self.owner_of(directory) is not None

    def directories(self) -> List[str]:
        return sorted(self._subscriptions)

    def __contains__(self, directory: str) -> bool:
        return directory in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _subscription_failed(self, directory: str, error: Exception) -> None:
        with self._lock:
            self._discard(directory)
        self.on_error(directory, error)

    def _discard(self, directory: str) -> Optional[Subscription]:
        # Copy on write; owner_of() reads the mapping without the lock.
        remaining = dict(self._subscriptions)
        subscription = remaining.pop(directory, None)
        self._subscriptions = remaining
        return subscription
