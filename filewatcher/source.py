"""
Notification source backed by watchdog.

One NotificationSource owns a single watchdog observer thread. Each
subscription schedules one recursive watch on that observer, translates
watchdog file events into raw add/change/unlink notifications, and filters
out every path accepted by its ignore predicate before forwarding.

Following the usual convention of filesystem watchers, a subscription reports
every file that already exists below its root as "add" when it activates.

Writing a new file produces a creation followed by one or more modifications.
Where the backend reports file closes (inotify), those modifications are
folded into the "add" until the writer closes the file.
"""

import logging
import os
import sys
import threading
from typing import Callable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from filewatcher.errors import NotificationSourceError
from filewatcher.events import ADD, CHANGE, UNLINK
from filewatcher.paths import is_within

logger = logging.getLogger(__name__)

IgnorePredicate = Callable[[str], bool]
# on_event(event_kind, file_path)
EventCallback = Callable[[str, str], None]
# on_error(error)
ErrorCallback = Callable[[Exception], None]


class _SubscriptionHandler(FileSystemEventHandler):
    """Translates watchdog events for one subscription."""

    def __init__(self, subscription: "Subscription", coalesce_creation: bool = False):
        self.subscription = subscription
        self.coalesce_creation = coalesce_creation
        # Files created but not closed yet by their writer.
        self.being_written = set()

    def on_created(self, event):
        if event.is_directory:
            return
        src_path = os.fsdecode(event.src_path)
        if self.coalesce_creation:
            self.being_written.add(src_path)
        self.subscription.deliver(ADD, src_path)

    def on_modified(self, event):
        if event.is_directory:
            return
        src_path = os.fsdecode(event.src_path)
        if src_path in self.being_written:
            return
        self.subscription.deliver(CHANGE, src_path)

    def on_closed(self, event):
        if not event.is_directory:
            self.being_written.discard(os.fsdecode(event.src_path))

    def on_deleted(self, event):
        src_path = os.fsdecode(event.src_path)
        self.being_written.discard(src_path)
        if event.is_directory:
            if src_path == self.subscription.root:
                self.subscription.fail("watched directory was removed")
            return
        self.subscription.deliver(UNLINK, src_path)

    def on_moved(self, event):
        src_path = os.fsdecode(event.src_path)
        self.being_written.discard(src_path)
        if event.is_directory:
            if src_path == self.subscription.root:
                self.subscription.fail("watched directory was moved away")
            return
        self.subscription.deliver(UNLINK, src_path)
        self.subscription.deliver(ADD, os.fsdecode(event.dest_path))


class Subscription:
    """
    A live recursive watch on one root directory.

    Attributes:
        root: Absolute directory being watched
        active: False once the subscription has been closed
    """

    def __init__(
        self,
        source: "NotificationSource",
        root: str,
        ignore: IgnorePredicate,
        on_event: EventCallback,
        on_error: ErrorCallback,
    ):
        self.source = source
        self.root = root
        self.ignore = ignore
        self.on_event = on_event
        self.on_error = on_error
        self.active = False
        self._watch = None

    def open(self, report_existing: bool = True) -> "Subscription":
        """
        Activate the subscription.

        Raises:
            NotificationSourceError: If the backend cannot watch the root
        """
        if not os.path.isdir(self.root):
            raise NotificationSourceError(self.root, "not an existing directory")

        self.active = True
        if report_existing:
            self._report_existing(self.root)

        observer = self.source.observer()
        try:
            handler = _SubscriptionHandler(self, self.source.coalesces_creation)
            self._watch = observer.schedule(handler, self.root, recursive=True)
        except OSError as e:
            self.active = False
            raise NotificationSourceError(self.root, e.strerror or str(e)) from e

        logger.debug(f"Subscribed to {self.root}")
        return self

    def close(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._watch is not None:
            self.source.unschedule(self._watch)
            self._watch = None
        logger.debug(f"Closed subscription for {self.root}")

    def deliver(self, event_kind: str, path: str) -> None:
        if not self.active:
            return
        if not is_within(path, self.root) or self.ignore(path):
            return
        self.on_event(event_kind, path)

    def fail(self, reason: str) -> None:
        if not self.active:
            return
        error = NotificationSourceError(self.root, reason)
        logger.warning(str(error))
        self.close()
        self.on_error(error)

    def _report_existing(self, path: str) -> None:
        try:
            with os.scandir(path) as entries:
                for entry in entries:
                    if self.ignore(entry.path):
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        self._report_existing(entry.path)
                    else:
                        self.deliver(ADD, os.path.abspath(entry.path))
        except OSError as e:
            logger.warning(f"Error scanning {path}: {e}")


class NotificationSource:
    """
    Factory for subscriptions sharing one watchdog observer.

    Args:
        use_polling: Use watchdog's PollingObserver instead of OS events
        poll_interval: Polling interval in seconds
        report_existing: Report pre-existing files as "add" on activation
    """

    def __init__(
        self,
        use_polling: bool = False,
        poll_interval: float = 1.0,
        report_existing: bool = True,
    ):
        self.use_polling = use_polling
        self.poll_interval = poll_interval
        self.report_existing = report_existing
        self._observer = None
        self._lock = threading.RLock()

    def subscribe(
        self,
        root: str,
        ignore: IgnorePredicate,
        on_event: EventCallback,
        on_error: ErrorCallback,
        report_existing: Optional[bool] = None,
    ) -> Subscription:
        """
        Open a subscription on root.

        report_existing overrides the source default for this subscription.
        """
        if report_existing is None:
            report_existing = self.report_existing
        subscription = Subscription(self, root, ignore, on_event, on_error)
        return subscription.open(report_existing=report_existing)

    @property
    def coalesces_creation(self) -> bool:
        """True if the observer reports file closes, which only inotify does."""
        return not self.use_polling and sys.platform.startswith("linux")

    def observer(self):
        """Return the running observer, starting one if needed."""
        with self._lock:
            if self._observer is None:
                if self.use_polling:
                    self._observer = PollingObserver(timeout=self.poll_interval)
                    logger.debug(
                        f"Using polling observer (interval: {self.poll_interval}s)"
                    )
                else:
                    self._observer = Observer()
                    logger.debug("Using OS event observer")
                self._observer.daemon = True
                self._observer.start()
            return self._observer

    def unschedule(self, watch) -> None:
        # The observer lock is taken by unschedule(); never nest it inside ours.
        with self._lock:
            observer = self._observer
        if observer is None:
            return
        try:
            observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch on {watch.path} was already removed")

    def stop(self) -> None:
        """Stop the observer thread; no notification is delivered afterwards."""
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        if threading.current_thread() is not observer:
            observer.join()
        logger.debug("Notification source stopped")

    @property
    def running(self) -> bool:
        return self._observer is not None
