import os

import pytest

from filewatcher.source import NotificationSource, Subscription
from filewatcher.watcher import FileWatcher


class FakeSubscription(Subscription):
    """Subscription that reports existing files but never starts an observer."""

    def open(self, report_existing=True):
        self.active = True
        if report_existing:
            self._report_existing(self.root)
        return self

    def close(self):
        self.active = False


class FakeSource(NotificationSource):
    """In-memory notification source; events are injected with fire()."""

    def __init__(self, report_existing=True):
        super().__init__(report_existing=report_existing)
        self.subscriptions = []

    def subscribe(self, root, ignore, on_event, on_error, report_existing=None):
        if report_existing is None:
            report_existing = self.report_existing
        subscription = FakeSubscription(self, root, ignore, on_event, on_error)
        subscription.open(report_existing=report_existing)
        self.subscriptions.append(subscription)
        return subscription

    def active(self):
        return [s for s in self.subscriptions if s.active]

    def fire(self, event_kind, path):
        path = os.path.abspath(str(path))
        for subscription in self.active():
            subscription.deliver(event_kind, path)

    def fail(self, root, reason="gone"):
        for subscription in self.active():
            if subscription.root == str(root):
                subscription.fail(reason)

    def stop(self):
        for subscription in self.subscriptions:
            subscription.close()


class Recorder:
    """Collects handler calls and generic events."""

    def __init__(self):
        self.calls = []

    def handler(self, directory, filename, relative_path, event_kind):
        self.calls.append((event_kind, directory, filename, relative_path))

    def listener(self, event_kind):
        def record(directory, filename, relative_path):
            self.calls.append((event_kind, directory, filename, relative_path))

        return record

    def kinds(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def watcher(tmp_path, source):
    w = FileWatcher(base_dir=str(tmp_path), source=source)
    yield w
    w.stop_watching()


@pytest.fixture
def recorder():
    return Recorder()
