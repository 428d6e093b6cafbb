"""
Exceptions and warnings raised by FileWatcher.
"""


class FileWatcherError(Exception):
    """Base class for all FileWatcher errors."""

    pass


class ConfigurationWarning(UserWarning):
    """Warning issued for lenient configuration mistakes."""

    pass


class SnapshotFailure(FileWatcherError):
    """Raised when a monitored directory cannot be snapshotted."""

    def __init__(self, directory, reason):
        super().__init__(f"Cannot snapshot {directory}: {reason}")
        self.directory = directory
        self.reason = reason


class NotificationSourceError(FileWatcherError):
    """Raised when the notification backend fails for a watched directory."""

    def __init__(self, directory, reason):
        super().__init__(f"Notification source failed for {directory}: {reason}")
        self.directory = directory
        self.reason = reason


class HandlerInvocationError(FileWatcherError):
    """Wraps an exception raised by a listener or handler callback."""

    def __init__(self, event_kind, file_path, original):
        super().__init__(
            f"Handler for '{event_kind}' on {file_path} raised "
            f"{type(original).__name__}: {original}"
        )
        self.event_kind = event_kind
        self.file_path = file_path
        self.original = original
