"""
Shell command handlers configured from YAML.
"""

import logging
import os
import shlex
import subprocess

from filewatcher.errors import FileWatcherError

logger = logging.getLogger(__name__)


class CommandFailed(FileWatcherError):
    """Raised when a handler command exits with a non-zero status."""

    def __init__(self, command, returncode, output=""):
        super().__init__(f"Command '{command}' exited with status {returncode}")
        self.command = command
        self.returncode = returncode
        self.output = output


class CommandHandler:
    """
    Handler that runs a shell command for every event it receives.

    The command is a str.format template with the fields {directory},
    {filename}, {path} (containing directory), {file} (full file path) and
    {event}. Substituted values are shell-quoted, so placeholders must not be
    wrapped in quotes in the template. The raw values are exported as
    FILEWATCHER_* environment variables.
    """

    def __init__(self, command, timeout=None):
        self.command = command
        self.timeout = timeout

    def __call__(self, directory, filename, relative_path, event_kind):
        fields = {
            "directory": directory,
            "filename": filename,
            "path": relative_path,
            "file": os.path.join(relative_path, filename),
            "event": event_kind,
        }
        quoted = {key: shlex.quote(value) for key, value in fields.items()}
        command = self.command.format(**quoted)
        env = dict(os.environ)
        env.update({f"FILEWATCHER_{key.upper()}": value for key, value in fields.items()})

        logger.info(f"Running handler command: {command}")
        result = subprocess.run(
            command,
            shell=True,
            env=env,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.stdout:
            logger.debug(f"Command output: {result.stdout.strip()}")
        if result.returncode != 0:
            raise CommandFailed(command, result.returncode, result.stderr)
        return result

    def __repr__(self):
        return f"CommandHandler({self.command!r})"


def register_command_handlers(watcher, entries, timeout=None):
    """
    Install handler entries loaded by config.load_handlers_configs().

    Returns:
        int: Number of (directory, event) handlers registered.
    """
    count = 0
    for entry in entries:
        handler = CommandHandler(entry["command"], timeout=entry.get("timeout", timeout))
        for event_kind in entry["events"]:
            watcher.set_handler(entry["directory"], event_kind, handler)
            count += 1
    return count
