"""
Initial-state snapshot of monitored directories.

The snapshot records every file that exists before watching begins so that
the "add" notifications reported for pre-existing files when a subscription
activates can be told apart from genuinely new files.
"""

import logging
import os
from typing import Optional, Set

from filewatcher.errors import SnapshotFailure

logger = logging.getLogger(__name__)


def capture_initial_files(directory: str, files: Optional[Set[str]] = None) -> Set[str]:
    """
    Recursively collect the absolute paths of all files below directory.

    Args:
        directory: Absolute directory to walk
        files: Optional set to add the paths to

    Returns:
        The set of collected file paths

    Raises:
        SnapshotFailure: If directory (or any directory below it) cannot be read
    """
    if files is None:
        files = set()

    if not os.path.isdir(directory):
        raise SnapshotFailure(directory, "not an existing directory")

    before = len(files)
    _walk(directory, files)
    logger.debug(f"Snapshot of {directory}: {len(files) - before} files")
    return files


def _walk(path: str, files: Set[str]) -> None:
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    _walk(entry.path, files)
                else:
                    files.add(os.path.abspath(entry.path))
    except OSError as e:
        raise SnapshotFailure(path, e.strerror or str(e)) from e
