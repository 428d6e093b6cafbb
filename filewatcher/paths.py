"""
Path helpers for FileWatcher.

All helpers work on plain strings with os.path so the results can be used
directly as dictionary keys for watched directories and handlers.
"""

import os
from typing import Iterator


def resolve_directory(directory: str, base_dir: str) -> str:
    """
    Resolve a directory to a canonical absolute path.

    Relative directories are resolved against base_dir. The directory does
    not need to exist.

    Args:
        directory: Relative or absolute directory path
        base_dir: Absolute base directory

    Returns:
        Normalized absolute path without a trailing separator
    """
    return os.path.normpath(os.path.join(base_dir, os.path.expanduser(directory)))


def is_within(path: str, directory: str) -> bool:
    """Return True if path equals directory or lies somewhere below it."""
    if path == directory:
        return True
    prefix = directory if directory.endswith(os.sep) else directory + os.sep
    return path.startswith(prefix)


def parent_directories(directory: str) -> Iterator[str]:
    """
    Yield directory and each of its ancestors, nearest first.

    Stops after the filesystem root, where the parent of a path is the path
    itself.
    """
    current = directory
    while True:
        yield current
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def containing_directory(file_path: str, base_dir: str) -> str:
    """
    Absolute path of the directory holding file_path.

    The path is computed relative to base_dir with the filename stripped, then
    prefixed with base_dir again.
    """
    parent = os.path.dirname(file_path)
    try:
        relative = os.path.relpath(parent, base_dir)
    except ValueError:
        # Different drives on Windows.
        return os.path.normpath(parent)
    return os.path.normpath(os.path.join(base_dir, relative))


def split_filename(file_path: str):
    """Return (filename, lowercased extension including the dot)."""
    filename = os.path.basename(file_path)
    extension = os.path.splitext(filename)[1].lower()
    return filename, extension
