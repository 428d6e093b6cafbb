"""
FileWatcher: directory-scoped file event routing.

Watches directory trees for added, changed and removed files and dispatches
each event to generic listeners and to the nearest handler registered for the
directory.
"""

__version__ = "0.1.0"
