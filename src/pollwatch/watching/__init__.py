"""Polling-based change detection for directory trees.

Scans watched roots on a timer, diffs each snapshot against the previous
one and reports added, modified and deleted files as Changes objects,
either through async iteration or a callback.
"""

from pollwatch.watching.changes import Change, ChangeAction, Changes, Snapshot, diff
from pollwatch.watching.errors import (
    ScanError,
    SymlinkLoopError,
    WatchConfigError,
    WatchError,
    WatchStateError,
)
from pollwatch.watching.filters import make_filter
from pollwatch.watching.scanner import Entry, EntryKind, canonical_path, scan, scan_sync
from pollwatch.watching.session import PollLoop, SessionState
from pollwatch.watching.watcher import Watcher, WatcherState, watch

__all__ = [
    # Facade
    "Watcher",
    "WatcherState",
    "watch",
    # Data model
    "Change",
    "ChangeAction",
    "Changes",
    "Entry",
    "EntryKind",
    "Snapshot",
    # Building blocks
    "canonical_path",
    "diff",
    "make_filter",
    "scan",
    "scan_sync",
    "PollLoop",
    "SessionState",
    # Errors
    "ScanError",
    "SymlinkLoopError",
    "WatchConfigError",
    "WatchError",
    "WatchStateError",
]
