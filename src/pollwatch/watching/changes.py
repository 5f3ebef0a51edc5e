"""Change sets and the snapshot differ.

A snapshot maps canonical absolute file paths to their modification time
in nanoseconds. Comparing two snapshots yields a Changes object that
classifies every path that differs between them.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Snapshot = dict[str, int]


class ChangeAction(Enum):
    """How a path changed between two snapshots."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class Change:
    """A single classified path."""

    action: ChangeAction
    path: str


@dataclass
class Changes:
    """Paths classified during one polling cycle.

    A path appears in at most one of ``added``, ``modified`` and ``deleted``.
    ``file_count`` is the size of the snapshot the cycle compared against.
    """

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    start_time: float = 0.0
    end_time: float = 0.0
    file_count: int = 0

    @property
    def length(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    def __len__(self) -> int:
        return self.length

    @property
    def all(self) -> list[str]:
        """Every classified path: added, then modified, then deleted."""
        return [*self.added, *self.modified, *self.deleted]

    @property
    def time(self) -> float:
        """Seconds the cycle took to scan and compare."""
        return self.end_time - self.start_time

    def __iter__(self) -> Iterator[Change]:
        for path in self.added:
            yield Change(ChangeAction.ADDED, path)
        for path in self.modified:
            yield Change(ChangeAction.MODIFIED, path)
        for path in self.deleted:
            yield Change(ChangeAction.DELETED, path)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for event payloads."""
        return {
            "added": list(self.added),
            "modified": list(self.modified),
            "deleted": list(self.deleted),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "file_count": self.file_count,
        }


def diff(
    previous: Mapping[str, int],
    current: Mapping[str, int],
    *,
    start_time: float | None = None,
) -> Changes:
    """Classify every path that differs between two snapshots.

    A path only in ``current`` is added, a path in both with a strictly
    newer timestamp is modified, and a path only in ``previous`` is
    deleted. Neither mapping is modified.

    Args:
        previous: Snapshot from the last cycle.
        current: Snapshot just produced.
        start_time: When the cycle started (epoch seconds); defaults to now.

    Returns:
        Changes with ``file_count`` set to ``len(previous)``.
    """
    if start_time is None:
        start_time = time.time()

    remaining = dict(previous)
    added: list[str] = []
    modified: list[str] = []

    for path, mtime in current.items():
        old_mtime = remaining.pop(path, None)
        if old_mtime is None:
            added.append(path)
        elif old_mtime < mtime:
            modified.append(path)

    return Changes(
        added=added,
        modified=modified,
        deleted=list(remaining),
        start_time=start_time,
        end_time=time.time(),
        file_count=len(previous),
    )
