"""Exceptions raised by the change-detection engine."""

from __future__ import annotations


class WatchError(Exception):
    """Base class for all pollwatch errors."""

    pass


class WatchConfigError(WatchError, ValueError):
    """Invalid watcher configuration.

    Raised when:
    - An inclusion or exclusion pattern is not a valid regular expression
    - The interval is negative or not a number
    - A concurrency or symlink bound is below 1
    - A root does not exist when the watcher is constructed
    """

    pass


class WatchStateError(WatchError, RuntimeError):
    """A lifecycle operation is not allowed in the watcher's current state."""

    pass


class ScanError(WatchError):
    """A directory pass hit an I/O failure it cannot recover from.

    Missing entries are not errors (they are simply absent from the
    snapshot); this covers permission problems and device errors.
    """

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class SymlinkLoopError(ScanError):
    """A symlink chain did not reach a real file within the hop limit."""

    def __init__(self, path: str, hops: int) -> None:
        super().__init__(f"Symlink chain starting at {path} exceeds {hops} hops", path)
        self.hops = hops
