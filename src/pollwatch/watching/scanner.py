"""Recursive directory scanning into snapshots.

A scan walks one or more roots and records every tracked regular file as
``path -> st_mtime_ns``. Directories are traversed but never recorded.
Symlinks are skipped unless following is enabled, in which case chains
are resolved hop by hop up to a fixed limit, and directories are walked
under their real paths. A file therefore has the same key whichever
route reaches it first.

Two walks share the per-directory step (``_Walk.expand``):

- ``scan_sync`` walks with an explicit stack on the calling thread. The
  Watcher uses it to seed its baseline at construction.
- ``scan`` runs each directory listing in a worker thread and fans out
  over sub-directories as tasks, bounded by a semaphore.

Entries that disappear while being inspected are treated as absent. Any
other OSError aborts the scan with ScanError.
"""

from __future__ import annotations

import asyncio
import os
import stat
import time
from collections.abc import Coroutine, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from pollwatch.config.schema import DEFAULT_MAX_CONCURRENCY, DEFAULT_MAX_SYMLINK_HOPS
from pollwatch.logging import TRACE, VERBOSE, get_logger
from pollwatch.watching.changes import Snapshot
from pollwatch.watching.errors import ScanError, SymlinkLoopError

if TYPE_CHECKING:
    from pollwatch.watching.filters import EntryFilter

log = get_logger("watching.scanner")

# Raised when an entry vanishes between being listed and being inspected
_GONE = (FileNotFoundError, NotADirectoryError)


class EntryKind(Enum):
    """Type of a filesystem object, as seen without following links."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"  # fifo, socket, device


@dataclass(frozen=True)
class Entry:
    """A filesystem object seen during one scan pass."""

    path: str
    name: str
    kind: EntryKind
    mtime: int  # st_mtime_ns
    is_root: bool = False

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_symlink(self) -> bool:
        return self.kind is EntryKind.SYMLINK


def canonical_path(path: str | os.PathLike[str]) -> str:
    """Absolute, normalized form of a path, used for snapshot keys."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def _kind_of(mode: int) -> EntryKind:
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.FILE
    return EntryKind.OTHER


def stat_entry(path: str, is_root: bool = False) -> Entry | None:
    """lstat a path into an Entry, or None if it no longer exists.

    Raises:
        ScanError: If the path exists but cannot be inspected.
    """
    try:
        st = os.lstat(path)
    except _GONE:
        return None
    except OSError as e:
        raise ScanError(f"Cannot stat {path}: {e}", path) from e
    return Entry(
        path=path,
        name=os.path.basename(path),
        kind=_kind_of(st.st_mode),
        mtime=st.st_mtime_ns,
        is_root=is_root,
    )


def resolve_symlink(
    path: str, max_hops: int = DEFAULT_MAX_SYMLINK_HOPS, is_root: bool = False
) -> Entry | None:
    """Follow a symlink chain to the first entry that is not a link.

    Relative link targets are resolved against the real directory holding
    the link, and ``..`` is left for the OS to resolve, so a target such as
    ``linked_dir/../file`` lands where the kernel would put it. The returned
    entry carries the real path of the target. Returns None for a dangling
    chain.

    Raises:
        SymlinkLoopError: If the chain is longer than ``max_hops``.
        ScanError: If a link cannot be read.
    """
    current = path
    for _ in range(max_hops):
        try:
            target = os.readlink(current)
        except _GONE:
            return None
        except OSError as e:
            raise ScanError(f"Cannot read symlink {current}: {e}", current) from e
        current = os.path.join(os.path.realpath(os.path.dirname(current)), target)
        entry = stat_entry(current, is_root=is_root)
        if entry is None:
            return None
        if not entry.is_symlink:
            real = os.path.realpath(current)
            return replace(entry, path=real, name=os.path.basename(real))
    raise SymlinkLoopError(path, max_hops)


class _Walk:
    """Mutable state of a single scan pass."""

    def __init__(self, accept: EntryFilter, follow_symlink: bool, max_symlink_hops: int) -> None:
        self.accept = accept
        self.follow_symlink = follow_symlink
        self.max_symlink_hops = max_symlink_hops
        self.snapshot: Snapshot = {}
        self.failed = False
        # Directories already claimed for expansion
        self._visited: set[str] = set()

    def _follow(self, entry: Entry) -> Entry | None:
        if not entry.is_symlink:
            return entry
        if not self.follow_symlink:
            return None
        target = resolve_symlink(entry.path, self.max_symlink_hops, is_root=entry.is_root)
        if target is None or not self.accept(target):
            return None
        return target

    def _take(self, entry: Entry, files: Snapshot, subdirs: list[str]) -> None:
        path = entry.path
        if self.follow_symlink and (entry.is_dir or entry.is_root):
            # Walk and key by real path so every route to a file agrees
            path = os.path.realpath(path)
        if entry.is_dir:
            subdirs.append(path)
        elif entry.is_file:
            files[path] = entry.mtime

    def open_root(self, root: str) -> tuple[Snapshot, list[str]]:
        """Inspect a root path: a tracked file, a directory to descend, or nothing."""
        files: Snapshot = {}
        subdirs: list[str] = []
        entry = stat_entry(root, is_root=True)
        if entry is not None and self.accept(entry):
            entry = self._follow(entry)
            if entry is not None:
                self._take(entry, files, subdirs)
        return files, subdirs

    def expand(self, path: str) -> tuple[Snapshot, list[str]]:
        """List one directory.

        Returns the tracked files found directly in it and the
        sub-directories to descend into. Safe to run in a worker thread:
        it only reads ``self``.
        """
        files: Snapshot = {}
        subdirs: list[str] = []
        try:
            with os.scandir(path) as it:
                children = list(it)
        except _GONE:
            return files, subdirs
        except OSError as e:
            raise ScanError(f"Cannot list {path}: {e}", path) from e

        for child in children:
            try:
                st = child.stat(follow_symlinks=False)
            except _GONE:
                continue
            except OSError as e:
                raise ScanError(f"Cannot stat {child.path}: {e}", child.path) from e
            entry = Entry(
                path=child.path,
                name=child.name,
                kind=_kind_of(st.st_mode),
                mtime=st.st_mtime_ns,
            )
            if not self.accept(entry):
                continue
            resolved = self._follow(entry)
            if resolved is not None:
                self._take(resolved, files, subdirs)
        return files, subdirs

    def unvisited(self, subdirs: Iterable[str]) -> list[str]:
        """Claim directories for expansion, dropping ones already walked."""
        fresh: list[str] = []
        for path in subdirs:
            if path in self._visited:
                log.log(TRACE, "Skipping already visited directory %s", path)
                continue
            self._visited.add(path)
            fresh.append(path)
        return fresh


def _log_pass(started: float, walk: _Walk) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    log.log(VERBOSE, "took %dms to traverse %d files", elapsed_ms, len(walk.snapshot))


def scan_sync(
    roots: Iterable[str | os.PathLike[str]],
    follow_symlink: bool,
    accept: EntryFilter,
    *,
    max_symlink_hops: int = DEFAULT_MAX_SYMLINK_HOPS,
) -> Snapshot:
    """Walk the roots on the calling thread and return their snapshot."""
    started = time.perf_counter()
    walk = _Walk(accept, follow_symlink, max_symlink_hops)
    pending: list[str] = []

    for root in roots:
        files, subdirs = walk.open_root(canonical_path(root))
        walk.snapshot.update(files)
        pending.extend(walk.unvisited(subdirs))

    while pending:
        files, subdirs = walk.expand(pending.pop())
        walk.snapshot.update(files)
        pending.extend(walk.unvisited(subdirs))

    _log_pass(started, walk)
    return walk.snapshot


async def _join(coros: Iterable[Coroutine[Any, Any, None]]) -> None:
    """Run coroutines as tasks; if one fails, cancel the rest and wait for them."""
    tasks = [asyncio.create_task(coro) for coro in coros]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def scan(
    roots: Iterable[str | os.PathLike[str]],
    follow_symlink: bool,
    accept: EntryFilter,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    max_symlink_hops: int = DEFAULT_MAX_SYMLINK_HOPS,
) -> Snapshot:
    """Walk the roots concurrently and return their snapshot.

    Each directory listing runs in a worker thread. Sub-directories are
    scanned concurrently and joined into one snapshot; at most
    ``max_concurrency`` listings are in flight at any time. When one
    listing fails, the other sub-scans are cancelled and awaited before
    the error propagates, so no scan task outlives the call.

    Raises:
        ScanError: On any I/O failure other than a vanished entry.
    """
    started = time.perf_counter()
    walk = _Walk(accept, follow_symlink, max_symlink_hops)
    limiter = asyncio.Semaphore(max_concurrency)

    async def descend(path: str) -> None:
        async with limiter:
            if walk.failed:
                return
            try:
                files, subdirs = await asyncio.to_thread(walk.expand, path)
            except ScanError:
                walk.failed = True
                raise
        walk.snapshot.update(files)
        await _join(descend(sub) for sub in walk.unvisited(subdirs))

    top: list[str] = []
    for root in roots:
        files, subdirs = await asyncio.to_thread(walk.open_root, canonical_path(root))
        walk.snapshot.update(files)
        top.extend(walk.unvisited(subdirs))

    await _join(descend(path) for path in top)

    _log_pass(started, walk)
    return walk.snapshot
