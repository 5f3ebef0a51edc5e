"""Shared test utilities for pollwatch tests."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from pollwatch.watching import Changes, Watcher

# Fast enough for tests, slow enough to stay stable on loaded CI machines
INTERVAL_MS = 50


def write_file(path: Path, content: str = "") -> str:
    """Create a file (and its parents) and return its snapshot key."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return str(path)


def bump_mtime(path: Path, seconds: int = 5) -> None:
    """Move a file's modification time forward.

    Filesystems with coarse timestamps can give two quick writes the same
    mtime, so tests set it explicitly instead of rewriting the file.
    """
    st = os.stat(path)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


async def next_changes(watcher: Watcher, timeout: float = 2.0) -> Changes:
    """Pull the next change set, failing the test if none arrives in time."""
    return await asyncio.wait_for(watcher.__anext__(), timeout=timeout)
