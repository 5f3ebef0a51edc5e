"""Watcher: the public entry point of the change-detection engine.

A Watcher validates its options, seeds a baseline snapshot of its roots
and then offers two ways to consume change sets from one shared polling
loop:

Pull, by iterating::

    async for changes in Watcher("src", interval=500):
        rebuild(changes.all)

Push, with a callback::

    cancel = Watcher("src", test=r"\\.py$").start(on_changes)
    ...
    cancel()

Polling is preferred over native file watchers for cross-platform
reliability.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from enum import Enum
from typing import Any, Union

from pollwatch.config.loader import get_config
from pollwatch.config.schema import Config, WatchOptions
from pollwatch.logging import get_logger
from pollwatch.watching.changes import Changes
from pollwatch.watching.errors import WatchConfigError, WatchStateError
from pollwatch.watching.filters import make_filter
from pollwatch.watching.scanner import canonical_path, scan_sync
from pollwatch.watching.session import PollLoop, SessionState

log = get_logger("watching")

Roots = Union[str, "os.PathLike[str]", Sequence[Union[str, "os.PathLike[str]"]]]
ChangeCallback = Callable[[Changes], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[BaseException], Union[None, Awaitable[None]]]


class WatcherState(Enum):
    """Lifecycle of a Watcher. STOPPED is terminal."""

    IDLE = "idle"  # Constructed, loop not started
    RUNNING = "running"  # Polling
    STOPPED = "stopped"  # Cancelled or failed


def validate_options(options: WatchOptions) -> None:
    """Check bounds and types of watch options.

    Raises:
        WatchConfigError: If a value is out of range or of the wrong type.
    """
    interval = options.interval
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise WatchConfigError(f"interval must be a number of milliseconds, got {interval!r}")
    if interval < 0:
        raise WatchConfigError(f"interval must be >= 0, got {interval}")

    for name in ("max_concurrency", "max_symlink_hops"):
        value = getattr(options, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise WatchConfigError(f"{name} must be an integer >= 1, got {value!r}")

    for name in ("follow_symlink", "ignore_dotfiles"):
        value = getattr(options, name)
        if not isinstance(value, bool):
            raise WatchConfigError(f"{name} must be true or false, got {value!r}")


def _normalize_roots(roots: Roots) -> list[str]:
    if isinstance(roots, (str, os.PathLike)):
        roots = [roots]
    normalized: list[str] = []
    for root in roots:
        path = canonical_path(root)
        if not os.path.lexists(path):
            raise WatchConfigError(f"Watch root does not exist: {root}")
        if path not in normalized:
            normalized.append(path)
    if not normalized:
        raise WatchConfigError("At least one root path is required")
    return normalized


async def _call(func: Callable[..., Any], arg: Any) -> None:
    result = func(arg)
    if inspect.isawaitable(result):
        await result


class Watcher:
    """Polls directory trees and reports added, modified and deleted files.

    The baseline snapshot is taken when the Watcher is constructed, so
    anything that changes afterwards is reported by the first cycle. The
    polling loop starts on the first pull or on ``start()``; each Watcher
    can be consumed through one surface only and cannot be restarted once
    stopped.

    Example:
        watcher = Watcher(["src", "static"], interval=250, test=r"\\.(ts|css)$")

        def on_change(changes: Changes) -> None:
            print(f"{len(changes)} changes: {changes.all}")

        cancel = watcher.start(on_change)
    """

    def __init__(
        self,
        roots: Roots,
        options: WatchOptions | None = None,
        **overrides: Any,
    ) -> None:
        """Validate configuration and take the baseline snapshot.

        Args:
            roots: A directory or file, or a sequence of them.
            options: Watch options; defaults to WatchOptions().
            **overrides: Individual WatchOptions fields to override.

        Raises:
            WatchConfigError: For invalid options or a missing root.
            ScanError: If the baseline cannot be read.
        """
        try:
            self._options = dataclasses.replace(options or WatchOptions(), **overrides)
        except TypeError as e:
            raise WatchConfigError(f"Unknown watch option: {e}") from e
        validate_options(self._options)
        accept = make_filter(self._options)
        self._roots = _normalize_roots(roots)

        self._session = SessionState()
        baseline = scan_sync(
            self._roots,
            self._options.follow_symlink,
            accept,
            max_symlink_hops=self._options.max_symlink_hops,
        )
        self._loop = PollLoop(self._roots, self._options, accept, baseline, self._session)
        self._consumer: str | None = None
        self._dispatcher: asyncio.Task[None] | None = None
        log.debug("Watching %s (%d files)", ", ".join(self._roots), len(baseline))

    @classmethod
    def from_config(
        cls, roots: Roots, config: Config | None = None, **overrides: Any
    ) -> Watcher:
        """Build a Watcher from the ``watch`` section of a loaded config."""
        config = config or get_config()
        return cls(roots, dataclasses.replace(config.watch), **overrides)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> WatcherState:
        if self._session.aborted or self._loop.finished:
            return WatcherState.STOPPED
        if self._loop.started:
            return WatcherState.RUNNING
        return WatcherState.IDLE

    def is_running(self) -> bool:
        return self.state is WatcherState.RUNNING

    @property
    def roots(self) -> list[str]:
        return list(self._roots)

    @property
    def options(self) -> WatchOptions:
        return dataclasses.replace(self._options)

    @property
    def error(self) -> BaseException | None:
        """The error that stopped the loop, if it failed."""
        return self._loop.error

    @property
    def tracked_count(self) -> int:
        """Number of files in the current snapshot."""
        return self._loop.snapshot_size

    def _attach(self, consumer: str) -> None:
        if self._consumer is None:
            self._consumer = consumer
        elif self._consumer != consumer:
            raise WatchStateError(
                f"Watcher is already consumed by {self._consumer}; cannot also use {consumer}"
            )
        if self.state is WatcherState.IDLE:
            self._loop.start()

    # -------------------------------------------------------------------------
    # Pull surface
    # -------------------------------------------------------------------------

    def __aiter__(self) -> AsyncIterator[Changes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Changes]:
        try:
            while True:
                changes = await self._next()
                if changes is None:
                    return
                yield changes
        finally:
            # Leaving the loop early ends the session
            self.cancel()

    async def __anext__(self) -> Changes:
        changes = await self._next()
        if changes is None:
            raise StopAsyncIteration
        return changes

    async def _next(self) -> Changes | None:
        self._attach("iteration")
        return await self._loop.next_changes()

    # -------------------------------------------------------------------------
    # Push surface
    # -------------------------------------------------------------------------

    def start(
        self,
        callback: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]:
        """Start polling and call ``callback`` once per non-empty cycle.

        Must be called from within an async context. Exceptions raised by
        the callback are logged and polling continues.

        Args:
            callback: Function or coroutine function taking a Changes.
            on_error: Called with the error if the loop fails. Without it
                the error is logged.

        Returns:
            A zero-argument function that cancels the watcher.

        Raises:
            WatchStateError: If the watcher was already started or stopped.
        """
        if self.state is WatcherState.STOPPED:
            raise WatchStateError("Watcher has been stopped and cannot be restarted")
        if self._dispatcher is not None:
            raise WatchStateError("Watcher already started")
        self._attach("callback")
        self._dispatcher = asyncio.create_task(
            self._dispatch(callback, on_error), name="pollwatch-dispatch"
        )
        log.info("Watcher started (interval: %sms)", self._options.interval)
        return self.cancel

    async def _dispatch(self, callback: ChangeCallback, on_error: ErrorCallback | None) -> None:
        while True:
            try:
                changes = await self._loop.next_changes()
            except Exception as e:
                if on_error is None:
                    log.error("Watcher stopped: %s", e)
                else:
                    await _call(on_error, e)
                return
            if changes is None:
                return
            try:
                await _call(callback, changes)
            except Exception as e:
                log.error("Error in change callback: %s", e)

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop future cycles.

        A scan already in progress finishes, but nothing further is
        delivered. Safe to call more than once.
        """
        if self._session.aborted:
            return
        self._session.abort()
        self._loop.close()
        log.debug("Watcher cancelled")

    async def aclose(self) -> None:
        """Cancel and wait for the polling and dispatch tasks to finish."""
        self.cancel()
        current = asyncio.current_task()
        for task in (self._loop.task, self._dispatcher):
            if task is not None and task is not current:
                await asyncio.gather(task, return_exceptions=True)

    async def __aenter__(self) -> Watcher:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def watch(roots: Roots, options: WatchOptions | None = None, **overrides: Any) -> Watcher:
    """Create a Watcher for ``roots``.

    Example:
        async with watch(".", test=r"\\.py$") as watcher:
            async for changes in watcher:
                print(changes.added, changes.modified, changes.deleted)
    """
    return Watcher(roots, options, **overrides)
