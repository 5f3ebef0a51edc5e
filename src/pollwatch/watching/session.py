"""Polling loop and its cancellation state.

One PollLoop task per Watcher drives the cycle: sleep until the next tick,
scan, diff against the stored snapshot, publish non-empty change sets onto
a single-consumer channel. Both consumption surfaces of the Watcher read
from that channel, so there is only ever one timer and one scan in flight.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from pollwatch.config.schema import WatchOptions
from pollwatch.logging import TRACE, get_logger
from pollwatch.watching.changes import Changes, Snapshot, diff
from pollwatch.watching.filters import EntryFilter
from pollwatch.watching.scanner import scan

log = get_logger("watching.session")


def next_delay(interval: float, last_tick_start: float, now: float) -> float:
    """Seconds to sleep so ticks stay ``interval`` apart, start to start.

    Time spent scanning and delivering the last change set is deducted,
    so slow consumers do not push later ticks back.
    """
    return max(0.0, interval - (now - last_tick_start))


def _wake(waiter: asyncio.Future[None]) -> None:
    if not waiter.done():
        waiter.set_result(None)


class SessionState:
    """Abort flag and pending timer shared by a loop and its cancel function.

    Must be used from the event loop the Watcher runs on.
    """

    def __init__(self) -> None:
        self.aborted = False
        self._timer: asyncio.TimerHandle | None = None
        self._waiter: asyncio.Future[None] | None = None

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, returning early if aborted."""
        if self.aborted:
            return
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._waiter = waiter
        self._timer = loop.call_later(delay, _wake, waiter)
        try:
            await waiter
        finally:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._waiter = None

    def abort(self) -> None:
        """Set the abort flag and clear the pending timer immediately."""
        self.aborted = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._waiter is not None:
            _wake(self._waiter)

    @property
    def sleeping(self) -> bool:
        return self._timer is not None


@dataclass
class _Stop:
    """Channel marker: no more change sets will follow."""

    error: BaseException | None = None


class PollLoop:
    """Rescans a set of roots on a timer and publishes what changed.

    The stored snapshot is owned by the loop and replaced wholesale at the
    end of every cycle; consumers only ever see Changes objects.
    """

    def __init__(
        self,
        roots: list[str],
        options: WatchOptions,
        accept: EntryFilter,
        baseline: Snapshot,
        state: SessionState,
    ) -> None:
        self._roots = roots
        self._options = options
        self._accept = accept
        self._snapshot = baseline
        self._state = state
        self._channel: asyncio.Queue[Changes | _Stop] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self.error: BaseException | None = None

    @property
    def snapshot_size(self) -> int:
        return len(self._snapshot)

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def finished(self) -> bool:
        return self._closed

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> None:
        """Create the polling task. Must be called from within an async context."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="pollwatch-loop")

    def close(self) -> None:
        """End a loop that was never started, releasing waiting consumers."""
        if self._task is None:
            self._finish(None)

    def _finish(self, error: BaseException | None) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel.put_nowait(_Stop(error))

    async def cycle(self) -> Changes:
        """Scan once, diff against the stored snapshot and replace it."""
        started = time.time()
        current = await scan(
            self._roots,
            self._options.follow_symlink,
            self._accept,
            max_concurrency=self._options.max_concurrency,
            max_symlink_hops=self._options.max_symlink_hops,
        )
        changes = diff(self._snapshot, current, start_time=started)
        self._snapshot = current
        if log.isEnabledFor(TRACE):
            for change in changes:
                log.log(TRACE, "%s %s", change.action.value, change.path)
        return changes

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self._options.interval_seconds
        tick_start = loop.time()
        error: BaseException | None = None
        log.debug("Polling %d root(s) every %dms", len(self._roots), self._options.interval)

        try:
            while not self._state.aborted:
                await self._state.sleep(next_delay(interval, tick_start, loop.time()))
                if self._state.aborted:
                    break
                tick_start = loop.time()
                changes = await self.cycle()
                if self._state.aborted:
                    break
                if changes:
                    self._channel.put_nowait(changes)
        except Exception as e:
            error = e
            self.error = e
            log.debug("Polling loop failed: %r", e)
        finally:
            self._finish(error)
            log.debug("Polling loop finished")

    async def next_changes(self) -> Changes | None:
        """Wait for the next published change set.

        Returns None once the loop has stopped. Change sets still queued
        when the session was aborted are discarded.

        Raises:
            Exception: The error that stopped the loop, if any.
        """
        while True:
            item = await self._channel.get()
            if isinstance(item, _Stop):
                # Leave the marker for any later call
                self._channel.put_nowait(item)
                if item.error is not None:
                    raise item.error
                return None
            if self._state.aborted:
                continue
            return item
