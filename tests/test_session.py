"""Tests for the polling loop and its cancellation state."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from pollwatch.config.schema import WatchOptions
from pollwatch.watching.errors import ScanError
from pollwatch.watching.filters import make_filter
from pollwatch.watching.scanner import scan_sync
from pollwatch.watching.session import PollLoop, SessionState, next_delay
from tests.utils import bump_mtime, write_file


def _make_loop(root: Path, **options) -> tuple[PollLoop, SessionState]:
    opts = WatchOptions(**options)
    accept = make_filter(opts)
    state = SessionState()
    baseline = scan_sync([str(root)], opts.follow_symlink, accept)
    return PollLoop([str(root)], opts, accept, baseline, state), state


class TestNextDelay:
    """Tests for anti-drift scheduling."""

    def test_full_interval_when_no_time_passed(self) -> None:
        assert next_delay(1.0, last_tick_start=10.0, now=10.0) == 1.0

    def test_elapsed_time_deducted(self) -> None:
        """Time spent since the last tick started shortens the sleep."""
        assert next_delay(1.0, last_tick_start=10.0, now=10.25) == pytest.approx(0.75)

    def test_never_negative(self) -> None:
        """A cycle slower than the interval schedules the next tick at once."""
        assert next_delay(1.0, last_tick_start=10.0, now=12.5) == 0.0

    def test_zero_interval(self) -> None:
        assert next_delay(0.0, last_tick_start=5.0, now=5.0) == 0.0


class TestSessionState:
    """Tests for the abort flag and timer."""

    @pytest.mark.asyncio
    async def test_sleep_completes(self) -> None:
        state = SessionState()
        await asyncio.wait_for(state.sleep(0.01), timeout=1.0)
        assert not state.sleeping

    @pytest.mark.asyncio
    async def test_abort_wakes_sleeper(self) -> None:
        """Aborting clears the timer and ends the sleep immediately."""
        state = SessionState()
        sleeper = asyncio.create_task(state.sleep(60))
        await asyncio.sleep(0)
        assert state.sleeping

        state.abort()

        await asyncio.wait_for(sleeper, timeout=1.0)
        assert state.aborted
        assert not state.sleeping

    @pytest.mark.asyncio
    async def test_sleep_after_abort_returns_at_once(self) -> None:
        state = SessionState()
        state.abort()
        await asyncio.wait_for(state.sleep(60), timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancelled_sleep_clears_timer(self) -> None:
        state = SessionState()
        sleeper = asyncio.create_task(state.sleep(60))
        await asyncio.sleep(0)
        sleeper.cancel()
        with pytest.raises(asyncio.CancelledError):
            await sleeper
        assert not state.sleeping


class TestPollLoop:
    """Tests for PollLoop."""

    @pytest.mark.asyncio
    async def test_cycle_replaces_snapshot(self, root: Path) -> None:
        """Each cycle diffs against the previous one, not the baseline."""
        existing = write_file(root / "a.txt")
        loop, _ = _make_loop(root)
        assert loop.snapshot_size == 1

        added = write_file(root / "b.txt")
        first = await loop.cycle()
        assert first.added == [added]
        assert first.file_count == 1

        bump_mtime(Path(existing))
        second = await loop.cycle()
        assert second.added == []
        assert second.modified == [existing]
        assert second.file_count == 2
        assert loop.snapshot_size == 2

    @pytest.mark.asyncio
    async def test_publishes_only_non_empty_cycles(self, root: Path) -> None:
        loop, state = _make_loop(root, interval=10)
        loop.start()
        try:
            await asyncio.sleep(0.08)
            path = write_file(root / "new.txt")
            changes = await asyncio.wait_for(loop.next_changes(), timeout=2.0)
            assert changes is not None
            assert changes.added == [path]
        finally:
            state.abort()
            await loop.task

    @pytest.mark.asyncio
    async def test_abort_ends_loop_without_scanning(self, root: Path) -> None:
        loop, state = _make_loop(root, interval=60_000)
        with patch("pollwatch.watching.session.scan", new=AsyncMock(return_value={})) as scan:
            loop.start()
            await asyncio.sleep(0)
            state.abort()
            await asyncio.wait_for(loop.task, timeout=1.0)
        scan.assert_not_called()
        assert loop.finished
        assert await loop.next_changes() is None

    @pytest.mark.asyncio
    async def test_queued_changes_dropped_after_abort(self, root: Path) -> None:
        """Nothing is handed out once the session is aborted."""
        loop, state = _make_loop(root, interval=0)
        write_file(root / "a.txt")
        loop.start()
        while loop._channel.empty():
            await asyncio.sleep(0.01)
        state.abort()
        await loop.task
        assert await loop.next_changes() is None

    @pytest.mark.asyncio
    async def test_scan_error_is_terminal(self, root: Path) -> None:
        loop, _ = _make_loop(root, interval=0)
        error = ScanError("Cannot list /x: denied", "/x")
        with patch("pollwatch.watching.session.scan", new=AsyncMock(side_effect=error)):
            loop.start()
            with pytest.raises(ScanError):
                await asyncio.wait_for(loop.next_changes(), timeout=1.0)
        assert loop.error is error
        assert loop.finished
        # The marker stays in place for later readers
        with pytest.raises(ScanError):
            await loop.next_changes()

    @pytest.mark.asyncio
    async def test_close_before_start_releases_reader(self, root: Path) -> None:
        loop, _ = _make_loop(root)
        loop.close()
        assert await asyncio.wait_for(loop.next_changes(), timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_ticks_scheduled_from_tick_start(self, root: Path) -> None:
        """A slow scan does not add to the gap before the next tick."""
        loop, state = _make_loop(root, interval=100)
        ticks: list[float] = []
        event_loop = asyncio.get_running_loop()

        async def slow_scan(*args, **kwargs):
            ticks.append(event_loop.time())
            await asyncio.sleep(0.06)
            return {}

        with patch("pollwatch.watching.session.scan", new=slow_scan):
            loop.start()
            while len(ticks) < 3:
                await asyncio.sleep(0.01)
            state.abort()
            await loop.task

        gaps = [b - a for a, b in zip(ticks, ticks[1:])]
        # Without anti-drift scheduling each gap would be ~0.16s
        assert all(gap < 0.145 for gap in gaps)
