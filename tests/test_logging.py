"""Tests for logging setup and the log output of the watching engine."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pytest

import pollwatch.logging as logging_module
from pollwatch.config.schema import LoggingConfig, WatchOptions
from pollwatch.logging import TRACE, VERBOSE, get_logger, resolve_level, setup_logging
from pollwatch.watching.filters import make_filter
from pollwatch.watching.scanner import scan_sync
from pollwatch.watching.watcher import Watcher
from tests.utils import INTERVAL_MS, next_changes, write_file


@pytest.fixture
def temp_log_file(tmp_path: Path) -> str:
    """Create a temporary log file path."""
    return str(tmp_path / "test.log")


class TestSetupLogging:
    """Tests for logging configuration."""

    def test_creates_file_handler(self, temp_log_file: str) -> None:
        """Test setup_logging with file configuration."""
        setup_logging(LoggingConfig(level="INFO", file=temp_log_file))

        assert Path(temp_log_file).exists()
        assert get_logger().level == logging.INFO
        assert any(isinstance(h, logging.FileHandler) for h in get_logger().handlers)

    def test_log_file_from_environment(
        self, temp_log_file: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("POLLWATCH_LOG", temp_log_file)
        setup_logging()
        get_logger().warning("from env")
        assert "from env" in Path(temp_log_file).read_text()

    def test_unopenable_file_does_not_raise(self) -> None:
        """A bad log path is not fatal."""
        setup_logging(LoggingConfig(level="DEBUG", file="/nonexistent/dir/log.txt"))
        assert logging_module._initialized is True

    def test_idempotent(self, temp_log_file: str) -> None:
        """Test that calling setup_logging twice is no-op."""
        config = LoggingConfig(file=temp_log_file)
        setup_logging(config)
        handlers = list(get_logger().handlers)

        setup_logging(config)

        assert get_logger().handlers == handlers

    def test_reset_allows_reconfiguration(self, temp_log_file: str) -> None:
        setup_logging(LoggingConfig(level="ERROR", file=temp_log_file))
        logging_module.reset_logging()

        assert get_logger().handlers == []
        setup_logging(LoggingConfig(level="DEBUG", file=temp_log_file))
        assert get_logger().level == logging.DEBUG

    def test_logging_format(self, temp_log_file: str) -> None:
        """Lines carry a time, a lowercase level and the message."""
        setup_logging(LoggingConfig(level="INFO", file=temp_log_file))

        get_logger("watching").info("Test message")

        line = Path(temp_log_file).read_text().strip()
        assert re.fullmatch(r"\d\d:\d\d:\d\d info: Test message", line)

    def test_level_name_untouched_for_other_handlers(
        self, temp_log_file: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Lowercasing the level in our file does not leak into other handlers."""
        setup_logging(LoggingConfig(level="INFO", file=temp_log_file))

        with caplog.at_level(logging.INFO, logger="pollwatch"):
            get_logger("watching").warning("shared record")

        assert "warning: shared record" in Path(temp_log_file).read_text()
        assert caplog.records[-1].levelname == "WARNING"


class TestResolveLevel:
    """Tests for level and verbosity mapping."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("TRACE", TRACE),
            ("DEBUG", logging.DEBUG),
            ("VERBOSE", VERBOSE),
            ("info", logging.INFO),
            ("WARN", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
            ("nonsense", logging.INFO),
        ],
    )
    def test_level_names(self, name: str, expected: int) -> None:
        assert resolve_level(LoggingConfig(level=name)) == expected

    @pytest.mark.parametrize(
        "verbose,expected",
        [(0, logging.ERROR), (1, logging.WARNING), (2, logging.INFO), (3, VERBOSE), (4, TRACE)],
    )
    def test_verbosity(self, verbose: int, expected: int) -> None:
        assert resolve_level(LoggingConfig(verbose=verbose)) == expected

    @pytest.mark.parametrize("verbose,expected", [(9, TRACE), (-1, logging.ERROR)])
    def test_verbosity_out_of_range_clamped(self, verbose: int, expected: int) -> None:
        assert resolve_level(LoggingConfig(verbose=verbose)) == expected

    def test_verbose_wins_over_level(self) -> None:
        assert resolve_level(LoggingConfig(level="ERROR", verbose=4)) == TRACE

    def test_default_is_info(self) -> None:
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO


class TestGetLogger:
    """Tests for get_logger()."""

    def test_root(self) -> None:
        assert get_logger().name == "pollwatch"

    def test_child(self) -> None:
        assert get_logger("watching.scanner").name == "pollwatch.watching.scanner"

    def test_custom_level_names_registered(self) -> None:
        assert logging.getLevelName(VERBOSE) == "VERBOSE"
        assert logging.getLevelName(TRACE) == "TRACE"


class TestEngineLogging:
    """Log output produced while scanning and polling."""

    def test_scan_reports_traversal_time(
        self, root: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        write_file(root / "a.txt")
        write_file(root / "sub" / "b.txt")

        with caplog.at_level(VERBOSE, logger="pollwatch"):
            scan_sync([root], False, make_filter(WatchOptions()))

        assert re.search(r"took \d+ms to traverse 2 files", caplog.text)

    def test_traversal_time_hidden_at_info(
        self, root: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="pollwatch"):
            scan_sync([root], False, make_filter(WatchOptions()))
        assert "traverse" not in caplog.text

    @pytest.mark.asyncio
    async def test_trace_lists_each_change(
        self, root: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(TRACE, logger="pollwatch"):
            async with Watcher(root, interval=INTERVAL_MS) as watcher:
                path = write_file(root / "a.txt")
                await next_changes(watcher)

        assert f"added {path}" in caplog.text
