"""Logging for pollwatch.

Everything logs under the ``pollwatch`` logger. Two levels are added to the
standard ones: VERBOSE (15) for per-scan timings and TRACE (5) for every
classified path. Nothing is written until setup_logging() runs; it then
logs to a file (from config or POLLWATCH_LOG) or, on a real console, to
stderr.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pollwatch.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("pollwatch")

_initialized = False

# Indexed by the ``verbose`` setting; larger values clamp to TRACE
_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_FORMAT = "%(asctime)s %(level)s: %(message)s"


def _lowercase_level(record: logging.LogRecord) -> bool:
    record.level = record.levelname.lower()
    return True


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for a logging config.

    ``verbose`` (0-4) wins over ``level``. Level names are looked up in the
    logging registry, so TRACE and VERBOSE work; unknown names give INFO.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        index = min(max(config.verbose, 0), len(_VERBOSITY) - 1)
        return _VERBOSITY[index]
    if config.level:
        level = logging.getLevelName(config.level.upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def _open_handler(log_path: str | None) -> logging.Handler | None:
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), encoding="utf-8")
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[pollwatch] Failed to open log file: {e}", file=sys.stderr)
    # Pipes from an IDE or a parent process stay quiet
    if sys.stderr.isatty():
        return logging.StreamHandler(sys.stderr)
    return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the pollwatch logger once; later calls do nothing.

    Verbosity levels (``logging.verbose`` in config):
        0 = error
        1 = warning
        2 = info (default)
        3 = verbose, per-scan timings
        4 = trace, every added, modified and deleted path
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    log_path = (config.file if config else None) or os.environ.get("POLLWATCH_LOG")
    handler = _open_handler(log_path)
    if handler is None:
        return
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    handler.addFilter(_lowercase_level)
    logger.addHandler(handler)


def reset_logging() -> None:
    """Drop installed handlers so setup_logging() can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """The pollwatch logger, or a child of it such as ``watching.scanner``."""
    if name:
        return logger.getChild(name)
    return logger
