"""pollwatch: polling change detection for development tooling."""

__version__ = "0.1.0"

# Public API
from pollwatch.config import Config, WatchOptions, get_config, load_config
from pollwatch.logging import get_logger, setup_logging
from pollwatch.watching import (
    Change,
    ChangeAction,
    Changes,
    ScanError,
    SymlinkLoopError,
    WatchConfigError,
    Watcher,
    WatcherState,
    WatchError,
    WatchStateError,
    watch,
)

__all__ = [
    # Main entry points
    "Watcher",
    "WatcherState",
    "watch",
    # Change sets
    "Change",
    "ChangeAction",
    "Changes",
    # Config
    "Config",
    "WatchOptions",
    "load_config",
    "get_config",
    # Logging
    "get_logger",
    "setup_logging",
    # Errors
    "ScanError",
    "SymlinkLoopError",
    "WatchConfigError",
    "WatchError",
    "WatchStateError",
]
