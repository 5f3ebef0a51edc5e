"""Configuration schema dataclasses for pollwatch.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

Pattern = Union[str, re.Pattern]

DEFAULT_INTERVAL_MS = 1000
DEFAULT_MAX_CONCURRENCY = 32
DEFAULT_MAX_SYMLINK_HOPS = 32


@dataclass
class WatchOptions:
    """Change-detection options for a Watcher.

    Example config.yaml:
        watch:
          interval: 500
          follow_symlink: true
          ignore_dotfiles: true
          test: "\\.(py|md)$"
          ignore: "/build/"
    """

    interval: int = DEFAULT_INTERVAL_MS  # Milliseconds between polling cycles
    follow_symlink: bool = False
    ignore_dotfiles: bool = True
    test: Pattern | None = None  # Inclusion regex, None matches everything
    ignore: Pattern | None = None  # Exclusion regex, None matches nothing
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY  # In-flight directory listings
    max_symlink_hops: int = DEFAULT_MAX_SYMLINK_HOPS

    @property
    def interval_seconds(self) -> float:
        return self.interval / 1000.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, VERBOSE, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object.

    Aggregates all configuration sections. All fields use default factories
    to ensure partial configs work correctly with deep merging.
    """

    watch: WatchOptions = field(default_factory=WatchOptions)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are preserved for callers
    extra: dict[str, Any] = field(default_factory=dict)
