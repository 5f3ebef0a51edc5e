"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Layer merging
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from pollwatch.config.paths import get_config_paths
from pollwatch.config.schema import (
    DEFAULT_INTERVAL_MS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_SYMLINK_HOPS,
    Config,
    LoggingConfig,
    WatchOptions,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("pollwatch.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"watch", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    POLLWATCH_LOG sets the log file, POLLWATCH_INTERVAL the polling
    interval in milliseconds.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("POLLWATCH_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    interval = os.environ.get("POLLWATCH_INTERVAL")
    if interval:
        try:
            overrides.setdefault("watch", {})["interval"] = int(interval)
        except ValueError:
            _log.warning("Ignoring non-integer POLLWATCH_INTERVAL=%r", interval)

    return overrides


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Lay one config layer over another and return the result as a new dict.

    Sections present in both layers merge key by key. A None in the upper
    layer leaves the lower value in place, so a bare ``watch:`` key or an
    empty option does not erase a lower file's setting. Any other value,
    lists included, replaces what was below.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        below = merged.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            value = deep_merge(below, value)
        merged[key] = value
    return merged


def merge_configs(*layers: dict[str, Any]) -> dict[str, Any]:
    """Merge layers given lowest priority first."""
    return functools.reduce(deep_merge, (layer for layer in layers if layer), {})


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Values are carried over as written; range checks happen when a
    Watcher is built from the options.
    """
    watch_data = data.get("watch") or {}
    watch = WatchOptions(
        interval=watch_data.get("interval", DEFAULT_INTERVAL_MS),
        follow_symlink=watch_data.get("follow_symlink", False),
        ignore_dotfiles=watch_data.get("ignore_dotfiles", True),
        test=watch_data.get("test"),
        ignore=watch_data.get("ignore"),
        max_concurrency=watch_data.get("max_concurrency", DEFAULT_MAX_CONCURRENCY),
        max_symlink_hops=watch_data.get("max_symlink_hops", DEFAULT_MAX_SYMLINK_HOPS),
    )

    log_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(watch=watch, logging=logging_config, extra=extra)


def load_config(
    project_root: str | os.PathLike[str] | None = None, reload: bool = False
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($project_root/.pollwatch/config.yaml)
    3. User config (~/.config/pollwatch/ or ~/.pollwatch/ or %APPDATA%)
    4. System config (/etc/pollwatch/ or %PROGRAMDATA%)

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
