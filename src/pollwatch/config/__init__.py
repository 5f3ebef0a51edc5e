"""Configuration management for pollwatch.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/pollwatch/ or %PROGRAMDATA%)
- User-level config (~/.config/pollwatch/, ~/.pollwatch/ or %APPDATA%)
- Project-level config ($project_root/.pollwatch/)
- Environment variable overrides (highest priority)

Example usage:
    from pollwatch.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.watch.interval)
"""

from pollwatch.config.loader import (
    deep_merge,
    get_config,
    load_config,
    merge_configs,
    reset_config,
)
from pollwatch.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from pollwatch.config.schema import (
    Config,
    LoggingConfig,
    WatchOptions,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "LoggingConfig",
    "WatchOptions",
    # Merging
    "deep_merge",
    "merge_configs",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
