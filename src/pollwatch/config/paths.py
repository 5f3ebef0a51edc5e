"""Where pollwatch looks for config.yaml.

Three layers, lowest priority first: system, user, project. Only
locations that can be named on this platform are returned; the files
themselves may not exist.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "pollwatch"
# Per-project directory, also the user fallback under $HOME
DOT_DIR = ".pollwatch"


def _app_file(base: str | os.PathLike[str]) -> Path:
    return Path(base) / APP_NAME / CONFIG_FILENAME


def _app_file_from_env(var: str) -> Path | None:
    base = os.environ.get(var)
    return _app_file(base) if base else None


def get_system_config_path() -> Path | None:
    """System-wide file: under %PROGRAMDATA% on Windows, /etc elsewhere."""
    if sys.platform == "win32":
        return _app_file_from_env("PROGRAMDATA")
    return _app_file("/etc")


def get_user_config_path() -> Path | None:
    """Per-user file.

    Windows uses %APPDATA%. Elsewhere $XDG_CONFIG_HOME wins, then
    ~/.config if that directory exists, then ~/.pollwatch.
    """
    if sys.platform == "win32":
        return _app_file_from_env("APPDATA")

    xdg = _app_file_from_env("XDG_CONFIG_HOME")
    if xdg is not None:
        return xdg
    home = Path.home()
    if (home / ".config").is_dir():
        return _app_file(home / ".config")
    return home / DOT_DIR / CONFIG_FILENAME


def get_project_config_path(project_root: str | os.PathLike[str]) -> Path:
    return Path(project_root) / DOT_DIR / CONFIG_FILENAME


def get_config_paths(project_root: str | os.PathLike[str] | None = None) -> list[Path]:
    """Candidate files in merge order; later files override earlier ones."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if project_root:
        candidates.append(get_project_config_path(project_root))
    return [path for path in candidates if path is not None]
