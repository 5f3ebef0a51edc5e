"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from pollwatch.config import reset_config
from pollwatch.logging import reset_logging

# Redundant with pyproject.toml but ensures the plugin is loaded
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep tests away from real config files and environment overrides."""
    monkeypatch.delenv("POLLWATCH_LOG", raising=False)
    monkeypatch.delenv("POLLWATCH_INTERVAL", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    reset_config()
    yield
    reset_config()
    reset_logging()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An empty directory to watch, under its real path."""
    path = tmp_path.resolve() / "root"
    path.mkdir()
    return path
