"""Helpers for locating application directories."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "ClearTracker"
APP_AUTHOR = "ClearTracker"

_DIRS = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)


def get_config_dir() -> Path:
    """Return the directory holding user preferences, creating it if needed."""
    path = Path(_DIRS.user_config_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_preferences_path() -> Path:
    return get_config_dir() / "preferences.json"
