"""Detect whether the game client is running."""

from __future__ import annotations

import psutil

from .config import TARGET_PROCESS_NAME


class GameProcessProbe:
    """Looks for the game executable among running processes."""

    def __init__(self, process_name: str = TARGET_PROCESS_NAME) -> None:
        self.process_name = process_name.lower()

    def is_running(self) -> bool:
        for process in psutil.process_iter(["name"]):
            try:
                name = process.info.get("name") or process.name()
            except (psutil.Error, ProcessLookupError):
                continue
            if name and name.lower() == self.process_name:
                return True
        return False
