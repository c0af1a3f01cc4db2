"""Cancellable one-shot and repeating callbacks backed by daemon threads."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask: ...

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask: ...


class _ThreadTask:
    def __init__(self, callback: Callable[[], None], interval: float, repeat: bool) -> None:
        self._callback = callback
        self._interval = interval
        self._repeat = repeat
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> "_ThreadTask":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop_event.set()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def _run(self) -> None:
        # Sleep in an interruptible manner.
        while not self._stop_event.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduled callback failed; cancelling task.")
                self._stop_event.set()
                return
            if not self._repeat:
                return


class ThreadScheduler:
    """Run callbacks on daemon threads; each task owns its own thread."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        return _ThreadTask(callback, delay, repeat=False).start()

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask:
        return _ThreadTask(callback, interval, repeat=True).start()
