"""Activity timer state machine driven by polled snapshots and a render tick."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from .config import TimerSettings, rate_for
from .models import ActivitySnapshot, CompletionRecord, TimerMode, TimerState
from .reporting import format_elapsed, format_millis
from .scheduling import ScheduledTask, Scheduler, ThreadScheduler

logger = logging.getLogger(__name__)

Observer = Callable[[TimerState], None]

MAX_SEEN_COMPLETIONS = 512


class ActivityTimer:
    """Tracks elapsed time of the current activity.

    In ``DEFAULT`` mode the timer simply follows the current-activity field of
    each snapshot. In ``PERSISTENT`` mode it ignores the gaps and stale reads a
    poller produces around activity transitions, stops when the activity shows
    up in the history, and holds the final time for a short grace window.
    """

    def __init__(
        self,
        settings: Optional[TimerSettings] = None,
        *,
        mode: TimerMode = TimerMode.DEFAULT,
        scheduler: Optional[Scheduler] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings or TimerSettings()
        self._scheduler = scheduler or ThreadScheduler()
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._state = TimerState(mode=TimerMode(mode))
        self._observers: list[Observer] = []

        self._start_timestamp: Optional[datetime] = None
        self._stop_timestamp: Optional[datetime] = None
        self._tracked: Optional[ActivitySnapshot] = None
        self._seen_completions: OrderedDict[str, None] = OrderedDict()

        self._tick_task: Optional[ScheduledTask] = None
        self._tick_generation = 0
        self._release_task: Optional[ScheduledTask] = None
        self._release_generation = 0

    @property
    def mode(self) -> TimerMode:
        return self._state.mode

    def get_state(self) -> TimerState:
        return self._state

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; it is called with the current state right away."""
        with self._lock:
            self._observers.append(observer)
            observer(self._state)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def set_mode(self, mode: TimerMode) -> None:
        with self._lock:
            self._set_state(mode=TimerMode(mode))
            self._notify()

    def update_settings(self, *, display_milliseconds: bool) -> None:
        with self._lock:
            changed = display_milliseconds != self.settings.display_milliseconds
            self.settings.display_milliseconds = display_milliseconds
            self.settings.update_rate = rate_for(display_milliseconds)
            if changed and self._tick_task is not None:
                self._start_ticking()

    def is_tracking_activity(self, activity_hash: int) -> bool:
        with self._lock:
            return (
                self._tracked is not None
                and self._tracked.activity_hash == activity_hash
                and self._state.is_running
                and self._stop_timestamp is None
            )

    def is_running(self) -> bool:
        return self._state.is_running and self._tick_task is not None

    def on_activity_snapshot(
        self,
        activity: Optional[ActivitySnapshot],
        history: Sequence[CompletionRecord],
    ) -> None:
        with self._lock:
            if activity is None or activity.start_date is None:
                if self.mode is TimerMode.DEFAULT:
                    self.stop()
                return

            if self.mode is TimerMode.PERSISTENT and self._suppressed(activity, history):
                return

            self._begin(activity)

    def on_completion_check(self, history: Sequence[CompletionRecord]) -> None:
        with self._lock:
            if self.mode is not TimerMode.PERSISTENT or not history:
                return

            latest = history[0]
            key = latest.completion_key
            if key in self._seen_completions:
                return
            self._remember(key)

            if self._tracked is None or latest.activity_hash != self._tracked.activity_hash:
                return

            logger.debug("Activity %s completed; holding final time.", latest.activity_hash)
            self._cancel_tick()
            self._stop_timestamp = self._now()
            self._set_state(is_running=False, **self._labels(self._stop_timestamp))
            self._notify()
            self._tracked = None
            self._schedule_release()

    def restart_activity(self, activity: ActivitySnapshot) -> None:
        """Start tracking ``activity`` regardless of the persistent-mode heuristics."""
        with self._lock:
            if activity.start_date is None:
                return
            self._cancel_tick()
            self._begin(activity)

    def stop(self) -> None:
        with self._lock:
            if self.mode is TimerMode.PERSISTENT and self._stop_timestamp is None:
                return
            self._cancel_tick()
            self._cancel_release()
            self._start_timestamp = None
            self._stop_timestamp = None
            self._tracked = None
            self._set_state(is_running=False, elapsed_label="", elapsed_millis_label="")
            self._notify()

    def clear_activity(self) -> None:
        """Drop the current run and show the placeholder display."""
        with self._lock:
            self._reset_tracking()
            self._set_state(is_running=False, elapsed_label="--:--:--", elapsed_millis_label="")
            self._notify()

    def reset(self) -> None:
        """Forget everything, including which completions were already seen."""
        with self._lock:
            self._reset_tracking()
            self._seen_completions.clear()
            self._set_state(is_running=False, elapsed_label="", elapsed_millis_label="")
            self._notify()

    def close(self) -> None:
        with self._lock:
            self._cancel_tick()
            self._cancel_release()
            self._observers.clear()

    def _suppressed(
        self, activity: ActivitySnapshot, history: Sequence[CompletionRecord]
    ) -> bool:
        if history:
            presumed_end = history[0].presumed_end
            if activity.start_date <= presumed_end - self.settings.gap_buffer:
                logger.debug(
                    "Ignoring stale snapshot for %s started before %s",
                    activity.activity_hash,
                    presumed_end.isoformat(),
                )
                return True

        if (
            self._tracked is not None
            and self._stop_timestamp is None
            and self._tracked.activity_hash == activity.activity_hash
        ):
            return True

        if self._tracked is None and self._stop_timestamp is not None:
            logger.debug("Ignoring snapshot during post-completion grace window.")
            return True
        return False

    def _begin(self, activity: ActivitySnapshot) -> None:
        logger.debug("Tracking activity %s from %s", activity.activity_hash, activity.start_date)
        self._cancel_release()
        self._tracked = activity
        self._start_timestamp = activity.start_date
        self._stop_timestamp = None
        self._set_state(is_running=True)
        self._start_ticking()
        self._refresh()

    def _reset_tracking(self) -> None:
        self._cancel_tick()
        self._cancel_release()
        self._start_timestamp = None
        self._stop_timestamp = None
        self._tracked = None

    def _remember(self, key: str) -> None:
        self._seen_completions[key] = None
        while len(self._seen_completions) > MAX_SEEN_COMPLETIONS:
            self._seen_completions.popitem(last=False)

    def _start_ticking(self) -> None:
        self._cancel_tick()
        generation = self._tick_generation
        self._tick_task = self._scheduler.call_every(
            self.settings.tick_interval, lambda: self._on_tick(generation)
        )

    def _cancel_tick(self) -> None:
        self._tick_generation += 1
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._tick_generation:
                return
            self._refresh()

    def _schedule_release(self) -> None:
        self._cancel_release()
        generation = self._release_generation
        self._release_task = self._scheduler.call_later(
            self.settings.completion_grace.total_seconds(),
            lambda: self._release(generation),
        )

    def _cancel_release(self) -> None:
        self._release_generation += 1
        if self._release_task is not None:
            self._release_task.cancel()
            self._release_task = None

    def _release(self, generation: int) -> None:
        with self._lock:
            if generation != self._release_generation:
                return
            self._release_task = None
            self._stop_timestamp = None

    def _refresh(self) -> None:
        if self._start_timestamp is None:
            return
        self._set_state(**self._labels(self._now()))
        self._notify()

    def _labels(self, until: datetime) -> dict[str, str]:
        if self._start_timestamp is None:
            return {}
        millis = (until - self._start_timestamp).total_seconds() * 1000
        return {"elapsed_label": format_elapsed(millis), "elapsed_millis_label": format_millis(millis)}

    def _set_state(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self._state)
