"""Feed polled player data into the timer and history filter, and raise notifications."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from datetime import datetime
from typing import Callable, Optional

from .activities import EXCLUDED_ACTIVITIES, should_have_timer
from .config import Preferences, TimerSettings
from .history import FilterSelector, HistoryFilter
from .models import (
    ActivitySnapshot,
    HistoryStats,
    Notification,
    PlayerDataStatus,
    PlayerSnapshot,
    ProfileInfo,
    TimerMode,
)
from .reporting import describe_completion, format_elapsed
from .scheduling import Scheduler
from .timer import ActivityTimer

logger = logging.getLogger(__name__)

ERROR_TITLE = "Error"
MAX_QUEUED_NOTIFICATIONS = 50


class TrackerSession:
    """Owns one timer, one history filter and the notification bookkeeping."""

    def __init__(
        self,
        preferences: Optional[Preferences] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        now: Optional[Callable[[], datetime]] = None,
        monotonic: Callable[[], float] = time.monotonic,
        on_notification: Optional[Callable[[Notification], None]] = None,
    ) -> None:
        self.preferences = preferences if preferences is not None else Preferences()
        self.timer = ActivityTimer(
            TimerSettings.from_preferences(self.preferences),
            mode=self.preferences.timer_mode,
            scheduler=scheduler,
            now=now,
        )
        self.history_filter = HistoryFilter(now=now, monotonic=monotonic)
        self._selector = self.preferences.selector
        self._on_notification = on_notification
        self._lock = threading.Lock()
        self._notifications: deque[Notification] = deque(maxlen=MAX_QUEUED_NOTIFICATIONS)
        self._last_error: Optional[str] = None
        self._last_instance_id: Optional[str] = None
        self._done_initial_refresh = False
        self._snapshot: Optional[PlayerSnapshot] = None
        self._profile: Optional[ProfileInfo] = None
        self._status = PlayerDataStatus()

    @property
    def selector(self) -> FilterSelector:
        return self._selector

    @property
    def status(self) -> PlayerDataStatus:
        return self._status

    def on_player_data(self, status: PlayerDataStatus) -> Optional[HistoryStats]:
        """Handle one poller delivery and return the stats for the current filter."""
        with self._lock:
            self._status = status
            if status.error:
                self._snapshot = None
                self._done_initial_refresh = False
                self._raise(Notification(title=ERROR_TITLE, subtext=status.error))
                return None

            snapshot = status.last_update
            if snapshot is None:
                self._snapshot = None
                self._done_initial_refresh = False
                return None

            if self._profile is not None and snapshot.profile != self._profile:
                self._switch_profile(snapshot.profile)
            self._profile = snapshot.profile
            self._snapshot = snapshot
            self._update_timer(snapshot)

            stats = self.history_filter.stats(
                snapshot.activity_history, self._selector, self.preferences.use_real_time
            )
            latest = stats.latest
            if (
                self._done_initial_refresh
                and latest is not None
                and latest.completed
                and latest.instance_id != self._last_instance_id
                and self.preferences.display_clear_notifications
                and not status.history_loading
            ):
                title = describe_completion(latest)
                if title:
                    elapsed = format_elapsed(latest.duration_seconds * 1000)
                    self._raise(Notification(title=title, subtext=f"API Time: {elapsed}"))
            self._last_instance_id = latest.instance_id if latest else None

            if not self._done_initial_refresh:
                self._raise(
                    Notification(title=snapshot.profile.label, subtext="Clear tracking is active.")
                )
            self._done_initial_refresh = True
            return stats

    def current_stats(self, selector: Optional[FilterSelector] = None) -> Optional[HistoryStats]:
        """Stats for the saved filter, or for ``selector`` without changing the saved one."""
        with self._lock:
            if self._snapshot is None:
                return None
            return self.history_filter.stats(
                self._snapshot.activity_history,
                selector if selector is not None else self._selector,
                self.preferences.use_real_time,
            )

    def apply_preferences(self, preferences: Preferences) -> None:
        with self._lock:
            previous = self.preferences
            self.preferences = preferences
            if preferences.timer_mode != previous.timer_mode:
                self.timer.set_mode(preferences.timer_mode)
            if preferences.display_milliseconds != previous.display_milliseconds:
                self.timer.update_settings(display_milliseconds=preferences.display_milliseconds)
            selector = preferences.selector
            if selector != self._selector or preferences.use_real_time != previous.use_real_time:
                self._selector = selector
                self.history_filter.clear_cache()

    def drain_notifications(self) -> list[Notification]:
        with self._lock:
            pending = list(self._notifications)
            self._notifications.clear()
            return pending

    def clear_timer(self) -> None:
        self.timer.clear_activity()

    def close(self) -> None:
        self.timer.close()

    def _switch_profile(self, profile: ProfileInfo) -> None:
        logger.info("Profile changed to %s; resetting tracking.", profile.label)
        self.timer.reset()
        self.history_filter.clear_cache()
        self._last_instance_id = None
        self._done_initial_refresh = False

    def _update_timer(self, snapshot: PlayerSnapshot) -> None:
        history = snapshot.activity_history
        if self.timer.mode is TimerMode.PERSISTENT:
            self.timer.on_completion_check(history)

        activity = snapshot.current_activity
        if not _is_trackable(activity):
            activity = None
        self.timer.on_activity_snapshot(activity, history)

    def _raise(self, notification: Notification) -> None:
        if notification.title == ERROR_TITLE:
            if notification.subtext == self._last_error:
                return
            self._last_error = notification.subtext
        else:
            self._last_error = None

        logger.info("Notification: %s - %s", notification.title, notification.subtext)
        self._notifications.append(notification)
        if self._on_notification is not None:
            self._on_notification(notification)


def _is_trackable(activity: Optional[ActivitySnapshot]) -> bool:
    return (
        activity is not None
        and activity.start_date is not None
        and activity.activity_hash != 0
        and activity.activity_hash not in EXCLUDED_ACTIVITIES
        and should_have_timer(activity.category_hints)
    )
