from __future__ import annotations

from datetime import timedelta
from typing import Optional, Sequence

import pytest

from clear_tracker.activities import STRIKE_ACTIVITY_MODE
from clear_tracker.config import Preferences
from clear_tracker.models import (
    ActivitySnapshot,
    CompletionRecord,
    Notification,
    PlayerDataStatus,
    PlayerSnapshot,
    ProfileInfo,
    TimerMode,
)
from clear_tracker.session import TrackerSession

from conftest import BASE_TIME, make_activity, make_record

BANNER = Notification(title="Guardian#1234", subtext="Clear tracking is active.")


def player_data(
    history: Sequence[CompletionRecord] = (),
    current: Optional[ActivitySnapshot] = None,
    *,
    loading: bool = False,
    profile: ProfileInfo = ProfileInfo(display_name="Guardian", display_tag=1234),
) -> PlayerDataStatus:
    return PlayerDataStatus(
        last_update=PlayerSnapshot(
            current_activity=current,
            activity_history=tuple(history),
            profile=profile,
        ),
        history_loading=loading,
    )


@pytest.fixture
def make_session(scheduler):
    sessions: list[TrackerSession] = []

    def factory(**preferences) -> TrackerSession:
        session = TrackerSession(
            Preferences(**preferences),
            scheduler=scheduler,
            now=scheduler.now,
            monotonic=scheduler.monotonic,
        )
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()


class TestNotifications:
    def test_first_snapshot_announces_tracking(self, make_session) -> None:
        session = make_session()

        session.on_player_data(player_data())

        assert session.drain_notifications() == [BANNER]
        assert session.drain_notifications() == []

    def test_new_completion_is_announced_once(self, make_session) -> None:
        session = make_session()
        old = make_record("old", BASE_TIME - timedelta(hours=2))
        new = make_record("new", BASE_TIME - timedelta(minutes=30), duration=1800)

        session.on_player_data(player_data([old]))
        session.on_player_data(player_data([new, old]))
        session.on_player_data(player_data([new, old]))

        assert session.drain_notifications() == [
            BANNER,
            Notification(title="Vow of the Disciple", subtext="API Time: 30:00"),
        ]

    def test_strikes_use_generic_title(self, make_session) -> None:
        session = make_session()
        strike = make_record(
            "strike", BASE_TIME, activity_hash=123, duration=754, modes=(STRIKE_ACTIVITY_MODE,)
        )

        session.on_player_data(player_data())
        session.on_player_data(player_data([strike]))

        assert session.drain_notifications()[-1] == Notification(
            title="Strike / Portal", subtext="API Time: 12:34"
        )

    def test_incomplete_runs_are_not_announced(self, make_session) -> None:
        session = make_session()
        session.on_player_data(player_data())

        session.on_player_data(player_data([make_record("a", BASE_TIME, completed=False)]))

        assert session.drain_notifications() == [BANNER]

    def test_no_announcement_while_history_loads(self, make_session) -> None:
        session = make_session()
        session.on_player_data(player_data())

        session.on_player_data(player_data([make_record("a", BASE_TIME)], loading=True))

        assert session.drain_notifications() == [BANNER]

    def test_announcements_can_be_disabled(self, make_session) -> None:
        session = make_session(display_clear_notifications=False)
        session.on_player_data(player_data())

        session.on_player_data(player_data([make_record("a", BASE_TIME)]))

        assert session.drain_notifications() == [BANNER]

    def test_other_categories_are_not_announced(self, make_session) -> None:
        session = make_session(filter_activity_type="dungeons")
        session.on_player_data(player_data())

        session.on_player_data(player_data([make_record("a", BASE_TIME)]))

        assert session.drain_notifications() == [BANNER]

    def test_identical_errors_are_announced_once(self, make_session) -> None:
        session = make_session()
        failure = PlayerDataStatus(error="Bungie API is down")

        session.on_player_data(failure)
        session.on_player_data(failure)
        session.on_player_data(PlayerDataStatus(error="Profile is private"))

        assert session.drain_notifications() == [
            Notification(title="Error", subtext="Bungie API is down"),
            Notification(title="Error", subtext="Profile is private"),
        ]

    def test_recovery_announces_again(self, make_session) -> None:
        session = make_session()
        failure = PlayerDataStatus(error="Bungie API is down")

        session.on_player_data(player_data())
        session.on_player_data(failure)
        session.on_player_data(player_data())
        session.on_player_data(failure)

        assert session.drain_notifications() == [
            BANNER,
            Notification(title="Error", subtext="Bungie API is down"),
            BANNER,
            Notification(title="Error", subtext="Bungie API is down"),
        ]

    def test_callback_receives_notifications(self, scheduler) -> None:
        received: list[Notification] = []
        session = TrackerSession(
            scheduler=scheduler, now=scheduler.now, on_notification=received.append
        )

        session.on_player_data(player_data())

        assert received == [BANNER]
        session.close()


class TestTimerIntegration:
    def test_default_mode_follows_current_activity(self, make_session) -> None:
        session = make_session()

        session.on_player_data(player_data(current=make_activity()))
        assert session.timer.get_state().is_running

        session.on_player_data(player_data(current=None))
        assert not session.timer.get_state().is_running

    def test_untrackable_activity_stops_default_timer(self, make_session) -> None:
        session = make_session()
        session.on_player_data(player_data(current=make_activity()))

        session.on_player_data(player_data(current=make_activity(activity_hash=42, modes=(5,))))

        assert not session.timer.get_state().is_running

    def test_persistent_mode_stops_on_completion(self, make_session) -> None:
        session = make_session(timer_mode=TimerMode.PERSISTENT)
        activity = make_activity(activity_hash=7)
        session.on_player_data(player_data(current=activity))

        session.on_player_data(player_data(current=None))
        assert session.timer.get_state().is_running

        finished = make_record("run", BASE_TIME - timedelta(minutes=5), activity_hash=7, duration=300)
        session.on_player_data(player_data([finished], current=None))

        state = session.timer.get_state()
        assert not state.is_running
        assert state.elapsed_label == "05:00"

    def test_profile_switch_resets_tracking(self, make_session) -> None:
        session = make_session(timer_mode=TimerMode.PERSISTENT)
        session.on_player_data(player_data(current=make_activity(activity_hash=7)))
        assert session.timer.is_tracking_activity(7)

        other = ProfileInfo(display_name="Courier", display_tag=42)
        session.on_player_data(player_data(current=None, profile=other))

        state = session.timer.get_state()
        assert not state.is_running
        assert state.elapsed_label == ""
        assert session.drain_notifications() == [
            BANNER,
            Notification(title="Courier#42", subtext="Clear tracking is active."),
        ]


class TestPreferences:
    def test_stats_follow_filter(self, make_session) -> None:
        session = make_session()
        session.on_player_data(player_data([make_record("a", BASE_TIME)]))
        assert session.current_stats().completions == 1

        session.apply_preferences(Preferences(filter_activity_type="dungeons"))

        assert session.current_stats().completions == 0

    def test_mode_change_reaches_timer(self, make_session) -> None:
        session = make_session()

        session.apply_preferences(Preferences(timer_mode=TimerMode.PERSISTENT))

        assert session.timer.mode is TimerMode.PERSISTENT

    def test_no_stats_before_data(self, make_session) -> None:
        assert make_session().current_stats() is None
