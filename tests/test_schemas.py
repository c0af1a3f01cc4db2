from __future__ import annotations

from datetime import datetime, timezone

from clear_tracker.schemas import CurrentActivityPayload, PlayerDataStatusPayload


def test_status_payload_to_domain() -> None:
    payload = PlayerDataStatusPayload.model_validate(
        {
            "lastUpdate": {
                "currentActivity": {
                    "startDate": "2024-01-03T11:55:00Z",
                    "activityHash": 1441982566,
                    "activityInfo": {"name": "Vow of the Disciple", "activityModes": [2, 4]},
                },
                "activityHistory": [
                    {
                        "period": "2024-01-03T10:00:00",
                        "instanceId": "123",
                        "completed": True,
                        "activityDurationSeconds": 1800,
                        "activityHash": 1441982566,
                        "modes": [4, 2],
                    }
                ],
                "profileInfo": {"displayName": "Guardian", "displayTag": 7},
            },
            "error": None,
            "historyLoading": True,
        }
    )

    status = payload.to_domain()

    snapshot = status.last_update
    assert status.history_loading is True
    assert snapshot.profile.label == "Guardian#7"
    assert snapshot.current_activity.category_hints == (2, 4)
    assert snapshot.current_activity.start_date == datetime(2024, 1, 3, 11, 55, tzinfo=timezone.utc)
    record = snapshot.activity_history[0]
    assert record.period.tzinfo is not None
    assert record.category_hints == (4, 2)
    assert record.completion_key.startswith("1441982566_2024-01-03T10:00:00")


def test_zero_hash_means_no_activity() -> None:
    payload = CurrentActivityPayload.model_validate(
        {"startDate": "0001-01-01T00:00:00Z", "activityHash": 0}
    )

    assert payload.to_domain() is None


def test_missing_start_date_is_kept_as_none() -> None:
    payload = CurrentActivityPayload.model_validate({"activityHash": 5})

    assert payload.to_domain().start_date is None
