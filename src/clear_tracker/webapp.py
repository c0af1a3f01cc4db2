"""FastAPI application that exposes the tracker state to overlays and dashboards."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import Preferences, PreferencesUpdate, load_preferences, save_preferences
from .history import FilterSelector
from .models import HistoryStats
from .paths import get_preferences_path
from .probe import GameProcessProbe
from .reporting import format_duration_with_unit
from .schemas import PlayerDataStatusPayload
from .session import TrackerSession

logger = logging.getLogger(__name__)


def create_app(
    *,
    preferences_path: Optional[Path] = None,
    session: Optional[TrackerSession] = None,
    probe: Optional[GameProcessProbe] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_preferences_path = Path(preferences_path or get_preferences_path())
    resolved_session = session or TrackerSession(load_preferences(resolved_preferences_path))

    app = FastAPI(title="Clear Tracker", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.preferences_path = resolved_preferences_path
    app.state.session = resolved_session
    app.state.probe = probe or GameProcessProbe()

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Clear tracker dashboard started.")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        resolved_session.close()
        logger.info("Clear tracker dashboard stopped.")

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        session: TrackerSession = request.app.state.session
        player_status = session.status
        return {
            "game_running": request.app.state.probe.is_running(),
            "timer_running": session.timer.is_running(),
            "has_player_data": player_status.last_update is not None,
            "history_loading": player_status.history_loading,
            "error": player_status.error,
            "preferences_path": str(request.app.state.preferences_path),
        }

    @app.post("/api/playerdata")
    def receive_player_data(payload: PlayerDataStatusPayload, request: Request) -> Dict[str, Any]:
        session: TrackerSession = request.app.state.session
        stats = session.on_player_data(payload.to_domain())
        return {
            "timer": session.timer.get_state().as_dict(),
            "stats": _stats_payload(stats) if stats else None,
        }

    @app.get("/api/timer")
    def timer_state(request: Request) -> Dict[str, Any]:
        return request.app.state.session.timer.get_state().as_dict()

    @app.post("/api/timer/clear")
    def clear_timer(request: Request) -> Dict[str, Any]:
        session: TrackerSession = request.app.state.session
        session.clear_timer()
        return session.timer.get_state().as_dict()

    @app.get("/api/stats")
    def stats(
        request: Request,
        timespan: Optional[str] = Query(
            default=None,
            description="Window in days: 1, 7 or 30. Defaults to the saved filter.",
        ),
        category: Optional[str] = Query(
            default=None,
            description="Activity filter such as raids or grouped-raid-last-wish.",
        ),
    ) -> Dict[str, Any]:
        session: TrackerSession = request.app.state.session
        if timespan is not None or category is not None:
            current = session.selector
            try:
                selector = FilterSelector.parse(
                    timespan if timespan is not None else current.timespan.value,
                    category if category is not None else current.category.code,
                )
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        else:
            selector = None
        result = session.current_stats(selector)
        if result is None:
            raise HTTPException(status_code=404, detail="No player data received yet")
        return _stats_payload(result)

    @app.get("/api/notifications")
    def notifications(request: Request) -> Dict[str, Any]:
        pending = request.app.state.session.drain_notifications()
        return {
            "notifications": [
                {"title": item.title, "subtext": item.subtext} for item in pending
            ]
        }

    @app.get("/api/preferences")
    def get_preferences(request: Request) -> Dict[str, Any]:
        return request.app.state.session.preferences.model_dump(mode="json", by_alias=True)

    @app.patch("/api/preferences")
    def update_preferences(payload: PreferencesUpdate, request: Request) -> Dict[str, Any]:
        session: TrackerSession = request.app.state.session
        try:
            preferences: Preferences = session.preferences.updated(**payload.changes())
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        save_preferences(request.app.state.preferences_path, preferences)
        session.apply_preferences(preferences)
        return preferences.model_dump(mode="json", by_alias=True)

    return app


def _stats_payload(stats: HistoryStats) -> Dict[str, Any]:
    latest = stats.latest
    return {
        "completions": stats.completions,
        "average_seconds": stats.average_seconds,
        "average_label": format_duration_with_unit(stats.average_seconds),
        "timespan_label": stats.timespan_label,
        "latest": {
            "instance_id": latest.instance_id,
            "activity_hash": latest.activity_hash,
            "period": latest.period.isoformat(),
            "completed": latest.completed,
            "duration_seconds": latest.duration_seconds,
        }
        if latest
        else None,
    }
