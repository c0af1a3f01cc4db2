"""Command-line interface for the clear tracker."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .config import load_preferences
from .history import FilterSelector, HistoryFilter
from .models import Notification, TimerMode
from .paths import get_preferences_path
from .reporting import SummaryPrinter
from .schemas import PlayerDataPayload, PlayerDataStatusPayload
from .server_runner import run_dashboard
from .session import TrackerSession

app = typer.Typer(help="Raid and dungeon clear tracker.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def summary(
    data_path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="Saved player data JSON (with or without the status wrapper).",
    ),
    timespan: Optional[str] = typer.Option(
        None, "--timespan", help="Window in days: 1, 7 or 30."
    ),
    category: Optional[str] = typer.Option(
        None, "--category", help="Activity filter, e.g. raids or grouped-raid-vog."
    ),
    real_time: Optional[bool] = typer.Option(
        None,
        "--real-time/--reset-time",
        help="Use rolling windows instead of daily/weekly reset boundaries.",
    ),
    preferences_path: Optional[Path] = typer.Option(
        None, "--prefs", path_type=Path, help="Location of preferences.json."
    ),
) -> None:
    """Print clear count and average clear time for a saved history."""
    preferences = load_preferences(preferences_path or get_preferences_path())
    try:
        selector = FilterSelector.parse(
            timespan or preferences.filter_timespan,
            category or preferences.filter_activity_type,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    raw = json.loads(data_path.read_text(encoding="utf-8"))
    try:
        if isinstance(raw, dict) and "lastUpdate" in raw:
            snapshot = PlayerDataStatusPayload.model_validate(raw).to_domain().last_update
        else:
            snapshot = PlayerDataPayload.model_validate(raw).to_domain()
    except ValidationError as exc:
        typer.echo(f"Invalid player data: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if snapshot is None:
        typer.echo("No player data in file.")
        return

    use_real_time = preferences.use_real_time if real_time is None else real_time
    stats = HistoryFilter().stats(snapshot.activity_history, selector, use_real_time)
    SummaryPrinter(echo=typer.echo).print_stats(
        stats, show_average=preferences.display_average_clear_time
    )


@app.command()
def replay(
    stream_path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="JSON-lines file with one player data status per line.",
    ),
    delay: float = typer.Option(
        2.0, "--delay", min=0.0, help="Seconds to wait between snapshots."
    ),
    mode: Optional[TimerMode] = typer.Option(
        None, "--mode", case_sensitive=False, help="Override the timer mode."
    ),
    preferences_path: Optional[Path] = typer.Option(
        None, "--prefs", path_type=Path, help="Location of preferences.json."
    ),
) -> None:
    """Feed recorded poller output through a tracking session."""
    preferences = load_preferences(preferences_path or get_preferences_path())
    if mode is not None:
        preferences = preferences.updated(timer_mode=mode)

    def announce(notification: Notification) -> None:
        typer.echo(f"[{notification.title}] {notification.subtext}")

    session = TrackerSession(preferences, on_notification=announce)
    try:
        with stream_path.open(encoding="utf-8") as stream:
            for line_number, line in enumerate(stream, start=1):
                if not line.strip():
                    continue
                try:
                    status = PlayerDataStatusPayload.model_validate_json(line).to_domain()
                except ValidationError as exc:
                    typer.echo(f"Skipping line {line_number}: {exc.error_count()} error(s)", err=True)
                    continue
                stats = session.on_player_data(status)
                state = session.timer.get_state()
                clears = f" clears={stats.completions}" if stats else ""
                typer.echo(
                    f"{line_number:>4} timer={state.elapsed_label or '-'}"
                    f" running={state.is_running}{clears}"
                )
                time.sleep(delay)
    finally:
        session.close()


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    preferences_path: Optional[Path] = typer.Option(
        None, "--prefs", path_type=Path, help="Location of preferences.json."
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the status endpoint in your default browser.",
    ),
) -> None:
    """Start the local dashboard that receives player data and serves tracker state."""
    run_dashboard(
        host=host,
        port=port,
        preferences_path=preferences_path or get_preferences_path(),
        open_browser=open_browser,
    )
