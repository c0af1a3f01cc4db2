"""Time formatting helpers and console summaries."""

from __future__ import annotations

from typing import Optional

from .activities import determine_activity_type, resolve_activity_name
from .models import CompletionRecord, HistoryStats


def format_elapsed(millis: float) -> str:
    """Render elapsed milliseconds as ``h:mm:ss``, dropping the hour when zero."""
    total_seconds = int(max(millis, 0) // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    prefix = f"{hours}:" if hours > 0 else ""
    return f"{prefix}{minutes:02d}:{secs:02d}"


def format_millis(millis: float) -> str:
    hundredths = int(max(millis, 0) % 1000) // 10
    return f":{hundredths:02d}"


def format_duration_with_unit(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def describe_completion(record: CompletionRecord) -> Optional[str]:
    """Title used when announcing a completion, or None for untyped activities."""
    activity_type = determine_activity_type(record.category_hints)
    if activity_type is None:
        return None
    fallback = "Strike / Portal" if activity_type == "Strike" else activity_type
    if activity_type in ("Raid", "Dungeon"):
        return resolve_activity_name(record.activity_hash, fallback)
    return fallback


class SummaryPrinter:
    """Render human-readable history summaries in the console."""

    def __init__(self, echo=print) -> None:
        self._echo = echo

    def print_stats(self, stats: HistoryStats, *, show_average: bool = True) -> None:
        self._echo(f"Clears{stats.timespan_label}: {stats.completions}")
        if show_average:
            self._echo(f"Average clear time: {format_duration_with_unit(stats.average_seconds)}")
        if not stats.records:
            return

        self._echo("")
        self._echo("Recent activities:")
        for record in stats.records[:5]:
            title = describe_completion(record) or str(record.activity_hash)
            status = "cleared" if record.completed else "incomplete"
            elapsed = format_elapsed(record.duration_seconds * 1000)
            self._echo(
                f"  {record.period.strftime('%Y-%m-%d %H:%M')}  {title[:32]:<32} {elapsed:>8}  {status}"
            )
