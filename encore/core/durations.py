"""
Song duration helpers.

Durations are stored as interval strings ("HH:MM:SS", as PostgreSQL prints
them) and shown as "M:SS".
"""

from __future__ import annotations

from typing import Iterable

DEFAULT_DISPLAY = "3:00"


def format_interval(duration_ms: int | None) -> str | None:
    """Milliseconds -> "HH:MM:SS" (always with hours)."""
    if duration_ms is None or duration_ms < 0:
        return None
    total = int(duration_ms) // 1000
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def parse_duration(value: str | None) -> int | None:
    """
    Parse "HH:MM:SS", "H:MM:SS.fff" or "MM:SS" into whole seconds.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    parts = value.strip().split(":")
    if not 2 <= len(parts) <= 3:
        return None
    try:
        numbers = [float(p) for p in parts]
    except ValueError:
        return None
    if any(n < 0 for n in numbers):
        return None
    if len(numbers) == 2:
        numbers.insert(0, 0.0)
    hours, minutes, seconds = numbers
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds)


def format_display(value: str | None) -> str:
    """
    Interval -> "M:SS" for display; drops a zero hour.

    Non-interval strings are returned unchanged, missing durations show as 3:00.
    """
    if not value:
        return DEFAULT_DISPLAY
    seconds = parse_duration(value)
    if seconds is None:
        return value
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def total_seconds(durations: Iterable[str | None]) -> int:
    """Sum of all parseable durations (unknown ones count as zero)."""
    return sum(parse_duration(d) or 0 for d in durations)
