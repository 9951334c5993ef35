"""Timestamp helpers shared by the metrics, ranking and narrative layers."""

import math
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from config import DISPLAY_TIMEZONE

PLACEHOLDER = "--:--"


def parse_time(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp ("Z", "+01:00" and "+0100" offsets accepted); None if invalid."""
    if not value:
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        return None


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 → 3, -2.5 → -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def minutes_between(start: str | None, end: str | None) -> int:
    """
    Whole minutes from start to end, never negative.

    Missing or unparseable timestamps count as zero rather than raising, so
    a single bad leg degrades one figure instead of the whole ranking.
    """
    start_dt = parse_time(start)
    end_dt = parse_time(end)
    if start_dt is None or end_dt is None:
        return 0
    try:
        seconds = (end_dt - start_dt).total_seconds()
    except TypeError:
        # naive vs aware
        return 0
    return max(0, round_half_away(seconds / 60))


def subtract_minutes(value: str, minutes: int) -> str:
    dt = parse_time(value)
    if dt is None:
        return value
    return (dt - timedelta(minutes=minutes)).isoformat()


def format_time(value: str | None, tz_name: str = DISPLAY_TIMEZONE) -> str:
    """HH:MM in the display zone; naive timestamps are shown as given."""
    dt = parse_time(value)
    if dt is None:
        return PLACEHOLDER
    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(tz_name))
    return dt.strftime("%H:%M")
