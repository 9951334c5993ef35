"""
Normalises transport.opendata.ch responses into Connection / Leg shapes.

The HTTP calls themselves live with the caller; this module only reshapes
the decoded JSON.  Each section becomes one leg:

  section with "walk"      → WalkLeg
  section with "journey"   → RideLeg, line fields via gtfs.lookup

Per endpoint, the prognosis (live) values win over the timetable:
  time_actual   prognosis time, kept only when it differs from planned
  platform      prognosis platform, else planned platform
Ride delay is the rounded difference between prognosed and planned
departure, kept only when positive.
"""

import logging
import re
from typing import Any

from domain.models import Connection, Endpoint, GtfsLookup, Leg, RideLeg, WalkLeg
from explain.timefmt import parse_time, round_half_away
from gtfs.lookup import resolve_line_info
from reliability.historical import estimate_reliability

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"(?:(\d+)d)?(\d{2}):(\d{2}):(\d{2})")
_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9-]")


def parse_duration(duration: str | None) -> int:
    """'00d01:05:00' → 65 minutes; anything unparseable → 0."""
    if not duration:
        return 0
    match = _DURATION_RE.search(duration)
    if not match:
        return 0
    days, hours, minutes, _ = match.groups()
    return int(days or 0) * 24 * 60 + int(hours) * 60 + int(minutes)


def connection_id(raw: dict[str, Any]) -> str:
    """Departure time + journey names, reduced to [A-Za-z0-9-]."""
    departure = (raw.get("from") or {}).get("departure") or ""
    names = "-".join(
        (section.get("journey") or {}).get("name") or ""
        for section in raw.get("sections") or []
        if section.get("journey")
    )
    return _UNSAFE_ID_CHARS.sub("_", f"{departure}-{names}")


def _delay_minutes(planned: str | None, actual: str | None) -> int | None:
    planned_dt, actual_dt = parse_time(planned), parse_time(actual)
    if planned_dt is None or actual_dt is None:
        return None
    try:
        minutes = round_half_away((actual_dt - planned_dt).total_seconds() / 60)
    except TypeError:
        return None
    return minutes if minutes > 0 else None


def _endpoint(checkpoint: dict[str, Any], time_key: str) -> Endpoint:
    prognosis = checkpoint.get("prognosis") or {}
    planned = checkpoint.get(time_key) or ""
    actual = prognosis.get(time_key)
    return Endpoint(
        name=(checkpoint.get("station") or {}).get("name") or "",
        time_planned=planned,
        time_actual=actual if actual and actual != planned else None,
        platform=prognosis.get("platform") or checkpoint.get("platform") or None,
    )


def normalize_leg(section: dict[str, Any], lookup: GtfsLookup | None = None) -> Leg:
    departure_cp = section.get("departure") or {}
    departure = _endpoint(departure_cp, "departure")
    arrival = _endpoint(section.get("arrival") or {}, "arrival")

    if section.get("walk") is not None:
        return WalkLeg(departure=departure, arrival=arrival)

    delay = _delay_minutes(
        departure_cp.get("departure"),
        (departure_cp.get("prognosis") or {}).get("departure"),
    )
    journey = section.get("journey")
    if not journey:
        return RideLeg(departure=departure, arrival=arrival, delay_minutes=delay)

    info = resolve_line_info(
        line_id=journey.get("name"),
        category=journey.get("category"),
        number=journey.get("number"),
        operator=journey.get("operator"),
        lookup=lookup,
    )
    display = info.line_display or journey.get("name") or journey.get("category") or ""
    return RideLeg(
        departure=departure,
        arrival=arrival,
        line_id=info.line_id or journey.get("name"),
        line=display,
        line_type=info.line_type,
        operator=info.operator or journey.get("operator"),
        delay_minutes=delay,
    )


def normalize_legs(sections: list[dict[str, Any]], lookup: GtfsLookup | None = None) -> list[Leg]:
    return [normalize_leg(section, lookup) for section in sections]


def normalize_connections(
    raw_connections: list[dict[str, Any]],
    lookup: GtfsLookup | None = None,
    with_reliability: bool = True,
) -> list[Connection]:
    """
    Reshape a /connections response body's "connections" list.

    Tags: "fastest" (shortest duration), "fewest transfers", and
    "recommended" on the first connection the upstream returned.
    """
    durations = [parse_duration(raw.get("duration")) for raw in raw_connections]
    fastest = min(durations, default=0)

    connections: list[Connection] = []
    normalized_legs: list[list[Leg]] = []
    for raw in raw_connections:
        normalized_legs.append(normalize_legs(raw.get("sections") or [], lookup))
    transfer_counts = [
        max(0, sum(1 for leg in legs if isinstance(leg, RideLeg)) - 1)
        for legs in normalized_legs
    ]
    fewest = min(transfer_counts, default=0)

    for index, (raw, legs, duration, transfers) in enumerate(
        zip(raw_connections, normalized_legs, durations, transfer_counts)
    ):
        tags: list[str] = []
        if duration == fastest:
            tags.append("fastest")
        if transfers == fewest:
            tags.append("fewest transfers")
        if index == 0:
            tags.append("recommended")

        departure_time = (raw.get("from") or {}).get("departure") or ""
        reliability = estimate_reliability(legs, departure_time) if with_reliability else None
        connections.append(Connection(
            id=connection_id(raw),
            departure_time=departure_time,
            arrival_time=(raw.get("to") or {}).get("arrival") or "",
            duration_minutes=duration,
            transfers_count=transfers,
            legs=legs,
            reliability=reliability,
            reliability_score=reliability.score if reliability else None,
            tags=tags,
        ))

    logger.info("Normalised %d connections.", len(connections))
    return connections


def normalize_stationboard_entry(
    entry: dict[str, Any],
    lookup: GtfsLookup | None = None,
    board_type: str = "departure",
) -> dict[str, Any]:
    """Reshape one /stationboard entry into a display row."""
    stop = entry.get("stop") or {}
    prognosis = stop.get("prognosis") or {}
    if board_type == "arrival":
        planned = stop.get("arrival") or stop.get("departure") or ""
        actual = prognosis.get("arrival") or prognosis.get("departure")
    else:
        planned = stop.get("departure") or ""
        actual = prognosis.get("departure")

    info = resolve_line_info(
        line_id=entry.get("name"),
        category=entry.get("category"),
        number=entry.get("number"),
        operator=entry.get("operator"),
        lookup=lookup,
    )
    display = info.line_display or entry.get("name") or ""
    return {
        "line": display,
        "line_id": info.line_id,
        "line_display": display,
        "line_type": info.line_type,
        "operator": info.operator or entry.get("operator"),
        "destination": entry.get("to") or "",
        "time_planned": planned,
        "time_actual": actual if actual and actual != planned else None,
        "platform": prognosis.get("platform") or stop.get("platform"),
        "delay_minutes": _delay_minutes(planned, actual),
    }
