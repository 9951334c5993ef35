"""
Live-delay digests over already normalised connections.

Route report: the delayed legs of one connection plus the stations worth a
follow-up disruption check (the first boarding station and every transfer
station, at most four).

Station report: the connections found from a station towards a handful of
destinations are pooled and classified:

  disrupted     2+ destinations with no connection, or max delay > 30 min
  major_delays  max delay > 15 min, or delayed legs > half the connections
  minor_delays  max delay > 5 min, or any delayed leg
  normal        otherwise

Fetching those connections is the caller's job; a destination whose lookup
failed is passed as an empty list (or counted in extra_missing).
"""

import logging

from domain.models import (
    Connection,
    DelayedLeg,
    DisruptionReport,
    DisruptionStatus,
    RideLeg,
    RouteDelayReport,
)
from explain.timefmt import format_time, round_half_away

logger = logging.getLogger(__name__)

MAX_STATIONS_TO_CHECK = 4

DISRUPTED_MISSING = 2
DISRUPTED_DELAY_MINUTES = 30
MAJOR_DELAY_MINUTES = 15
MAJOR_DELAYED_SHARE = 0.5
MINOR_DELAY_MINUTES = 5


def delayed_legs(connection: Connection) -> list[DelayedLeg]:
    """Every ride leg running late, in leg order."""
    return [
        DelayedLeg(
            line=leg.line or "unknown",
            from_station=leg.departure.name,
            to_station=leg.arrival.name,
            scheduled_departure=leg.departure.time_planned,
            delay_minutes=leg.delay_minutes,
        )
        for leg in connection.legs
        if isinstance(leg, RideLeg) and leg.delay_minutes and leg.delay_minutes > 0
    ]


def stations_to_check(connection: Connection) -> list[str]:
    rides = [leg for leg in connection.legs if isinstance(leg, RideLeg)]
    stations: list[str] = []
    if rides:
        stations.append(rides[0].departure.name)
    for leg in rides[:-1]:
        if leg.arrival.name not in stations:
            stations.append(leg.arrival.name)
    return stations[:MAX_STATIONS_TO_CHECK]


def build_route_delay_report(
    connections: list[Connection],
    origin: str,
    destination: str,
) -> RouteDelayReport:
    """Delay digest for the first connection of a route query."""
    if not connections:
        return RouteDelayReport(
            origin=origin,
            destination=destination,
            summary=f"No connections found from {origin} to {destination}.",
        )

    connection = connections[0]
    delayed = delayed_legs(connection)
    summary = f"Route {origin} -> {destination} at {format_time(connection.departure_time)}. "
    if delayed:
        digest = ", ".join(f"{leg.line} (+{leg.delay_minutes} min)" for leg in delayed)
        summary += f"Delayed legs: {digest}."
    else:
        summary += "No delays reported on current legs."

    return RouteDelayReport(
        origin=origin,
        destination=destination,
        connection_id=connection.id,
        departure_time=connection.departure_time,
        arrival_time=connection.arrival_time,
        delayed_legs=delayed,
        stations_to_check=stations_to_check(connection),
        summary=summary,
    )


def classify_disruption(
    max_delay: int,
    delayed_count: int,
    total_checked: int,
    cancelled_or_missing: int,
) -> DisruptionStatus:
    if cancelled_or_missing >= DISRUPTED_MISSING or max_delay > DISRUPTED_DELAY_MINUTES:
        return "disrupted"
    if max_delay > MAJOR_DELAY_MINUTES or delayed_count > total_checked * MAJOR_DELAYED_SHARE:
        return "major_delays"
    if max_delay > MINOR_DELAY_MINUTES or delayed_count > 0:
        return "minor_delays"
    return "normal"


def _status_summary(status: DisruptionStatus, station: str, delayed: int, average: int, maximum: int) -> str:
    if status == "disrupted":
        return f"Significant disruptions around {station}. {delayed} delayed, max {maximum} min."
    if status == "major_delays":
        return f"Major delays around {station}. Average {average} min."
    if status == "minor_delays":
        return f"Minor delays around {station}. {delayed} delayed, avg {average} min."
    return f"Service normal around {station}."


def assess_disruptions(
    station: str,
    connection_sets: list[list[Connection]],
    extra_missing: int = 0,
) -> DisruptionReport:
    """
    Classify service around station from the connections found towards
    each checked destination (one list per destination).
    """
    total_checked = sum(len(connections) for connections in connection_sets)
    missing = extra_missing + sum(1 for connections in connection_sets if not connections)

    delayed: list[DelayedLeg] = []
    for connections in connection_sets:
        for connection in connections:
            delayed.extend(delayed_legs(connection))

    delays = [leg.delay_minutes for leg in delayed]
    average = round_half_away(sum(delays) / len(delays)) if delays else 0
    maximum = max(delays, default=0)

    status = classify_disruption(maximum, len(delayed), total_checked, missing)
    logger.info(
        "Disruption check %s: %s (%d connections, %d delayed legs, %d missing).",
        station, status, total_checked, len(delayed), missing,
    )
    return DisruptionReport(
        station=station,
        total_connections_checked=total_checked,
        delayed_count=len(delayed),
        cancelled_or_missing=missing,
        average_delay_minutes=average,
        max_delay_minutes=maximum,
        delayed_routes=delayed,
        status=status,
        summary=_status_summary(status, station, len(delayed), average, maximum),
    )
