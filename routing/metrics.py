"""
Per-connection metrics derived from the ordered leg list.

  walking_minutes        sum of walk-leg durations (actual time when known)
  transfer_waits         one entry per pair of consecutive ride legs:
                         next departure − previous arrival
  min_transfer_minutes   smallest wait (None without transfers)
  transfer_station       arrival station of the ride before the first
                         transfer achieving that minimum
  delay_minutes_total    sum of positive ride-leg delays
  delay_alerts           "<line> +N min" labels, de-duplicated in order
  platform_changes       "<station> (Pl. X!)" labels, de-duplicated in order
  exposure_minutes       walking + transfer waiting

Metrics are recomputed for every request and never cached.
"""

from dataclasses import dataclass, field

from domain.models import Leg, RideLeg, WalkLeg
from explain.timefmt import minutes_between


@dataclass
class ConnectionMetrics:
    walking_minutes: int = 0
    transfer_waits: list[int] = field(default_factory=list)
    transfer_wait_minutes: int = 0
    min_transfer_minutes: int | None = None
    transfer_station: str | None = None
    delay_minutes_total: int = 0
    delay_alerts: list[str] = field(default_factory=list)
    platform_changes: list[str] = field(default_factory=list)
    exposure_minutes: int = 0


def _append_unique(labels: list[str], label: str) -> None:
    if label not in labels:
        labels.append(label)


def _platform_change_label(name: str, platform: str | None) -> str | None:
    if not platform or "!" not in platform:
        return None
    return f"{name} (Pl. {platform})"


def build_metrics(legs: list[Leg]) -> ConnectionMetrics:
    walk_legs = [leg for leg in legs if isinstance(leg, WalkLeg)]
    ride_legs = [leg for leg in legs if isinstance(leg, RideLeg)]

    walking_minutes = sum(
        minutes_between(leg.departure.effective_time(), leg.arrival.effective_time())
        for leg in walk_legs
    )

    transfer_waits = [
        minutes_between(prev.arrival.effective_time(), nxt.departure.effective_time())
        for prev, nxt in zip(ride_legs, ride_legs[1:])
    ]
    transfer_wait_minutes = sum(transfer_waits)

    min_transfer: int | None = None
    transfer_station: str | None = None
    if transfer_waits:
        min_transfer = min(transfer_waits)
        # list.index → first occurrence on ties
        transfer_station = ride_legs[transfer_waits.index(min_transfer)].arrival.name

    delay_total = 0
    delay_alerts: list[str] = []
    for leg in ride_legs:
        if leg.delay_minutes and leg.delay_minutes > 0:
            delay_total += leg.delay_minutes
            label = (
                f"{leg.line} +{leg.delay_minutes} min"
                if leg.line else f"Delay +{leg.delay_minutes} min"
            )
            _append_unique(delay_alerts, label)

    platform_changes: list[str] = []
    for leg in legs:
        for endpoint in (leg.departure, leg.arrival):
            label = _platform_change_label(endpoint.name, endpoint.platform)
            if label:
                _append_unique(platform_changes, label)

    return ConnectionMetrics(
        walking_minutes=walking_minutes,
        transfer_waits=transfer_waits,
        transfer_wait_minutes=transfer_wait_minutes,
        min_transfer_minutes=min_transfer,
        transfer_station=transfer_station,
        delay_minutes_total=delay_total,
        delay_alerts=delay_alerts,
        platform_changes=platform_changes,
        exposure_minutes=walking_minutes + transfer_wait_minutes,
    )
