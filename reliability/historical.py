"""
Reliability estimate for a freshly normalised connection.

Time buckets (local time of the first departure):
  weekday_am_peak   06:00–09:00
  weekday_pm_peak   15:00–19:00
  weekday_offpeak   all other weekday hours
  weekend           Saturday + Sunday

Reliability score (0–1, higher = more reliable) starts from a prior and is
reduced by each structural or live signal found on the itinerary.  Every
reduction carries a reason code; "peak_time" is what the ranking layer
surfaces as "rush hour".
"""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from config import DISPLAY_TIMEZONE
from domain.models import Leg, ReliabilityEstimate, ReliabilityReason, RideLeg
from explain.timefmt import minutes_between, parse_time

logger = logging.getLogger(__name__)

# Score adjustments (tunable)
BASE_RELIABILITY = 0.9
PEAK_PENALTY = 0.10
WEEKEND_PENALTY = 0.03
PER_TRANSFER_PENALTY = 0.04
TIGHT_TRANSFER_PENALTY = 0.10
TIGHT_TRANSFER_MINUTES = 5
MAX_DELAY_PENALTY = 0.2         # reached at a 30-min current delay


def classify_time_bucket(dt: datetime) -> str:
    """Return the time bucket label for a given datetime."""
    if dt.weekday() >= 5:
        return "weekend"
    hour = dt.hour
    if 6 <= hour < 9:
        return "weekday_am_peak"
    if 15 <= hour < 19:
        return "weekday_pm_peak"
    return "weekday_offpeak"


def _reliability_level(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.6:
        return "medium"
    return "low"


def estimate_reliability(legs: list[Leg], departure_time: str) -> ReliabilityEstimate:
    """
    Score a connection from its legs and first departure.

    An unparseable departure time skips the time-bucket signals rather
    than failing the estimate.
    """
    score = BASE_RELIABILITY
    reasons: list[ReliabilityReason] = []

    departure = parse_time(departure_time)
    if departure is not None:
        if departure.tzinfo is not None:
            departure = departure.astimezone(ZoneInfo(DISPLAY_TIMEZONE))
        bucket = classify_time_bucket(departure)
        if bucket in ("weekday_am_peak", "weekday_pm_peak"):
            score -= PEAK_PENALTY
            reasons.append(ReliabilityReason(code="peak_time", label="Peak-hour departure"))
        elif bucket == "weekend":
            score -= WEEKEND_PENALTY
            reasons.append(ReliabilityReason(code="weekend", label="Weekend timetable"))

    rides = [leg for leg in legs if isinstance(leg, RideLeg)]
    transfers = max(0, len(rides) - 1)
    if transfers:
        score -= PER_TRANSFER_PENALTY * transfers
        reasons.append(ReliabilityReason(
            code="transfers",
            label=f"{transfers} transfer{'s' if transfers > 1 else ''}",
        ))

        waits = [
            minutes_between(prev.arrival.effective_time(), nxt.departure.effective_time())
            for prev, nxt in zip(rides, rides[1:])
        ]
        if min(waits) < TIGHT_TRANSFER_MINUTES:
            score -= TIGHT_TRANSFER_PENALTY
            reasons.append(ReliabilityReason(
                code="tight_transfer", label=f"{min(waits)} min transfer",
            ))

    delay = sum(leg.delay_minutes or 0 for leg in rides)
    if delay > 0:
        score -= min(delay / 30, 1.0) * MAX_DELAY_PENALTY
        reasons.append(ReliabilityReason(code="current_delay", label=f"Running +{delay} min late"))

    score = max(0.0, min(1.0, score))
    logger.debug("Reliability estimate %.3f (%s).", score, [r.code for r in reasons])
    return ReliabilityEstimate(
        score=round(score, 3),
        level=_reliability_level(score),
        reasons=reasons,
    )
