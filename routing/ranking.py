"""
Ranks connections by a weighted decision score and picks the reasons shown
for each option.

Decision score (lower is better) is a weighted mean of:
  risk score                  0.55  always
  normalised duration         0.20  always
  normalised transfer count   0.10  always
  normalised walking minutes  0.10  only with prefer_low_walking
  normalised exposure minutes 0.10  only with minimize_outdoor_if_raining
                                    AND wet weather on this connection
Because the risk weight is always active the weight sum is never zero.

Ties keep input order (Python's sort is stable), so ranking the same set
twice gives the same ranks and labels.
"""

import logging
import string
from dataclasses import dataclass, replace
from enum import IntEnum

from domain.models import (
    Connection,
    DecisionContext,
    DecisionOption,
    DecisionPreferences,
    OptionAlerts,
    OptionWeather,
    WeatherInsight,
)
from explain.timefmt import minutes_between, subtract_minutes
from reliability.risk import RiskAssessment, clamp, compute_risk
from routing.metrics import ConnectionMetrics, build_metrics

logger = logging.getLogger(__name__)

MAX_REASONS = 3
WIND_GUST_THRESHOLD_KMH = 50


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DecisionWeights:
    risk: float = 0.55
    duration: float = 0.2
    transfers: float = 0.1
    walking: float = 0.1
    exposure: float = 0.1

    def __post_init__(self) -> None:
        # risk is the one term active for every connection
        if self.risk <= 0:
            raise ValueError(f"risk weight must be positive, got {self.risk}")
        if min(self.duration, self.transfers, self.walking, self.exposure) < 0:
            raise ValueError("decision weights must not be negative")

    def active(self, prefer_low_walking: bool, minimize_exposure: bool) -> "DecisionWeights":
        """Zero the optional terms that do not apply to this connection."""
        return replace(
            self,
            walking=self.walking if prefer_low_walking else 0.0,
            exposure=self.exposure if minimize_exposure else 0.0,
        )

    @property
    def total(self) -> float:
        return self.risk + self.duration + self.transfers + self.walking + self.exposure


DEFAULT_WEIGHTS = DecisionWeights()


# ---------------------------------------------------------------------------
# Reasons: ordered constant table
# ---------------------------------------------------------------------------

class ReasonPriority(IntEnum):
    TIGHT_TRANSFER = 1
    CURRENT_DELAY = 2
    WEATHER_EXPOSURE = 3
    WEATHER_SUMMARY = 4
    WALKING = 5
    TRANSFERS = 6
    PLATFORM_CHANGES = 7
    RUSH_HOUR = 8


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count > 1 else ''}"


REASON_TEMPLATES = {
    ReasonPriority.TIGHT_TRANSFER: lambda minutes, station: (
        f"{minutes} min transfer" + (f" at {station}" if station else "")
    ),
    ReasonPriority.CURRENT_DELAY: lambda minutes: f"current delay +{minutes} min",
    ReasonPriority.WEATHER_EXPOSURE: lambda condition, minutes: f"{condition} + {minutes} min exposed",
    ReasonPriority.WEATHER_SUMMARY: lambda label: label,
    ReasonPriority.WALKING: lambda minutes: f"{minutes} min walk",
    ReasonPriority.TRANSFERS: lambda count: _plural(count, "transfer"),
    ReasonPriority.PLATFORM_CHANGES: lambda count: _plural(count, "platform change"),
    ReasonPriority.RUSH_HOUR: lambda: "rush hour",
}

TIGHT_REASON_MINUTES = 8
WALK_REASON_MINUTES = 6
WALK_REASON_MINUTES_LOW_WALKING = 1


# ---------------------------------------------------------------------------
# Weather classification
# ---------------------------------------------------------------------------

def is_wet_weather(weather: WeatherInsight | None) -> bool:
    """Wet when the first forecast sample has any precipitation or snowfall."""
    if weather is None or not weather.samples:
        return False
    sample = weather.samples[0]
    return sample.precipitation > 0 or sample.snowfall > 0


def weather_condition_label(weather: WeatherInsight | None) -> str | None:
    if weather is None or not weather.samples:
        return None
    sample = weather.samples[0]
    if sample.snowfall > 0:
        return "snow"
    if sample.precipitation > 0:
        return "rain"
    if sample.wind_gusts > WIND_GUST_THRESHOLD_KMH:
        return "wind"
    return None


def select_reasons(
    connection: Connection,
    metrics: ConnectionMetrics,
    preferences: DecisionPreferences | None = None,
) -> list[str]:
    """Up to three reasons, highest priority first, no duplicate labels."""
    candidates: list[tuple[ReasonPriority, str]] = []

    def add(priority: ReasonPriority, *args) -> None:
        label = REASON_TEMPLATES[priority](*args)
        if label and all(existing != label for _, existing in candidates):
            candidates.append((priority, label))

    if metrics.min_transfer_minutes is not None and metrics.min_transfer_minutes < TIGHT_REASON_MINUTES:
        add(ReasonPriority.TIGHT_TRANSFER, metrics.min_transfer_minutes, metrics.transfer_station)

    if metrics.delay_minutes_total > 0:
        add(ReasonPriority.CURRENT_DELAY, metrics.delay_minutes_total)

    condition = weather_condition_label(connection.weather)
    if condition and metrics.exposure_minutes > 0:
        add(ReasonPriority.WEATHER_EXPOSURE, condition, metrics.exposure_minutes)
    elif connection.weather is not None and connection.weather.reasons:
        add(ReasonPriority.WEATHER_SUMMARY, connection.weather.reasons[0].label)

    low_walking = bool(preferences and preferences.prefer_low_walking)
    walk_threshold = WALK_REASON_MINUTES_LOW_WALKING if low_walking else WALK_REASON_MINUTES
    if metrics.walking_minutes >= walk_threshold:
        add(ReasonPriority.WALKING, metrics.walking_minutes)

    if connection.transfers_count > 0:
        add(ReasonPriority.TRANSFERS, connection.transfers_count)

    if metrics.platform_changes:
        add(ReasonPriority.PLATFORM_CHANGES, len(metrics.platform_changes))

    if connection.reliability is not None and any(
        reason.code == "peak_time" for reason in connection.reliability.reasons
    ):
        add(ReasonPriority.RUSH_HOUR)

    candidates.sort(key=lambda item: item[0])
    return [label for _, label in candidates[:MAX_REASONS]]


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

@dataclass
class ScoredConnection:
    connection: Connection
    metrics: ConnectionMetrics
    risk: RiskAssessment | None = None
    decision_score: float = 0.0


@dataclass
class RankingResult:
    options: list[DecisionOption]
    constraint_note: str | None = None


def option_label(index: int) -> str:
    """0 → "Option A" … 25 → "Option Z", then "Option 27", "Option 28", …"""
    letters = string.ascii_uppercase
    if index < len(letters):
        return f"Option {letters[index]}"
    return f"Option {index + 1}"


def normalize(value: float, lo: float, hi: float) -> float:
    if hi <= lo:
        return 0.0
    return clamp((value - lo) / (hi - lo), 0.0, 1.0)


def filter_by_max_transfers(
    items: list[ScoredConnection],
    max_transfers: int | None,
) -> tuple[list[ScoredConnection], str | None]:
    """
    Keep connections within max_transfers.

    The limit is advisory: if nothing survives, the full set is returned
    with a note explaining that the limit was relaxed.
    """
    if max_transfers is None:
        return items, None
    limit = max(0, int(max_transfers))
    kept = [item for item in items if item.connection.transfers_count <= limit]
    if kept:
        return kept, None
    note = (
        f"No routes within {limit} transfer{'' if limit == 1 else 's'}; "
        "showing closest matches."
    )
    logger.info("Transfer limit %d matched no connections; limit relaxed.", limit)
    return items, note


def _score(items: list[ScoredConnection], preferences: DecisionPreferences, weights: DecisionWeights) -> None:
    durations = [item.connection.duration_minutes for item in items]
    min_duration, max_duration = min(durations), max(durations)
    max_transfers = max([1, *(item.connection.transfers_count for item in items)])
    max_walking = max([1, *(item.metrics.walking_minutes for item in items)])
    max_exposure = max([1, *(item.metrics.exposure_minutes for item in items)])

    for item in items:
        item.risk = compute_risk(item.connection, item.metrics)
        active = weights.active(
            prefer_low_walking=preferences.prefer_low_walking,
            minimize_exposure=(
                preferences.minimize_outdoor_if_raining
                and is_wet_weather(item.connection.weather)
            ),
        )
        weighted = (
            item.risk.score * active.risk
            + normalize(item.connection.duration_minutes, min_duration, max_duration) * active.duration
            + normalize(item.connection.transfers_count, 0, max_transfers) * active.transfers
            + normalize(item.metrics.walking_minutes, 0, max_walking) * active.walking
            + normalize(item.metrics.exposure_minutes, 0, max_exposure) * active.exposure
        )
        item.decision_score = weighted / active.total


def _build_option(item: ScoredConnection, index: int, context: DecisionContext) -> DecisionOption:
    connection, metrics, risk = item.connection, item.metrics, item.risk

    arrival_buffer: int | None = None
    if context.is_arrival_time and context.requested_time:
        arrival_buffer = minutes_between(connection.arrival_time, context.requested_time)

    leave_by: str | None = None
    if not context.is_arrival_time and context.departure_buffer_minutes:
        leave_by = subtract_minutes(connection.departure_time, context.departure_buffer_minutes)

    weather = None
    if connection.weather is not None:
        weather = OptionWeather(
            level=connection.weather.level,
            summary=connection.weather.reasons[0].label if connection.weather.reasons else None,
        )

    return DecisionOption(
        id=connection.id,
        rank=index + 1,
        label=option_label(index),
        departure_time=connection.departure_time,
        arrival_time=connection.arrival_time,
        duration_minutes=connection.duration_minutes,
        transfers_count=connection.transfers_count,
        min_transfer_minutes=metrics.min_transfer_minutes,
        walking_minutes=metrics.walking_minutes,
        transfer_wait_minutes=metrics.transfer_wait_minutes,
        exposure_minutes=metrics.exposure_minutes,
        risk_score=risk.score,
        risk_level=risk.level,
        reasons=select_reasons(connection, metrics, context.preferences),
        suggested_departure_time=connection.departure_time,
        suggested_leave_by_time=leave_by,
        arrival_buffer_minutes=arrival_buffer,
        alerts=OptionAlerts(
            delays=list(metrics.delay_alerts),
            platform_changes=list(metrics.platform_changes),
        ),
        weather=weather,
    )


def rank_connections(
    connections: list[Connection],
    context: DecisionContext,
    weights: DecisionWeights = DEFAULT_WEIGHTS,
) -> RankingResult:
    """Score, sort and label connections; empty input gives an empty result."""
    if not connections:
        return RankingResult(options=[])

    items = [ScoredConnection(c, build_metrics(c.legs)) for c in connections]
    items, note = filter_by_max_transfers(items, context.preferences.max_transfers)

    _score(items, context.preferences, weights)
    items.sort(key=lambda item: item.decision_score)

    options = [_build_option(item, index, context) for index, item in enumerate(items)]
    logger.debug(
        "Ranked %d connections: %s",
        len(options), [(o.id, round(item.decision_score, 4)) for o, item in zip(options, items)],
    )
    return RankingResult(options=options, constraint_note=note)
