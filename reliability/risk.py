"""
Connection-level risk score.

Conceptual model:
  risk = P(delay) + weather exposure + tight-transfer penalty, clamped to 0–1

  P(delay)          = 1 − reliability estimate (0.7 when none was supplied)
  weather exposure  = weather_penalty × (0.3 + 0.7 × min(exposure_min / 20, 1))
                      (a 20-minute exposure window saturates the multiplier)
  tight transfer    = 0.12 below 6 min, 0.06 below 8 min, else 0

Thresholds are fixed: high ≥ 0.6, medium ≥ 0.35, otherwise low.
"""

from dataclasses import dataclass

from domain.models import Connection
from routing.metrics import ConnectionMetrics

DEFAULT_RELIABILITY = 0.7

EXPOSURE_SATURATION_MINUTES = 20
WEATHER_BASE_SHARE = 0.3
WEATHER_EXPOSURE_SHARE = 0.7

TIGHT_TRANSFER_MINUTES = 6
SHORT_TRANSFER_MINUTES = 8
TIGHT_TRANSFER_PENALTY = 0.12
SHORT_TRANSFER_PENALTY = 0.06

HIGH_RISK_THRESHOLD = 0.6
MEDIUM_RISK_THRESHOLD = 0.35


@dataclass(frozen=True)
class RiskAssessment:
    score: float
    level: str
    delay_likelihood: float
    weather_exposure_risk: float
    tight_transfer_penalty: float


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def reliability_of(connection: Connection) -> float:
    if connection.reliability is not None:
        return connection.reliability.score
    if connection.reliability_score is not None:
        return connection.reliability_score
    return DEFAULT_RELIABILITY


def tight_transfer_penalty(min_transfer_minutes: int | None) -> float:
    if min_transfer_minutes is None:
        return 0.0
    if min_transfer_minutes < TIGHT_TRANSFER_MINUTES:
        return TIGHT_TRANSFER_PENALTY
    if min_transfer_minutes < SHORT_TRANSFER_MINUTES:
        return SHORT_TRANSFER_PENALTY
    return 0.0


def weather_exposure_risk(weather_penalty: float, exposure_minutes: int) -> float:
    if weather_penalty <= 0:
        return 0.0
    exposure_factor = clamp(exposure_minutes / EXPOSURE_SATURATION_MINUTES, 0.0, 1.0)
    return weather_penalty * (WEATHER_BASE_SHARE + WEATHER_EXPOSURE_SHARE * exposure_factor)


def risk_level(score: float) -> str:
    if score >= HIGH_RISK_THRESHOLD:
        return "high"
    if score >= MEDIUM_RISK_THRESHOLD:
        return "medium"
    return "low"


def compute_risk(connection: Connection, metrics: ConnectionMetrics) -> RiskAssessment:
    delay_likelihood = 1.0 - reliability_of(connection)
    weather_penalty = connection.weather.penalty if connection.weather else 0.0
    weather_risk = weather_exposure_risk(weather_penalty, metrics.exposure_minutes)
    transfer_penalty = tight_transfer_penalty(metrics.min_transfer_minutes)

    score = clamp(delay_likelihood + weather_risk + transfer_penalty, 0.0, 1.0)
    return RiskAssessment(
        score=score,
        level=risk_level(score),
        delay_likelihood=delay_likelihood,
        weather_exposure_risk=weather_risk,
        tight_transfer_penalty=transfer_penalty,
    )
