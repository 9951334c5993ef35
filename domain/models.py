"""
Shared data shapes for the decision engine.

Legs and connections arrive already normalised (see ingestion/transport.py);
everything the ranking layer emits is rebuilt from scratch on every call.

The GTFS lookup models keep the camelCase keys of the on-disk lookup file
(routes / trips / routeShortNameToId / agencies / defaultAgencyId /
generatedAt / source) through field aliases, so a lookup written by any
builder that honours that contract loads unchanged.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

Level = Literal["low", "medium", "high"]


# ---------------------------------------------------------------------------
# Legs
# ---------------------------------------------------------------------------

class Endpoint(BaseModel):
    name: str
    time_planned: str = ""          # ISO-8601
    time_actual: str | None = None  # only set when it differs from planned
    platform: str | None = None     # "!" marks a live platform change

    def effective_time(self) -> str:
        return self.time_actual or self.time_planned


class RideLeg(BaseModel):
    kind: Literal["ride"] = "ride"
    departure: Endpoint
    arrival: Endpoint
    line_id: str | None = None
    line: str | None = None         # resolved display label
    line_type: str | None = None
    operator: str | None = None
    delay_minutes: int | None = Field(default=None, ge=0)


class WalkLeg(BaseModel):
    kind: Literal["walk"] = "walk"
    departure: Endpoint
    arrival: Endpoint


Leg = Annotated[RideLeg | WalkLeg, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Per-connection insights supplied by upstream collaborators
# ---------------------------------------------------------------------------

class WeatherSample(BaseModel):
    time: str | None = None
    temperature: float | None = None
    precipitation: float = 0.0      # mm/h
    snowfall: float = 0.0           # cm/h
    wind_gusts: float = 0.0         # km/h


class WeatherReason(BaseModel):
    code: str
    label: str


class WeatherInsight(BaseModel):
    penalty: float = Field(default=0.0, ge=0.0, le=1.0)
    level: Level = "low"
    reasons: list[WeatherReason] = Field(default_factory=list)
    samples: list[WeatherSample] = Field(default_factory=list)


class ReliabilityReason(BaseModel):
    code: str
    label: str


class ReliabilityEstimate(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    level: Level = "medium"
    reasons: list[ReliabilityReason] = Field(default_factory=list)


class Connection(BaseModel):
    id: str
    departure_time: str
    arrival_time: str
    duration_minutes: int = Field(default=0, ge=0)
    transfers_count: int = Field(default=0, ge=0)
    legs: list[Leg] = Field(default_factory=list)
    reliability: ReliabilityEstimate | None = None
    reliability_score: float | None = Field(default=None, ge=0.0, le=1.0)
    weather: WeatherInsight | None = None
    tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Decision request / response
# ---------------------------------------------------------------------------

class DecisionPreferences(BaseModel):
    max_transfers: int | None = Field(default=None, ge=0)
    prefer_low_walking: bool = False
    minimize_outdoor_if_raining: bool = False


class DecisionContext(BaseModel):
    origin: str
    destination: str
    requested_time: str
    is_arrival_time: bool = False
    arrival_buffer_minutes: int | None = Field(default=None, ge=0)
    departure_buffer_minutes: int | None = Field(default=None, ge=0)
    preferences: DecisionPreferences = Field(default_factory=DecisionPreferences)


class OptionAlerts(BaseModel):
    delays: list[str] = Field(default_factory=list)
    platform_changes: list[str] = Field(default_factory=list)


class OptionWeather(BaseModel):
    level: Level
    summary: str | None = None


class DecisionOption(BaseModel):
    id: str
    rank: int
    label: str
    departure_time: str
    arrival_time: str
    duration_minutes: int
    transfers_count: int
    min_transfer_minutes: int | None = None
    walking_minutes: int
    transfer_wait_minutes: int
    exposure_minutes: int
    risk_score: float
    risk_level: Level
    reasons: list[str] = Field(default_factory=list, max_length=3)
    suggested_departure_time: str
    suggested_leave_by_time: str | None = None
    arrival_buffer_minutes: int | None = Field(default=None, ge=0)
    alerts: OptionAlerts = Field(default_factory=OptionAlerts)
    weather: OptionWeather | None = None


class DataCoverage(BaseModel):
    realtime_delays: bool = True
    platform_changes: bool = True
    cancellations: bool = False
    service_notices: bool = False


class DecisionSummary(BaseModel):
    origin: str
    destination: str
    requested_time: str
    is_arrival_time: bool
    arrival_buffer_minutes: int | None = Field(default=None, ge=0)
    departure_buffer_minutes: int | None = Field(default=None, ge=0)
    constraints: DecisionPreferences
    constraint_note: str | None = None
    options: list[DecisionOption] = Field(default_factory=list)
    recommended_option_id: str | None = None
    summary_text: str
    data_coverage: DataCoverage = Field(default_factory=DataCoverage)


# ---------------------------------------------------------------------------
# Delay / disruption reports
# ---------------------------------------------------------------------------

DisruptionStatus = Literal["normal", "minor_delays", "major_delays", "disrupted"]


class DelayedLeg(BaseModel):
    line: str
    from_station: str
    to_station: str
    scheduled_departure: str = ""
    delay_minutes: int


class RouteDelayReport(BaseModel):
    origin: str
    destination: str
    connection_id: str | None = None
    departure_time: str | None = None
    arrival_time: str | None = None
    delayed_legs: list[DelayedLeg] = Field(default_factory=list)
    stations_to_check: list[str] = Field(default_factory=list)
    summary: str


class DisruptionReport(BaseModel):
    station: str
    total_connections_checked: int
    delayed_count: int              # delayed ride legs across every checked connection
    cancelled_or_missing: int
    average_delay_minutes: int
    max_delay_minutes: int
    delayed_routes: list[DelayedLeg] = Field(default_factory=list)
    status: DisruptionStatus
    summary: str


# ---------------------------------------------------------------------------
# GTFS reference table
# ---------------------------------------------------------------------------

class GtfsRouteInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    short_name: str | None = Field(default=None, alias="shortName")
    long_name: str | None = Field(default=None, alias="longName")
    type: int | float | None = None
    agency_id: str | None = Field(default=None, alias="agencyId")


class GtfsLookup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    routes: dict[str, GtfsRouteInfo] = Field(default_factory=dict)
    trips: dict[str, str] = Field(default_factory=dict)
    route_short_name_to_id: dict[str, str] | None = Field(default=None, alias="routeShortNameToId")
    agencies: dict[str, str] = Field(default_factory=dict)
    default_agency_id: str | None = Field(default=None, alias="defaultAgencyId")
    generated_at: str | None = Field(default=None, alias="generatedAt")
    source: str | None = None


class LineInfo(BaseModel):
    line_id: str | None = None
    line_display: str
    line_type: str | None = None
    operator: str | None = None
    route_id: str | None = None
    source: Literal["reference", "fallback"] = "fallback"
