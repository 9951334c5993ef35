from __future__ import annotations
from typing import Any, Literal
from pydantic import BaseModel, Field

from domain.models import Connection, DecisionContext


# ---------------------------------------------------------------------------
# POST /decisions
# ---------------------------------------------------------------------------

class DecisionRequest(BaseModel):
    connections: list[Connection]
    context: DecisionContext


# ---------------------------------------------------------------------------
# POST /delays/route, POST /disruptions
# ---------------------------------------------------------------------------

class RouteDelayRequest(BaseModel):
    origin: str
    destination: str
    connections: list[Connection]   # first one is reported


class DisruptionRequest(BaseModel):
    station: str
    # one list per destination checked; an empty list counts as missing
    connection_sets: list[list[Connection]]
    failed_lookups: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# POST /connections/normalize, POST /stationboard/normalize
# ---------------------------------------------------------------------------

class NormalizeConnectionsRequest(BaseModel):
    connections: list[dict[str, Any]]   # raw transport API "connections"
    with_reliability: bool = True


class NormalizeStationboardRequest(BaseModel):
    stationboard: list[dict[str, Any]]  # raw transport API "stationboard"
    board_type: Literal["departure", "arrival"] = "departure"


class StationboardEntry(BaseModel):
    line: str
    line_id: str | None = None
    line_display: str
    line_type: str | None = None
    operator: str | None = None
    destination: str
    time_planned: str
    time_actual: str | None = None
    platform: str | None = None
    delay_minutes: int | None = None


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class LookupStats(BaseModel):
    path: str
    available: bool
    routes: int = 0
    trips: int = 0
    agencies: int = 0
    generated_at: str | None = None
    source: str | None = None


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    gtfs_lookup: LookupStats
