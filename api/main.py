"""
FastAPI application entry point.

The API is a thin shell over the decision engine: callers post connections
they already fetched and get back a ranked, explained decision summary.

The GTFS lookup is read from GTFS_LOOKUP_PATH at most once per process via
a GtfsLookupCache owned by this module and injected with Depends(), so tests
can swap in their own cache through app.dependency_overrides.

Endpoints (v1):
  GET  /health
  GET  /lines/resolve?line_id=&category=&number=&operator=
  POST /connections/normalize
  POST /stationboard/normalize
  POST /decisions
  POST /delays/route
  POST /disruptions
"""

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from api.schemas import (
    DecisionRequest,
    DisruptionRequest,
    HealthResponse,
    NormalizeConnectionsRequest,
    NormalizeStationboardRequest,
    RouteDelayRequest,
    StationboardEntry,
)
from config import CORS_ORIGINS, GTFS_LOOKUP_PATH
from domain.models import (
    Connection,
    DecisionSummary,
    DisruptionReport,
    LineInfo,
    RouteDelayReport,
)
from explain.summary import build_decision_summary
from gtfs.lookup import GtfsLookupCache, resolve_line_info
from ingestion.transport import normalize_connections, normalize_stationboard_entry
from reliability.disruptions import assess_disruptions, build_route_delay_report

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_lookup_cache = GtfsLookupCache(GTFS_LOOKUP_PATH)


def get_lookup_cache() -> GtfsLookupCache:
    """Dependency returning the process-wide lookup cache."""
    return _lookup_cache


app = FastAPI(
    title="Transit Decision Engine",
    description="Risk-ranked, explained connection options with GTFS line resolution.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
def health(cache: GtfsLookupCache = Depends(get_lookup_cache)) -> HealthResponse:
    """Liveness check plus GTFS lookup status (loads the lookup if not yet loaded)."""
    lookup = cache.get()
    stats = {"path": str(cache.path), "available": lookup is not None}
    if lookup is not None:
        stats.update(
            routes=len(lookup.routes),
            trips=len(lookup.trips),
            agencies=len(lookup.agencies),
            generated_at=lookup.generated_at,
            source=lookup.source,
        )
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "gtfs_lookup": stats,
    }


@app.get("/lines/resolve", response_model=LineInfo)
def resolve_line(
    line_id: str | None = Query(None, description="Raw carrier line/trip identifier"),
    category: str | None = Query(None, description="Category code, e.g. IC, S, B"),
    number: str | None = Query(None, description="Line number"),
    operator: str | None = Query(None, description="Carrier/operator as reported upstream"),
    cache: GtfsLookupCache = Depends(get_lookup_cache),
) -> LineInfo:
    """Resolve a raw line to display name, mode and operator."""
    return resolve_line_info(
        line_id=line_id,
        category=category,
        number=number,
        operator=operator,
        lookup=cache.get(),
    )


@app.post("/connections/normalize", response_model=list[Connection])
def normalize(
    body: NormalizeConnectionsRequest,
    cache: GtfsLookupCache = Depends(get_lookup_cache),
) -> list[Connection]:
    """Reshape raw transport API connections into Connection objects."""
    return normalize_connections(
        body.connections,
        lookup=cache.get(),
        with_reliability=body.with_reliability,
    )


@app.post("/stationboard/normalize", response_model=list[StationboardEntry])
def normalize_stationboard(
    body: NormalizeStationboardRequest,
    cache: GtfsLookupCache = Depends(get_lookup_cache),
) -> list[StationboardEntry]:
    """Reshape raw stationboard entries, resolving each line."""
    lookup = cache.get()
    return [
        normalize_stationboard_entry(entry, lookup=lookup, board_type=body.board_type)
        for entry in body.stationboard
    ]


@app.post("/decisions", response_model=DecisionSummary)
def decide(body: DecisionRequest) -> DecisionSummary:
    """
    Rank the posted connections and return the decision summary.

    An empty connection list is not an error: the summary carries no
    options and a "no connections found" narrative.
    """
    return build_decision_summary(body.connections, body.context)


@app.post("/delays/route", response_model=RouteDelayReport)
def route_delays(body: RouteDelayRequest) -> RouteDelayReport:
    """Delayed legs of the first posted connection and the stations worth checking."""
    return build_route_delay_report(body.connections, body.origin, body.destination)


@app.post("/disruptions", response_model=DisruptionReport)
def disruptions(body: DisruptionRequest) -> DisruptionReport:
    """Classify service around a station from connections towards several destinations."""
    return assess_disruptions(
        body.station,
        body.connection_sets,
        extra_missing=body.failed_lookups,
    )
