"""
Resolves raw carrier line identifiers to display names, modes and operators.

Resolution order for a key (trimmed line id, else "<category> <number>"):
  1. trips[key]                     → route_id
  2. key itself, if it is a route_id
  3. routeShortNameToId[key]        → route_id
With a route_id the reference table supplies the display name, the mode
(from the GTFS route_type) and the operator (route agency, else the feed's
single default agency).  Without one, the mode is guessed from the category
code and the display falls back to the raw values.

resolve_line_info() is pure: it is called once when legs are normalised and
again whenever a line is rendered, and must give the same answer each time.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from domain.models import GtfsLookup, LineInfo

logger = logging.getLogger(__name__)

# GTFS route_type → mode label (basic types; extended ranges handled in map_route_type)
_ROUTE_TYPE_MODES: dict[int, str] = {
    0: "tram",
    1: "metro",
    2: "train",
    3: "bus",
    4: "ferry",
    5: "cable_tram",
    6: "aerial_lift",
    7: "funicular",
    11: "trolleybus",
    12: "monorail",
}

# Category codes treated as mainline / regional rail
_TRAIN_CATEGORIES = frozenset({"IC", "IR", "RE", "R", "EC", "EN", "ICE", "S"})


def map_route_type(route_type: float) -> str:
    """Map a GTFS route_type (basic or extended) to a mode label; unknown → train."""
    if 100 <= route_type < 200:
        return "train"
    if 700 <= route_type < 800:
        return "bus"
    if float(route_type).is_integer():
        return _ROUTE_TYPE_MODES.get(int(route_type), "train")
    return "train"


def infer_mode_from_category(category: str | None) -> str | None:
    if not category:
        return None
    upper = category.upper()
    if upper.startswith("B"):
        return "bus"
    if "TRAM" in upper or upper == "T":
        return "tram"
    if upper in _TRAIN_CATEGORIES:
        return "train"
    return None


def _find_route_id(key: str, lookup: GtfsLookup) -> str | None:
    route_id = lookup.trips.get(key)
    if not route_id and key in lookup.routes:
        route_id = key
    if not route_id and lookup.route_short_name_to_id:
        route_id = lookup.route_short_name_to_id.get(key) or route_id
    return route_id or None


def resolve_line_info(
    line_id: str | None = None,
    category: str | None = None,
    number: str | None = None,
    operator: str | None = None,
    lookup: GtfsLookup | None = None,
) -> LineInfo:
    trimmed_line_id = (line_id or "").strip() or None
    fallback_display = " ".join(part for part in (category, number) if part).strip()

    line_display = fallback_display or trimmed_line_id or ""
    route_id: str | None = None
    line_type: str | None = None
    resolved_operator = operator
    source = "fallback"

    key = trimmed_line_id or fallback_display
    if lookup is not None and key:
        route_id = _find_route_id(key, lookup)
        if route_id:
            route = lookup.routes.get(route_id)
            if route is not None:
                display = route.short_name or route.long_name
                if display:
                    line_display = display.strip()
                if route.type is not None:
                    line_type = map_route_type(route.type)
            agency_id = (route.agency_id if route else None) or lookup.default_agency_id
            if agency_id and agency_id in lookup.agencies:
                resolved_operator = lookup.agencies[agency_id]
            source = "reference"

    if not line_display:
        line_display = trimmed_line_id or fallback_display or ""

    if not line_type:
        line_type = infer_mode_from_category(category)

    return LineInfo(
        line_id=trimmed_line_id,
        line_display=line_display,
        line_type=line_type,
        operator=resolved_operator,
        route_id=route_id,
        source=source,
    )


class GtfsLookupCache:
    """
    Read-once holder for the GTFS lookup file.

    The first get() reads and validates the file; every later call returns
    the same object.  A missing, unreadable or malformed file is remembered
    as None and never retried, so line resolution quietly runs in
    fallback-only mode for the rest of the process.

    Construct one per process (the API owns one) and pass it where needed;
    tests build their own around a tmp_path file or preload a lookup.
    """

    _UNSET = object()

    def __init__(self, path: Path, lookup: GtfsLookup | None | object = _UNSET) -> None:
        self.path = Path(path)
        self._lookup = lookup

    @classmethod
    def preloaded(cls, lookup: GtfsLookup | None) -> "GtfsLookupCache":
        """A cache that already holds lookup (or a settled "no lookup")."""
        return cls(Path("<memory>"), lookup)

    @property
    def loaded(self) -> bool:
        return self._lookup is not self._UNSET

    def get(self) -> GtfsLookup | None:
        if self._lookup is self._UNSET:
            self._lookup = self._load()
        return self._lookup

    def invalidate(self) -> None:
        """Forget the memoised result so the next get() reads the file again."""
        self._lookup = self._UNSET

    def _load(self) -> GtfsLookup | None:
        if not self.path.exists():
            logger.info("No GTFS lookup at %s; line resolution uses fallbacks only.", self.path)
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            lookup = GtfsLookup.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Could not load GTFS lookup from %s: %s", self.path, exc)
            return None
        logger.info(
            "GTFS lookup loaded: %d routes, %d trips, %d agencies (generated %s).",
            len(lookup.routes), len(lookup.trips), len(lookup.agencies), lookup.generated_at,
        )
        return lookup
