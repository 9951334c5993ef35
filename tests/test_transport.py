"""
Unit tests for ingestion.transport — reshaping transport.opendata.ch
connection and stationboard payloads.

Payloads below are trimmed copies of real /connections and /stationboard
responses (timestamps use the API's compact "+0100" offset).
"""

import pytest

from domain.models import GtfsLookup, GtfsRouteInfo, RideLeg, WalkLeg
from ingestion.transport import (
    connection_id,
    normalize_connections,
    normalize_leg,
    normalize_stationboard_entry,
    parse_duration,
)


def _ts(hhmm: str) -> str:
    return f"2026-02-09T{hhmm}:00+0100"


@pytest.fixture
def lookup() -> GtfsLookup:
    return GtfsLookup(
        routes={"R9": GtfsRouteInfo(short_name="S9", type=109, agency_id="11")},
        trips={"T9": "R9"},
        agencies={"11": "SBB"},
    )


def _checkpoint(name, key, planned, platform=None, prognosis=None) -> dict:
    return {
        "station": {"name": name},
        key: planned,
        "platform": platform,
        "prognosis": prognosis or {},
    }


def _ride_section(journey, dep_name, dep, arr_name, arr, dep_prognosis=None, dep_platform=None) -> dict:
    return {
        "journey": journey,
        "walk": None,
        "departure": _checkpoint(dep_name, "departure", _ts(dep), dep_platform, dep_prognosis),
        "arrival": _checkpoint(arr_name, "arrival", _ts(arr)),
    }


def _walk_section(name, dep, arr) -> dict:
    return {
        "journey": None,
        "walk": {"duration": 180},
        "departure": _checkpoint(name, "departure", _ts(dep)),
        "arrival": _checkpoint(name, "arrival", _ts(arr)),
    }


IC8 = {"name": "024987", "category": "IC", "number": "8", "operator": "SBB"}
S9 = {"name": "T9", "category": "S", "number": "9", "operator": None}


def _via_olten() -> dict:
    return {
        "from": {"departure": _ts("08:02")},
        "to": {"arrival": _ts("09:10")},
        "duration": "00d01:08:00",
        "sections": [
            _ride_section(
                IC8, "Zürich HB", "08:02", "Olten", "08:33",
                dep_platform="31",
                dep_prognosis={"departure": _ts("08:05"), "platform": "33"},
            ),
            _walk_section("Olten", "08:33", "08:36"),
            _ride_section(S9, "Olten", "08:40", "Bern", "09:10"),
        ],
    }


def _direct() -> dict:
    return {
        "from": {"departure": _ts("12:02")},
        "to": {"arrival": _ts("12:58")},
        "duration": "00d00:56:00",
        "sections": [_ride_section(IC8, "Zürich HB", "12:02", "Bern", "12:58")],
    }


# ---------------------------------------------------------------------------
# parse_duration / connection_id
# ---------------------------------------------------------------------------

class TestParseDuration:
    @pytest.mark.parametrize("raw, minutes", [
        ("00d01:05:00", 65),
        ("01d00:10:00", 1450),
        ("00:45:00", 45),
        (None, 0),
        ("", 0),
        ("soon", 0),
    ])
    def test_values(self, raw, minutes):
        assert parse_duration(raw) == minutes


class TestConnectionId:
    def test_departure_and_journey_names_sanitised(self):
        assert connection_id(_via_olten()) == "2026-02-09T08_02_00_0100-024987-T9"

    def test_missing_parts(self):
        assert connection_id({}) == "-"


# ---------------------------------------------------------------------------
# normalize_leg
# ---------------------------------------------------------------------------

class TestNormalizeLeg:
    def test_ride_prefers_prognosis(self):
        leg = normalize_leg(_via_olten()["sections"][0])
        assert isinstance(leg, RideLeg)
        assert leg.departure.name == "Zürich HB"
        assert leg.departure.time_planned == _ts("08:02")
        assert leg.departure.time_actual == _ts("08:05")
        assert leg.departure.platform == "33"
        assert leg.delay_minutes == 3

    def test_actual_time_dropped_when_equal_to_planned(self):
        section = _ride_section(
            IC8, "Zürich HB", "08:02", "Bern", "08:58",
            dep_prognosis={"departure": _ts("08:02")},
        )
        leg = normalize_leg(section)
        assert leg.departure.time_actual is None
        assert leg.delay_minutes is None

    def test_early_running_is_not_a_delay(self):
        section = _ride_section(
            IC8, "Zürich HB", "08:02", "Bern", "08:58",
            dep_prognosis={"departure": _ts("08:01")},
        )
        assert normalize_leg(section).delay_minutes is None

    def test_line_fallback_without_lookup(self):
        leg = normalize_leg(_via_olten()["sections"][0])
        assert leg.line == "IC 8"
        assert leg.line_id == "024987"
        assert leg.line_type == "train"
        assert leg.operator == "SBB"

    def test_line_resolved_through_lookup(self, lookup):
        leg = normalize_leg(_via_olten()["sections"][2], lookup)
        assert leg.line == "S9"
        assert leg.line_type == "train"
        assert leg.operator == "SBB"

    def test_walk_section(self):
        leg = normalize_leg(_walk_section("Olten", "08:33", "08:36"))
        assert isinstance(leg, WalkLeg)
        assert leg.departure.name == "Olten"


# ---------------------------------------------------------------------------
# normalize_connections
# ---------------------------------------------------------------------------

class TestNormalizeConnections:
    def test_shapes_and_tags(self, lookup):
        connections = normalize_connections([_via_olten(), _direct()], lookup)
        via, direct = connections

        assert via.duration_minutes == 68
        assert via.transfers_count == 1
        assert [leg.kind for leg in via.legs] == ["ride", "walk", "ride"]
        assert via.departure_time == _ts("08:02")
        assert via.arrival_time == _ts("09:10")
        assert via.tags == ["recommended"]

        assert direct.transfers_count == 0
        assert direct.tags == ["fastest", "fewest transfers"]

    def test_reliability_estimated(self):
        via, direct = normalize_connections([_via_olten(), _direct()])
        assert via.reliability is not None
        assert "peak_time" in [r.code for r in via.reliability.reasons]
        assert via.reliability_score == via.reliability.score
        assert direct.reliability.score == pytest.approx(0.9)

    def test_reliability_optional(self):
        (connection,) = normalize_connections([_direct()], with_reliability=False)
        assert connection.reliability is None
        assert connection.reliability_score is None

    def test_empty(self):
        assert normalize_connections([]) == []


# ---------------------------------------------------------------------------
# normalize_stationboard_entry
# ---------------------------------------------------------------------------

class TestStationboardEntry:
    def test_departure_board(self):
        entry = {
            **IC8,
            "to": "Bern",
            "stop": {
                "departure": _ts("08:02"),
                "platform": "31",
                "prognosis": {"departure": _ts("08:04"), "platform": None},
            },
        }
        row = normalize_stationboard_entry(entry)
        assert row["line"] == "IC 8"
        assert row["line_type"] == "train"
        assert row["destination"] == "Bern"
        assert row["time_planned"] == _ts("08:02")
        assert row["time_actual"] == _ts("08:04")
        assert row["platform"] == "31"
        assert row["delay_minutes"] == 2

    def test_arrival_board_falls_back_to_departure_time(self, lookup):
        entry = {**S9, "to": "Luzern", "stop": {"departure": _ts("09:40"), "prognosis": {}}}
        row = normalize_stationboard_entry(entry, lookup, board_type="arrival")
        assert row["time_planned"] == _ts("09:40")
        assert row["time_actual"] is None
        assert row["delay_minutes"] is None
        assert row["line"] == "S9"
        assert row["operator"] == "SBB"
