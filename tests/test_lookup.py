"""
Tests for gtfs.lookup — line resolution and the read-once lookup cache.
"""

import json
from unittest.mock import patch

import pytest

from domain.models import GtfsLookup, GtfsRouteInfo
from gtfs.lookup import (
    GtfsLookupCache,
    infer_mode_from_category,
    map_route_type,
    resolve_line_info,
)


@pytest.fixture
def lookup() -> GtfsLookup:
    return GtfsLookup(
        routes={
            "91-1": GtfsRouteInfo(short_name="S1", long_name="Zug - Luzern", type=109, agency_id="11"),
            "92-7": GtfsRouteInfo(long_name="Lake ferry", type=4),
            "93-3": GtfsRouteInfo(short_name="3", type=900),
        },
        trips={"T1": "91-1"},
        route_short_name_to_id={"S1": "91-1", "3": "93-3"},
        agencies={"11": "SBB", "22": "SGV"},
    )


# ---------------------------------------------------------------------------
# map_route_type / infer_mode_from_category
# ---------------------------------------------------------------------------

class TestMapRouteType:
    @pytest.mark.parametrize("code, mode", [
        (0, "tram"), (1, "metro"), (2, "train"), (3, "bus"), (4, "ferry"),
        (5, "cable_tram"), (6, "aerial_lift"), (7, "funicular"),
        (11, "trolleybus"), (12, "monorail"),
    ])
    def test_basic_types(self, code, mode):
        assert map_route_type(code) == mode

    def test_extended_rail_range(self):
        assert map_route_type(100) == "train"
        assert map_route_type(199) == "train"

    def test_extended_bus_range(self):
        assert map_route_type(700) == "bus"
        assert map_route_type(799) == "bus"

    def test_unknown_defaults_to_train(self):
        assert map_route_type(900) == "train"
        assert map_route_type(2.5) == "train"


class TestInferModeFromCategory:
    def test_bus_prefix(self):
        assert infer_mode_from_category("B") == "bus"
        assert infer_mode_from_category("bn") == "bus"

    def test_tram(self):
        assert infer_mode_from_category("T") == "tram"
        assert infer_mode_from_category("Tram") == "tram"

    def test_train_codes(self):
        for code in ("IC", "IR", "RE", "R", "EC", "EN", "ICE", "S"):
            assert infer_mode_from_category(code) == "train"

    def test_unknown(self):
        assert infer_mode_from_category("FUN") is None
        assert infer_mode_from_category(None) is None


# ---------------------------------------------------------------------------
# resolve_line_info
# ---------------------------------------------------------------------------

class TestResolveLineInfo:
    def test_trip_id_resolves_through_reference(self, lookup):
        info = resolve_line_info(line_id="T1", lookup=lookup)
        assert info.line_display == "S1"
        assert info.route_id == "91-1"
        assert info.line_type == "train"
        assert info.operator == "SBB"
        assert info.source == "reference"

    def test_unknown_id_falls_back_to_category(self, lookup):
        info = resolve_line_info(line_id="999999", category="B", lookup=lookup)
        assert info.line_display == "B"
        assert info.line_type == "bus"
        assert info.source == "fallback"
        assert info.line_id == "999999"

    def test_route_id_used_directly(self, lookup):
        info = resolve_line_info(line_id="92-7", lookup=lookup)
        # no short name → long name
        assert info.line_display == "Lake ferry"
        assert info.line_type == "ferry"
        assert info.source == "reference"

    def test_short_name_map(self, lookup):
        info = resolve_line_info(category="S", number="1", lookup=lookup)
        # key "S 1" is unknown; falls back
        assert info.source == "fallback"
        info = resolve_line_info(line_id="S1", lookup=lookup)
        assert info.route_id == "91-1"
        assert info.source == "reference"

    def test_operator_kept_when_agency_unknown(self, lookup):
        info = resolve_line_info(line_id="92-7", operator="BLS", lookup=lookup)
        assert info.operator == "BLS"

    def test_default_agency_used_when_route_has_none(self, lookup):
        single = lookup.model_copy(update={"default_agency_id": "22"})
        info = resolve_line_info(line_id="92-7", operator="BLS", lookup=single)
        assert info.operator == "SGV"

    def test_no_lookup_is_fallback_only(self):
        info = resolve_line_info(line_id=" IC 5 ", category="IC", number="5", operator="SBB")
        assert info.line_id == "IC 5"
        assert info.line_display == "IC 5"
        assert info.line_type == "train"
        assert info.operator == "SBB"
        assert info.source == "fallback"

    def test_blank_id_uses_category_number_key(self, lookup):
        info = resolve_line_info(line_id="   ", number="3", lookup=lookup)
        assert info.line_id is None
        assert info.route_id == "93-3"
        assert info.line_display == "3"

    def test_raw_id_when_no_category(self):
        info = resolve_line_info(line_id="024987")
        assert info.line_display == "024987"
        assert info.line_type is None

    def test_everything_blank(self, lookup):
        info = resolve_line_info(lookup=lookup)
        assert info.line_display == ""
        assert info.source == "fallback"

    def test_reference_mode_wins_over_category(self, lookup):
        info = resolve_line_info(line_id="T1", category="B", lookup=lookup)
        assert info.line_type == "train"

    def test_repeated_calls_are_identical(self, lookup):
        first = resolve_line_info(line_id="T1", category="S", number="1", lookup=lookup)
        second = resolve_line_info(line_id="T1", category="S", number="1", lookup=lookup)
        assert first == second


# ---------------------------------------------------------------------------
# GtfsLookupCache
# ---------------------------------------------------------------------------

class TestGtfsLookupCache:
    def test_loads_lookup_file(self, tmp_path):
        path = tmp_path / "gtfs-lookup.json"
        path.write_text(json.dumps({
            "routes": {"91-1": {"shortName": "S1", "type": 109, "agencyId": "11"}},
            "trips": {"T1": "91-1"},
            "routeShortNameToId": {"S1": "91-1"},
            "agencies": {"11": "SBB"},
            "defaultAgencyId": "11",
            "generatedAt": "2026-02-01T00:00:00Z",
            "source": "gtfs.zip",
        }))
        lookup = GtfsLookupCache(path).get()
        assert lookup is not None
        assert lookup.routes["91-1"].short_name == "S1"
        assert lookup.default_agency_id == "11"
        assert resolve_line_info(line_id="T1", lookup=lookup).line_display == "S1"

    def test_file_read_only_once(self, tmp_path):
        path = tmp_path / "gtfs-lookup.json"
        path.write_text(json.dumps({"routes": {}, "trips": {}, "agencies": {}}))
        cache = GtfsLookupCache(path)
        first = cache.get()
        path.unlink()
        assert cache.get() is first

    def test_missing_file_memoised_as_none(self, tmp_path):
        path = tmp_path / "gtfs-lookup.json"
        cache = GtfsLookupCache(path)
        assert cache.get() is None
        assert cache.loaded is True
        # a file appearing later is not picked up
        path.write_text(json.dumps({"routes": {}, "trips": {}, "agencies": {}}))
        with patch.object(GtfsLookupCache, "_load") as load:
            assert cache.get() is None
        load.assert_not_called()

    def test_malformed_json_degrades_to_none(self, tmp_path):
        path = tmp_path / "gtfs-lookup.json"
        path.write_text("{not json")
        assert GtfsLookupCache(path).get() is None

    def test_wrong_shape_degrades_to_none(self, tmp_path):
        path = tmp_path / "gtfs-lookup.json"
        path.write_text(json.dumps({"routes": ["not", "a", "dict"]}))
        assert GtfsLookupCache(path).get() is None

    def test_invalidate_rereads(self, tmp_path):
        path = tmp_path / "gtfs-lookup.json"
        cache = GtfsLookupCache(path)
        assert cache.get() is None
        path.write_text(json.dumps({"routes": {}, "trips": {"T9": "R9"}, "agencies": {}}))
        cache.invalidate()
        assert cache.loaded is False
        assert cache.get().trips == {"T9": "R9"}

    def test_preloaded(self, lookup):
        assert GtfsLookupCache.preloaded(lookup).get() is lookup
        assert GtfsLookupCache.preloaded(None).get() is None
