import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from catalog.load import load_dataset
from engine.location import LocationState
from engine.query import TripQuery, ViewMode
from engine.trip import (
    TripEngine,
    TripStatus,
    _empty_reason,
    _priority_stop,
    _route_confidence,
    _trip_stats,
)
from geo.aoi import LatLng
from geo.measure import Cardinal
from ranking.direction import HighwayMatch
from ranking.proximity import SortMode
from stations.types import Direction, PlaceItem, PlaceKind, RouteConfidence

# On E1, between R&R Rawang and Petron Bukit Beruntung.
ON_E1 = LatLng(lat=3.45, lng=101.43)
# On E1 at R&R Sungai Perak, looking back south.
SUNGAI_PERAK = LatLng(lat=4.80, lng=100.94)
# On E2 at R&R Seremban.
SEREMBAN = LatLng(lat=2.75, lng=101.90)


@pytest.fixture(scope="module")
def engine() -> TripEngine:
    return TripEngine(load_dataset("malaysia_sample"))


def _ids(items):
    return [p.id for p in items]


def test_highway_only_set_drops_off_corridor_and_unknown_highway(engine):
    ids = {s.id for s in engine.highway_only_stations()}
    assert len(ids) == 17
    assert "shell_tapah_town" not in ids
    assert "petronas_kuantan_town" not in ids
    # ~3.2 km off E1: still out at the widest URL buffer, in with a very wide one.
    assert "shell_tapah_town" not in {s.id for s in engine.highway_only_stations(800.0)}
    assert "shell_tapah_town" in {s.id for s in engine.highway_only_stations(5000.0)}
    assert "petronas_kuantan_town" not in {s.id for s in engine.highway_only_stations(5000.0)}


def test_unknown_highway_is_logged_once_at_startup(caplog):
    with caplog.at_level(logging.WARNING, logger="engine.trip"):
        TripEngine(load_dataset("malaysia_sample"))
    assert "petronas_kuantan_town" in caplog.text
    assert "E99" in caplog.text


def test_place_filters(engine):
    assert len(engine.places(TripQuery())) == 29
    assert len(engine.places(TripQuery(mode=ViewMode.RNR))) == 12
    assert len(engine.places(TripQuery(mode=ViewMode.FUEL))) == 17

    shell = engine.places(TripQuery(brands=("SHELL",)))
    assert len(shell) == 12 + 5
    assert all(p.brand == "SHELL" for p in shell if p.kind == PlaceKind.FUEL)

    ev = engine.places(TripQuery(facilities=("ev",)))
    assert sorted(_ids(ev)) == [
        "rnr:ayer_keroh_nb",
        "rnr:genting_sempah_eb",
        "rnr:juru_nb",
        "rnr:tapah_sb",
    ]
    assert engine.places(TripQuery(mode=ViewMode.FUEL, facilities=("ev",))) == []


def test_places_are_memoized_per_filter_key(engine):
    q = TripQuery(brands=("BHP",))
    assert engine.places(q) is engine.places(TripQuery(brands=("BHP",)))
    assert engine.places(q) is not engine.places(TripQuery(brands=("BHP",), buffer_m=300.0))


def test_plan_northbound_on_e1(engine):
    plan = engine.plan(TripQuery(), LocationState(current=ON_E1, heading=0.0))
    assert plan.location_status == "Current highway: E1"
    assert plan.highway_line == "Highway: E1"
    assert plan.route_confidence == "Confidence: High (inside corridor)"
    assert not plan.highway_uncertain
    assert plan.current_highway.id == "E1"
    assert plan.direction == Cardinal.NORTH

    assert _ids(plan.next_rest_areas) == ["rnr:sungai_perak_nb", "rnr:juru_nb"]
    assert _ids(plan.next_fuel) == [
        "fuel:petron_bukit_beruntung_nb",
        "fuel:petronas_sungai_perak_nb",
        "fuel:shell_changkat_nb",
    ]
    assert all(p.eta_minutes is not None and p.distance_km is not None for p in plan.next_fuel)

    assert len(plan.nearest) == 10
    distances = [p.distance_km for p in plan.nearest]
    assert distances == sorted(distances)
    assert plan.nearest_rest_area.id == "rnr:rawang_nb"
    assert plan.nearest_fuel.id == "fuel:petronas_rawang_nb"

    assert plan.priority_stop.id == "fuel:petron_bukit_beruntung_nb"
    assert plan.status == TripStatus.READY
    assert plan.fuel_in_range is None
    assert plan.total_fuel == 17
    assert plan.stats.fuel_in_range == 17
    assert plan.places_available == 29
    assert plan.places_matched == 29
    assert plan.empty_reason == ""


def test_plan_southbound_on_e1(engine):
    plan = engine.plan(TripQuery(), LocationState(current=SUNGAI_PERAK, heading=180.0))
    assert plan.direction == Cardinal.SOUTH
    assert _ids(plan.next_fuel) == ["fuel:caltex_ipoh_selatan_sb", "fuel:shell_tapah_sb"]
    assert _ids(plan.next_rest_areas) == ["rnr:tapah_sb"]


def test_plan_uses_declared_forward_on_e2(engine):
    plan = engine.plan(TripQuery(), LocationState(current=SEREMBAN, heading=180.0))
    assert plan.current_highway.id == "E2"
    assert _ids(plan.next_fuel) == ["fuel:bhp_alor_gajah_sb", "fuel:petronas_machap_sb"]
    assert _ids(plan.next_rest_areas) == ["rnr:machap_sb"]


def test_direction_from_two_fixes(engine):
    prev = LatLng(lat=3.40, lng=101.46)
    plan = engine.plan(TripQuery(), LocationState(previous=prev, current=ON_E1))
    assert plan.direction == Cardinal.NORTH


def test_plan_without_direction(engine):
    plan = engine.plan(TripQuery(), LocationState(current=ON_E1))
    assert plan.direction is None
    assert plan.status == TripStatus.NEEDS_DIRECTION
    assert plan.next_fuel == [] and plan.next_rest_areas == []
    # Nearest results do not need a direction.
    assert plan.nearest
    assert plan.priority_stop.id == plan.nearest[0].id


def test_fuel_range(engine):
    risky = engine.plan(TripQuery(range_km=5.0), LocationState(current=ON_E1, heading=0.0))
    assert risky.fuel_in_range == 0
    assert risky.status == TripStatus.FUEL_RISK

    ok = engine.plan(TripQuery(range_km=50.0), LocationState(current=ON_E1, heading=0.0))
    assert ok.fuel_in_range == 2
    assert ok.stats.fuel_in_range == 2
    assert ok.status == TripStatus.READY

    # Brand filter narrows the eligible pool.
    bhp = engine.plan(TripQuery(range_km=50.0, brands=("BHP",)), LocationState(current=ON_E1, heading=0.0))
    assert bhp.fuel_in_range == 0
    assert bhp.total_fuel == 2


def test_selected_place_is_enriched(engine):
    plan = engine.plan(
        TripQuery(selected_id="rnr:juru_nb"), LocationState(current=ON_E1, heading=0.0)
    )
    assert plan.selected.id == "rnr:juru_nb"
    assert plan.selected.distance_km > 200.0
    assert plan.selected.eta_minutes > 0
    assert plan.stats.target_name == "R&R Juru"

    # Not in any ranked list: resolved from all places.
    far = engine.plan(
        TripQuery(selected_id="fuel:petronas_machap_sb"), LocationState(current=ON_E1, heading=0.0)
    )
    assert far.selected.id == "fuel:petronas_machap_sb"
    assert far.selected.distance_km is not None

    missing = engine.plan(TripQuery(selected_id="rnr:nowhere"), LocationState(current=ON_E1))
    assert missing.selected is None


def test_selected_place_without_location(engine):
    plan = engine.plan(TripQuery(selected_id="rnr:juru_nb"), LocationState())
    assert plan.selected.id == "rnr:juru_nb"
    assert plan.selected.distance_km is None
    assert plan.location_status == "Location not selected yet"
    assert plan.nearest == []


def test_location_statuses(engine):
    assert engine.plan(TripQuery(), LocationState(loading=True)).location_status == "Detecting location..."
    failed = engine.plan(TripQuery(), LocationState(error="Location access denied."))
    assert failed.location_status == "Location error: Location access denied."
    assert failed.route_confidence == "Confidence: Location unavailable"

    off = engine.plan(TripQuery(), LocationState(current=LatLng(lat=3.45, lng=101.50)))
    assert off.highway_uncertain
    assert off.current_highway is None
    assert off.highway.nearest_highway_id == "E1"
    assert off.location_status.startswith("Current highway: Uncertain (~")
    assert off.location_status.endswith("km from E1)")
    assert off.route_confidence == "Confidence: Very low (far from corridor)"


def test_sort_mode_is_applied(engine):
    plan = engine.plan(TripQuery(sort=SortMode.ALPHA), LocationState(current=ON_E1))
    names = [p.name.casefold() for p in plan.nearest]
    assert names == sorted(names)


def test_empty_result_reason(engine):
    plan = engine.plan(
        TripQuery(mode=ViewMode.FUEL, facilities=("ev",), buffer_m=250.0), LocationState(current=ON_E1)
    )
    assert plan.places_matched == 0
    assert plan.places_available == 29
    assert plan.empty_reason == "No results for facilities EV + strict buffer 250m."
    assert _empty_reason(TripQuery(), 0) == "No results for the current filters."


def _item(pid: str, kind: PlaceKind, distance_km: float) -> PlaceItem:
    return PlaceItem(
        id=pid,
        name=pid,
        highway_id="E1",
        direction=Direction.NORTHBOUND,
        lat=3.0,
        lng=101.0,
        kind=kind,
        source_id=pid,
        confidence=RouteConfidence.RNR_SITE,
        distance_km=distance_km,
    )


def test_priority_stop_rules():
    rnr = [_item("rnr:a", PlaceKind.RNR, 5.0)]
    fuel = [_item("fuel:b", PlaceKind.FUEL, 30.0), _item("fuel:c", PlaceKind.FUEL, 20.0)]
    nearest = [_item("rnr:z", PlaceKind.RNR, 1.0)]

    assert _priority_stop(rnr, fuel, nearest, TripQuery(), None).id == "rnr:a"
    low = TripQuery(range_km=40.0)
    assert _priority_stop(rnr, fuel, nearest, low, 1).id == "fuel:c"
    assert _priority_stop(rnr, fuel, nearest, low, 3).id == "rnr:a"
    assert _priority_stop(rnr, [], nearest, low, 0).id == "rnr:a"
    assert _priority_stop([], [], nearest, TripQuery(), None).id == "rnr:z"
    assert _priority_stop([], [], [], TripQuery(), None) is None


def test_trip_stats_rest_suggestions():
    assert _trip_stats(None, None, 7).rest_suggestion == "Every 120 min"
    assert _trip_stats(None, None, 7).fuel_in_range == 7
    assert _trip_stats(_item("x", PlaceKind.RNR, 60.0), 2, 7).rest_suggestion == "No immediate rest needed"
    mid = _trip_stats(_item("x", PlaceKind.RNR, 150.0), 2, 7)
    assert mid.next_stop_eta == 100
    assert mid.rest_suggestion == "Plan short break"
    assert _trip_stats(_item("x", PlaceKind.RNR, 300.0), 2, 7).rest_suggestion == "Take a break soon"


def test_route_confidence_levels():
    here = LocationState(current=ON_E1)
    assert _route_confidence(LocationState(), None) == "Confidence: Waiting for location"
    assert _route_confidence(here, HighwayMatch("E1", "E1", 100.0)) == "Confidence: High (inside corridor)"
    assert _route_confidence(here, HighwayMatch(None, "E1", 1500.0)) == "Confidence: Low (outside corridor)"
    assert _route_confidence(here, HighwayMatch(None, "E1", 4000.0)) == "Confidence: Very low (far from corridor)"


def test_memo_stays_bounded_under_concurrent_queries():
    eng = TripEngine(load_dataset("malaysia_sample"))
    queries = [TripQuery(buffer_m=200.0 + i) for i in range(120)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(eng.places, queries))
    assert len(results) == 120
    assert all(results)
    assert len(eng._cache) <= 64
