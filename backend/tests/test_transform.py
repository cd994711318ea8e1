from stations.transform import rest_area_to_place, station_to_place, unique_by_id
from stations.types import (
    Direction,
    FacilityFlags,
    FuelStation,
    PlaceKind,
    RestArea,
    RouteConfidence,
    StationKind,
)


def _station(sid: str, kind: StationKind) -> FuelStation:
    return FuelStation(
        id=sid,
        name=sid.title(),
        brand="PETRONAS",
        kind=kind,
        highway_id="E1",
        direction=Direction.NORTHBOUND,
        lat=3.3,
        lng=101.5,
    )


def test_rest_area_to_place():
    rnr = RestArea(
        id="rawang_nb",
        name="R&R Rawang",
        highway_id="E1",
        direction=Direction.NORTHBOUND,
        lat=3.3,
        lng=101.521,
        facilities=FacilityFlags(surau=True, toilet=True),
        has_fuel=True,
        fuel_brands=("PETRONAS",),
    )
    p = rest_area_to_place(rnr)
    assert p.id == "rnr:rawang_nb"
    assert p.source_id == "rawang_nb"
    assert p.kind == PlaceKind.RNR
    assert p.confidence == RouteConfidence.RNR_SITE
    assert p.facilities.active() == ["surau", "toilet"]
    assert p.fuel_brands == ("PETRONAS",)
    assert p.distance_km is None and p.eta_minutes is None


def test_station_confidence_follows_kind():
    linked = station_to_place(_station("a", StationKind.RNR_LINKED))
    standalone = station_to_place(_station("b", StationKind.HIGHWAY_STANDALONE))
    assert linked.id == "fuel:a"
    assert linked.kind == PlaceKind.FUEL
    assert linked.brand == "PETRONAS"
    assert linked.confidence == RouteConfidence.RNR_LINKED
    assert standalone.confidence == RouteConfidence.CORRIDOR_VERIFIED


def test_unique_by_id_last_wins_first_seen_order():
    a1 = station_to_place(_station("a", StationKind.RNR_LINKED))
    b = station_to_place(_station("b", StationKind.RNR_LINKED))
    a2 = a1.with_distance(4.0, 3)
    got = unique_by_id([a1, b, a2])
    assert [p.id for p in got] == ["fuel:a", "fuel:b"]
    assert got[0].distance_km == 4.0
