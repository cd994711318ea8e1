import math

import pytest

from geo.aoi import BBox, LatLng
from geo.measure import Cardinal, bearing_degrees, cardinal_from_bearing, eta_minutes, haversine_km


def test_haversine_zero_for_same_point_and_symmetric():
    a = LatLng(lat=3.139, lng=101.6869)
    b = LatLng(lat=1.4927, lng=103.7414)
    assert haversine_km(a, a) == 0.0
    assert haversine_km(a, b) == haversine_km(b, a)
    # KL -> JB is roughly 290 km straight line.
    assert 280.0 < haversine_km(a, b) < 300.0


def test_haversine_collinear_points_add_up():
    a = LatLng(lat=3.0, lng=101.0)
    b = LatLng(lat=3.1, lng=101.0)
    c = LatLng(lat=3.2, lng=101.0)
    assert haversine_km(a, b) + haversine_km(b, c) == pytest.approx(haversine_km(a, c), abs=1e-6)


def test_bearing_quadrants():
    origin = LatLng(lat=0.0, lng=0.0)
    assert bearing_degrees(origin, LatLng(lat=1.0, lng=0.0)) == pytest.approx(0.0, abs=1e-9)
    assert bearing_degrees(origin, LatLng(lat=0.0, lng=1.0)) == pytest.approx(90.0)
    assert bearing_degrees(LatLng(lat=1.0, lng=0.0), origin) == pytest.approx(180.0)
    assert bearing_degrees(LatLng(lat=0.0, lng=1.0), origin) == pytest.approx(270.0)


def test_bearing_is_in_half_open_range():
    pts = [LatLng(lat=lat, lng=lng) for lat in (-1.0, 0.0, 2.5) for lng in (100.0, 101.0, 102.5)]
    for a in pts:
        for b in pts:
            assert 0.0 <= bearing_degrees(a, b) < 360.0


@pytest.mark.parametrize(
    "bearing,expected",
    [
        (0.0, Cardinal.NORTH),
        (44.9, Cardinal.NORTH),
        (45.0, Cardinal.EAST),
        (134.9, Cardinal.EAST),
        (135.0, Cardinal.SOUTH),
        (224.9, Cardinal.SOUTH),
        (225.0, Cardinal.WEST),
        (314.9, Cardinal.WEST),
        (315.0, Cardinal.NORTH),
        (359.9, Cardinal.NORTH),
        (-90.0, Cardinal.WEST),
        (720.0, Cardinal.NORTH),
    ],
)
def test_cardinal_from_bearing(bearing, expected):
    assert cardinal_from_bearing(bearing) == expected


def test_cardinal_opposite():
    assert Cardinal.NORTH.opposite() == Cardinal.SOUTH
    assert Cardinal.WEST.opposite() == Cardinal.EAST


def test_eta_minutes():
    assert eta_minutes(100, 100) == 60
    assert eta_minutes(0, 100) == 0
    assert eta_minutes(-5, 100) == 0
    assert eta_minutes(math.nan) == 0
    assert eta_minutes(math.inf) == 0
    assert eta_minutes(90, 90) == 60
    # 0.6 min rounds up, 0.45 min rounds down.
    assert eta_minutes(1.0) == 1
    assert eta_minutes(0.75) == 0


def test_eta_minutes_rejects_bad_speed():
    assert eta_minutes(10, 0) == 0
    assert eta_minutes(10, -50) == 0


def test_bbox_around_widens_longitude_away_from_equator():
    box = BBox.around(LatLng(lat=60.0, lng=10.0), 111.0)
    assert box.max_lat - box.min_lat == pytest.approx(2.0)
    assert box.max_lng - box.min_lng == pytest.approx(4.0, rel=1e-6)
    assert box.contains(60.0, 10.0)


def test_bbox_around_clamps_near_pole():
    box = BBox.around(LatLng(lat=89.9, lng=0.0), 11.1)
    # cos(89.9 deg) is tiny; the 0.1 floor caps the span at 20x the latitude delta.
    assert box.max_lng - box.min_lng == pytest.approx(2.0, rel=1e-6)


def test_haversine_propagates_nan():
    assert math.isnan(haversine_km(LatLng(lat=math.nan, lng=101.0), LatLng(lat=3.0, lng=101.0)))
