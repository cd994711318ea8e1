from __future__ import annotations

import math
from enum import Enum

from geo.aoi import LatLng

EARTH_RADIUS_M = 6_371_000.0
DEFAULT_SPEED_KMH = 100.0


class Cardinal(str, Enum):
    """Coarse travel direction bucket."""

    NORTH = "NORTH"
    EAST = "EAST"
    SOUTH = "SOUTH"
    WEST = "WEST"

    def opposite(self) -> "Cardinal":
        return _OPPOSITE[self]


_OPPOSITE = {
    Cardinal.NORTH: Cardinal.SOUTH,
    Cardinal.SOUTH: Cardinal.NORTH,
    Cardinal.EAST: Cardinal.WEST,
    Cardinal.WEST: Cardinal.EAST,
}


def haversine_km(a: LatLng, b: LatLng) -> float:
    """
    Great-circle distance between two coordinates in kilometres.
    """
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points; NaN passes through.
    if h > 1.0:
        h = 1.0
    return (2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))) / 1000.0


def bearing_degrees(start: LatLng, end: LatLng) -> float:
    """
    Initial great-circle bearing from `start` to `end`, degrees in [0, 360).
    """
    lat1 = math.radians(start.lat)
    lat2 = math.radians(end.lat)
    d_lng = math.radians(end.lng - start.lng)

    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(
        d_lng
    )
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def cardinal_from_bearing(bearing: float) -> Cardinal:
    """
    Quadrant bucketing with boundaries at 45/135/225/315 degrees.

    A bearing exactly on a boundary belongs to the clockwise quadrant
    (EAST at 45, SOUTH at 135, WEST at 225, NORTH at 315).
    """
    normalized = ((bearing % 360.0) + 360.0) % 360.0
    if 45.0 <= normalized < 135.0:
        return Cardinal.EAST
    if 135.0 <= normalized < 225.0:
        return Cardinal.SOUTH
    if 225.0 <= normalized < 315.0:
        return Cardinal.WEST
    return Cardinal.NORTH


def eta_minutes(distance_km: float, speed_kmh: float = DEFAULT_SPEED_KMH) -> int:
    """
    Travel time in whole minutes at a constant speed; 0 for non-finite or
    non-positive distances.
    """
    if not math.isfinite(distance_km) or distance_km <= 0:
        return 0
    if not math.isfinite(speed_kmh) or speed_kmh <= 0:
        return 0
    # Half-up rounding (round() would use banker's rounding).
    return int(math.floor(distance_km / speed_kmh * 60.0 + 0.5))
