from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from geo.aoi import LatLng
from geo.measure import Cardinal, bearing_degrees, cardinal_from_bearing
from geo.segments import prepare_polyline
from stations.types import Highway

HIGHWAY_CONFIRM_METERS = 2000.0


def resolve_direction(
    *,
    manual: Cardinal | None = None,
    heading: float | None = None,
    previous: LatLng | None = None,
    current: LatLng | None = None,
) -> Cardinal | None:
    """
    Travel direction from the first available source: manual override, live
    device heading, then the bearing between the last two fixes.

    None means undetermined; the caller should ask for a manual choice.
    """
    if manual is not None:
        return manual
    if heading is not None and math.isfinite(heading) and heading >= 0:
        return cardinal_from_bearing(heading)
    if previous is not None and current is not None:
        return cardinal_from_bearing(bearing_degrees(previous, current))
    return None


@dataclass(frozen=True)
class HighwayMatch:
    # Set only when the closest highway is within the confirmation distance.
    highway_id: str | None
    nearest_highway_id: str | None
    distance_m: float

    @property
    def confirmed(self) -> bool:
        return self.highway_id is not None


def closest_highway(
    user: LatLng,
    highways: Iterable[Highway],
    *,
    confirm_m: float = HIGHWAY_CONFIRM_METERS,
) -> HighwayMatch:
    best_id: str | None = None
    best_distance = math.inf
    for highway in highways:
        line = prepare_polyline(highway.polyline)
        if not line.segments:
            continue
        d = line.distance_m(user)
        if d < best_distance:
            best_distance = d
            best_id = highway.id

    return HighwayMatch(
        highway_id=best_id if best_distance <= confirm_m else None,
        nearest_highway_id=best_id,
        distance_m=best_distance,
    )
