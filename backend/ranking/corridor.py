from __future__ import annotations

import logging
from typing import Iterable

from geo.aoi import LatLng
from geo.segments import prepare_polyline
from stations.types import FuelStation, Highway, StationKind

logger = logging.getLogger(__name__)


def filter_highway_only(
    stations: Iterable[FuelStation],
    highways: Iterable[Highway],
    buffer_m: float,
) -> list[FuelStation]:
    """
    Keep stations reachable from the highway corridor.

    RNR-linked stations always pass. Standalone stations pass only when within
    `buffer_m` of a segment of their own declared highway; stations pointing at an
    unknown highway id are dropped.
    """
    by_id = {h.id: h for h in highways}
    out: list[FuelStation] = []
    for station in stations:
        if station.kind == StationKind.RNR_LINKED:
            out.append(station)
            continue
        highway = by_id.get(station.highway_id)
        if highway is None:
            logger.debug("Station %s references unknown highway %r", station.id, station.highway_id)
            continue
        pt = LatLng(lat=station.lat, lng=station.lng)
        if prepare_polyline(highway.polyline).within(pt, buffer_m):
            out.append(station)
    return out


def unknown_highway_stations(
    stations: Iterable[FuelStation], highways: Iterable[Highway]
) -> list[FuelStation]:
    known = {h.id for h in highways}
    return [
        s
        for s in stations
        if s.kind == StationKind.HIGHWAY_STANDALONE and s.highway_id not in known
    ]
