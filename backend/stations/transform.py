from __future__ import annotations

from typing import Iterable

from stations.types import (
    FuelStation,
    PlaceItem,
    PlaceKind,
    RestArea,
    RouteConfidence,
    StationKind,
)


def rest_area_to_place(rnr: RestArea) -> PlaceItem:
    return PlaceItem(
        id=f"rnr:{rnr.id}",
        name=rnr.name,
        highway_id=rnr.highway_id,
        direction=rnr.direction,
        lat=rnr.lat,
        lng=rnr.lng,
        kind=PlaceKind.RNR,
        source_id=rnr.id,
        confidence=RouteConfidence.RNR_SITE,
        facilities=rnr.facilities,
        fuel_brands=rnr.fuel_brands,
    )


def station_to_place(station: FuelStation) -> PlaceItem:
    confidence = (
        RouteConfidence.RNR_LINKED
        if station.kind == StationKind.RNR_LINKED
        else RouteConfidence.CORRIDOR_VERIFIED
    )
    return PlaceItem(
        id=f"fuel:{station.id}",
        name=station.name,
        highway_id=station.highway_id,
        direction=station.direction,
        lat=station.lat,
        lng=station.lng,
        kind=PlaceKind.FUEL,
        source_id=station.id,
        confidence=confidence,
        brand=station.brand,
    )


def unique_by_id(items: Iterable[PlaceItem]) -> list[PlaceItem]:
    """
    Keyed de-duplication: the last item per id wins, first-seen order is kept.
    """
    by_id: dict[str, PlaceItem] = {}
    for item in items:
        by_id[item.id] = item
    return list(by_id.values())
