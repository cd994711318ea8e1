from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from geo.aoi import LatLng
from geo.measure import bearing_degrees, cardinal_from_bearing
from stations.types import (
    DEFAULT_FORWARD,
    Direction,
    FacilityFlags,
    FuelStation,
    Highway,
    RestArea,
    StationKind,
)

_KNOWN_BRANDS = ("PETRONAS", "SHELL", "BHP", "CALTEX", "PETRON")


def load_overpass_highways(path: Path) -> list[Highway]:
    """
    Input: Overpass JSON with `out tags geom;` for motorway ways.
    """
    return highways_from_elements(_elements(path))


def load_overpass_rest_areas(path: Path) -> list[RestArea]:
    """
    Input: Overpass JSON with `out center tags;` for rest_area nodes/ways.
    """
    return rest_areas_from_elements(_elements(path))


def load_overpass_stations(path: Path) -> list[FuelStation]:
    """
    Input: Overpass JSON with `out center tags;` for amenity=fuel nodes/ways.
    """
    return stations_from_elements(_elements(path))


def _elements(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return [el for el in (data.get("elements") or []) if isinstance(el, dict)]


def normalize_highway_ref(tags: dict[str, Any]) -> str | None:
    ref = tags.get("ref") or tags.get("int_ref") or tags.get("name:en") or tags.get("name")
    if not ref:
        return None
    return str(ref).split(";")[0].strip() or None


def highway_id_for_ref(ref: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", ref) or "UNKNOWN"


def parse_direction_tag(raw: Any) -> Direction:
    value = str(raw or "").lower()
    if "north" in value or value == "nb":
        return Direction.NORTHBOUND
    if "south" in value or value == "sb":
        return Direction.SOUTHBOUND
    if "east" in value or value == "eb":
        return Direction.EASTBOUND
    if "west" in value or value == "wb":
        return Direction.WESTBOUND
    return Direction.NORTHBOUND


def guess_brand(tags: dict[str, Any]) -> str:
    up = str(tags.get("brand") or tags.get("operator") or "").upper()
    for brand in _KNOWN_BRANDS:
        # PETRONAS contains PETRON, so order matters.
        if brand in up:
            return brand
    if "RON95" in up or "RON97" in up:
        return "UNKNOWN"
    return up or "UNKNOWN"


def element_coord(el: dict[str, Any]) -> LatLng | None:
    lat = el.get("lat")
    lon = el.get("lon")
    if lat is None or lon is None:
        center = el.get("center") or {}
        lat = center.get("lat")
        lon = center.get("lon")
    if lat is None or lon is None:
        return None
    return LatLng(lat=round(float(lat), 6), lng=round(float(lon), 6))


def highways_from_elements(elements: list[dict[str, Any]]) -> list[Highway]:
    grouped: dict[str, Highway] = {}
    for el in elements:
        tags = el.get("tags") or {}
        ref = normalize_highway_ref(tags)
        if not ref:
            continue
        polyline: list[LatLng] = []
        for g in el.get("geometry") or []:
            lat = g.get("lat")
            lon = g.get("lon")
            if lat is None or lon is None:
                continue
            polyline.append(LatLng(lat=round(float(lat), 6), lng=round(float(lon), 6)))
        if len(polyline) < 2:
            continue

        # Keep the longest way per ref as its representative geometry.
        current = grouped.get(ref)
        if current is not None and len(current.polyline) >= len(polyline):
            continue
        grouped[ref] = Highway(
            id=highway_id_for_ref(ref),
            name=str(tags.get("name") or ref),
            code=ref,
            polyline=_oriented(tuple(polyline)),
        )
    return list(grouped.values())


def _oriented(polyline: tuple[LatLng, ...]) -> tuple[LatLng, ...]:
    # Store polylines so increasing index heads north or east.
    overall = cardinal_from_bearing(bearing_degrees(polyline[0], polyline[-1]))
    if overall in DEFAULT_FORWARD:
        return polyline
    return tuple(reversed(polyline))


def rest_areas_from_elements(elements: list[dict[str, Any]]) -> list[RestArea]:
    by_id: dict[str, RestArea] = {}
    for el in elements:
        pt = element_coord(el)
        if pt is None:
            continue
        tags = el.get("tags") or {}
        etype = el.get("type")
        eid = el.get("id")
        ref = normalize_highway_ref(tags) or "UNKNOWN"
        rid = f"rnr_{etype}_{eid}"
        by_id[rid] = RestArea(
            id=rid,
            name=str(tags.get("name") or tags.get("name:en") or f"R&R {etype}/{eid}"),
            highway_id=highway_id_for_ref(ref),
            direction=parse_direction_tag(tags.get("direction")),
            lat=pt.lat,
            lng=pt.lng,
            facilities=FacilityFlags(
                surau=tags.get("religion") == "muslim" or tags.get("prayer_room") == "yes",
                toilet=tags.get("toilets") != "no",
                foodcourt=any(
                    tags.get(k) == "yes" for k in ("restaurant", "fast_food", "food_court")
                ),
                ev=bool(
                    tags.get("socket:type2")
                    or tags.get("charging_station") == "yes"
                    or tags.get("amenity") == "charging_station"
                ),
            ),
            has_fuel=str(tags.get("fuel") or "").lower() == "yes",
        )
    return list(by_id.values())


def stations_from_elements(elements: list[dict[str, Any]]) -> list[FuelStation]:
    by_id: dict[str, FuelStation] = {}
    for el in elements:
        pt = element_coord(el)
        if pt is None:
            continue
        tags = el.get("tags") or {}
        etype = el.get("type")
        eid = el.get("id")
        ref = normalize_highway_ref(tags) or "UNKNOWN"
        sid = f"st_{etype}_{eid}"
        by_id[sid] = FuelStation(
            id=sid,
            name=str(tags.get("name") or tags.get("operator") or f"Fuel {etype}/{eid}"),
            brand=guess_brand(tags),
            kind=(
                StationKind.RNR_LINKED
                if tags.get("highway") == "rest_area"
                else StationKind.HIGHWAY_STANDALONE
            ),
            highway_id=highway_id_for_ref(ref),
            direction=parse_direction_tag(tags.get("direction")),
            lat=pt.lat,
            lng=pt.lng,
        )
    return list(by_id.values())
