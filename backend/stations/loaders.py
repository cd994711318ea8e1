from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from geo.aoi import LatLng
from geo.measure import Cardinal, bearing_degrees, cardinal_from_bearing
from stations.types import (
    DEFAULT_FORWARD,
    Direction,
    FacilityFlags,
    FuelStation,
    Highway,
    RestArea,
    StationKind,
)

logger = logging.getLogger(__name__)

# Older exports used these names for station kinds.
_KIND_ALIASES = {
    "RNR_STATION": StationKind.RNR_LINKED,
    "HIGHWAY_STATION": StationKind.HIGHWAY_STANDALONE,
}


def load_highways(path: Path) -> list[Highway]:
    return parse_highways(_read_records(path))


def load_rest_areas(path: Path) -> list[RestArea]:
    return parse_rest_areas(_read_records(path))


def load_stations(path: Path) -> list[FuelStation]:
    return parse_stations(_read_records(path))


def _read_records(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON list of records: {path}")
    return [r for r in data if isinstance(r, dict)]


def parse_highways(records: list[dict[str, Any]]) -> list[Highway]:
    out: list[Highway] = []
    for rec in records:
        hid = str(rec.get("id") or "").strip()
        polyline: list[LatLng] = []
        for p in rec.get("polyline") or []:
            pt = _coord(p)
            if pt is not None:
                polyline.append(pt)

        if not hid or len(polyline) < 2:
            logger.warning("Skipping highway %r: needs an id and >= 2 finite points", hid)
            continue

        forward = _parse_forward(rec.get("forward"), hid)
        highway = Highway(
            id=hid,
            name=str(rec.get("name") or rec.get("code") or hid),
            code=str(rec.get("code") or hid),
            polyline=tuple(polyline),
            forward=forward,
        )
        _check_forward(highway)
        out.append(highway)
    return out


def _parse_forward(raw: Any, hid: str) -> tuple[Cardinal, Cardinal]:
    if not raw:
        return DEFAULT_FORWARD
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ValueError(f"Highway {hid!r}: `forward` must list two cardinals")
    a, b = (Cardinal(str(v).upper()) for v in raw)
    if a == b or a.opposite() == b:
        raise ValueError(
            f"Highway {hid!r}: `forward` cardinals must be distinct and not opposite"
        )
    return (a, b)


def _check_forward(highway: Highway) -> None:
    # Data contract: increasing polyline index heads towards one of `forward`.
    overall = cardinal_from_bearing(
        bearing_degrees(highway.polyline[0], highway.polyline[-1])
    )
    if overall not in highway.forward:
        logger.warning(
            "Highway %s runs %s overall but declares forward=%s; "
            "next-stop ordering may be reversed",
            highway.id,
            overall.value,
            "/".join(c.value for c in highway.forward),
        )


def parse_rest_areas(records: list[dict[str, Any]]) -> list[RestArea]:
    out: list[RestArea] = []
    for rec in records:
        rid = str(rec.get("id") or "").strip()
        pt = _coord(rec)
        if not rid or pt is None:
            logger.warning("Skipping rest area %r: missing id or non-finite coordinate", rid)
            continue
        fac = rec.get("facilities") or {}
        out.append(
            RestArea(
                id=rid,
                name=str(rec.get("name") or rid),
                highway_id=str(rec.get("highwayId") or ""),
                direction=Direction(str(rec.get("direction") or "NORTHBOUND").upper()),
                lat=pt.lat,
                lng=pt.lng,
                facilities=FacilityFlags(
                    **{name: bool(fac.get(name)) for name in FacilityFlags.names()}
                ),
                has_fuel=bool(rec.get("hasFuel")),
                fuel_brands=tuple(str(b) for b in rec.get("fuelBrands") or []),
            )
        )
    return out


def parse_stations(records: list[dict[str, Any]]) -> list[FuelStation]:
    out: list[FuelStation] = []
    for rec in records:
        sid = str(rec.get("id") or "").strip()
        pt = _coord(rec)
        if not sid or pt is None:
            logger.warning("Skipping station %r: missing id or non-finite coordinate", sid)
            continue
        raw_kind = str(rec.get("type") or rec.get("kind") or "").upper()
        kind = _KIND_ALIASES.get(raw_kind) or StationKind(raw_kind)
        out.append(
            FuelStation(
                id=sid,
                name=str(rec.get("name") or sid),
                brand=str(rec.get("brand") or "UNKNOWN"),
                kind=kind,
                highway_id=str(rec.get("highwayId") or ""),
                direction=Direction(str(rec.get("direction") or "NORTHBOUND").upper()),
                lat=pt.lat,
                lng=pt.lng,
                rest_area_id=rec.get("rnrId") or None,
            )
        )
    return out


def _coord(raw: Any) -> LatLng | None:
    if not isinstance(raw, dict):
        return None
    lat = raw.get("lat")
    lng = raw.get("lng", raw.get("lon"))
    try:
        pt = LatLng(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError):
        return None
    if not pt.is_finite() or not (-90.0 <= pt.lat <= 90.0) or math.fabs(pt.lng) > 180.0:
        return None
    return pt
