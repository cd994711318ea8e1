from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from geo.aoi import LatLng
from geo.measure import Cardinal


class Direction(str, Enum):
    """Carriageway a facility is recorded on."""

    NORTHBOUND = "NORTHBOUND"
    SOUTHBOUND = "SOUTHBOUND"
    EASTBOUND = "EASTBOUND"
    WESTBOUND = "WESTBOUND"


_BOUND_FOR = {
    Cardinal.NORTH: Direction.NORTHBOUND,
    Cardinal.SOUTH: Direction.SOUTHBOUND,
    Cardinal.EAST: Direction.EASTBOUND,
    Cardinal.WEST: Direction.WESTBOUND,
}


def direction_matches(bound: Direction, cardinal: Cardinal) -> bool:
    return _BOUND_FOR[cardinal] == bound


class StationKind(str, Enum):
    RNR_LINKED = "RNR_LINKED"
    HIGHWAY_STANDALONE = "HIGHWAY_STANDALONE"


class PlaceKind(str, Enum):
    RNR = "RNR"
    FUEL = "FUEL"


class RouteConfidence(str, Enum):
    """How sure we are that a place is reachable from the highway."""

    RNR_LINKED = "RNR_LINKED"
    CORRIDOR_VERIFIED = "CORRIDOR_VERIFIED"
    RNR_SITE = "RNR_SITE"


# Polyline index increasing == travelling NORTH or EAST unless a highway says otherwise.
DEFAULT_FORWARD: tuple[Cardinal, Cardinal] = (Cardinal.NORTH, Cardinal.EAST)


@dataclass(frozen=True)
class FacilityFlags:
    surau: bool = False
    toilet: bool = False
    foodcourt: bool = False
    ev: bool = False

    @staticmethod
    def names() -> tuple[str, ...]:
        return ("surau", "toilet", "foodcourt", "ev")

    def active(self) -> list[str]:
        return [name for name in self.names() if getattr(self, name)]

    def covers(self, required: "FacilityFlags") -> bool:
        return all(getattr(self, name) for name in required.active())


@dataclass(frozen=True)
class Highway:
    id: str
    name: str
    code: str
    polyline: tuple[LatLng, ...]
    # Travel directions for which increasing polyline index is "ahead".
    forward: tuple[Cardinal, Cardinal] = DEFAULT_FORWARD


@dataclass(frozen=True)
class RestArea:
    id: str
    name: str
    highway_id: str
    direction: Direction
    lat: float
    lng: float
    facilities: FacilityFlags = field(default_factory=FacilityFlags)
    has_fuel: bool = False
    fuel_brands: tuple[str, ...] = ()


@dataclass(frozen=True)
class FuelStation:
    id: str
    name: str
    brand: str
    kind: StationKind
    highway_id: str
    direction: Direction
    lat: float
    lng: float
    rest_area_id: str | None = None


@dataclass(frozen=True)
class PlaceItem:
    """
    Rest area or fuel station projected into one shape for ranking and display.

    `distance_km` / `eta_minutes` only make sense relative to a user location and
    are attached per query.
    """

    id: str
    name: str
    highway_id: str
    direction: Direction
    lat: float
    lng: float
    kind: PlaceKind
    source_id: str
    confidence: RouteConfidence
    facilities: FacilityFlags | None = None
    fuel_brands: tuple[str, ...] = ()
    brand: str | None = None
    distance_km: float | None = None
    eta_minutes: int | None = None

    @property
    def coordinate(self) -> LatLng:
        return LatLng(lat=self.lat, lng=self.lng)

    def with_distance(self, distance_km: float, eta_minutes: int | None = None) -> "PlaceItem":
        return replace(self, distance_km=distance_km, eta_minutes=eta_minutes)


@dataclass(frozen=True)
class Dataset:
    """
    Static reference data loaded once at startup.
    """

    id: str
    highways: list[Highway]
    rest_areas: list[RestArea]
    stations: list[FuelStation]

    def highway(self, highway_id: str | None) -> Highway | None:
        hid = (highway_id or "").strip()
        for h in self.highways:
            if h.id == hid:
                return h
        return None

    def brands(self) -> list[str]:
        return sorted({s.brand for s in self.stations})
