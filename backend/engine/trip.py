from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Sequence

from catalog.load import load_dataset
from catalog.registry import get_dataset_entry
from catalog.types import EngineTuning
from engine.location import LocationState
from engine.query import DEFAULT_BUFFER_M, TripQuery, ViewMode
from geo.aoi import LatLng
from geo.grid import SpatialGrid, build_spatial_grid
from geo.measure import Cardinal, eta_minutes, haversine_km
from ranking.corridor import filter_highway_only, unknown_highway_stations
from ranking.direction import HighwayMatch, closest_highway, resolve_direction
from ranking.progression import next_ahead
from ranking.proximity import nearest, nearest_candidates, sort_places
from stations.transform import rest_area_to_place, station_to_place
from stations.types import (
    Dataset,
    FuelStation,
    Highway,
    PlaceItem,
    PlaceKind,
    direction_matches,
)

logger = logging.getLogger(__name__)

NEAREST_POOL = 30
NEAREST_LIMIT = 10
NEXT_AHEAD_LIMIT = 3
TRIP_AVERAGE_SPEED_KMH = 90.0
REST_ADVICE_MINUTES = 120
LOW_CONFIDENCE_METERS = 1500.0


class TripStatus(str, Enum):
    NEEDS_DIRECTION = "NEEDS_DIRECTION"
    FUEL_RISK = "FUEL_RISK"
    READY = "READY"
    PLANNING = "PLANNING"


@dataclass(frozen=True)
class EngineSettings:
    cell_size_deg: float = 0.25
    speed_kmh: float = 100.0
    highway_confirm_m: float = 2000.0
    min_candidates: int = 50
    search_radii_km: tuple[float, ...] = (80.0, 180.0, 350.0, 700.0)

    @classmethod
    def from_tuning(cls, tuning: EngineTuning) -> "EngineSettings":
        return cls(
            cell_size_deg=tuning.cellSizeDeg,
            speed_kmh=tuning.speedKmh,
            highway_confirm_m=tuning.highwayConfirmMeters,
            min_candidates=tuning.minCandidates,
            search_radii_km=tuple(tuning.searchRadiiKm),
        )


@dataclass(frozen=True)
class TripStats:
    target_name: str | None
    next_stop_km: float | None
    next_stop_eta: int | None
    fuel_in_range: int
    total_fuel: int
    rest_advice_minutes: int
    rest_suggestion: str


@dataclass(frozen=True)
class TripPlan:
    """
    Everything derived for one (query, location) pair. Recomputed, never patched.
    """

    location_status: str
    highway_line: str
    route_confidence: str
    highway_uncertain: bool
    highway: HighwayMatch | None
    current_highway: Highway | None
    direction: Cardinal | None
    # Auxiliary counts: places before view/brand/facility filters vs. after.
    places_available: int
    places_matched: int
    empty_reason: str
    nearest: list[PlaceItem] = field(default_factory=list)
    nearest_rest_area: PlaceItem | None = None
    nearest_fuel: PlaceItem | None = None
    next_rest_areas: list[PlaceItem] = field(default_factory=list)
    next_fuel: list[PlaceItem] = field(default_factory=list)
    fuel_in_range: int | None = None
    total_fuel: int = 0
    priority_stop: PlaceItem | None = None
    selected: PlaceItem | None = None
    status: TripStatus = TripStatus.PLANNING
    stats: TripStats | None = None


class TripEngine:
    """
    Derives rankings for a preloaded dataset.

    Intermediate results (corridor-filtered stations, filtered place sets, grids)
    are memoized by the filter inputs they depend on; everything location
    dependent is recomputed per call.
    """

    def __init__(self, dataset: Dataset, settings: EngineSettings | None = None) -> None:
        self.dataset = dataset
        self.settings = settings or EngineSettings()
        self._rest_places = [rest_area_to_place(r) for r in dataset.rest_areas]
        self._cache: dict[tuple, Any] = {}
        self._cache_lock = threading.Lock()

        for station in unknown_highway_stations(dataset.stations, dataset.highways):
            logger.warning(
                "Station %s references unknown highway %r; excluded from highway-only set",
                station.id,
                station.highway_id,
            )

    # ------------------------------------------------------------------
    # Memoized derivations
    # ------------------------------------------------------------------

    def _memo(self, key: tuple, build: Callable[[], Any]) -> Any:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = build()
        # Sync routes run on a threadpool and share one engine per dataset.
        with self._cache_lock:
            _bounded_cache_put(self._cache, key, value, max_items=64)
        return value

    def highway_only_stations(self, buffer_m: float = DEFAULT_BUFFER_M) -> list[FuelStation]:
        return self._memo(
            ("stations", buffer_m),
            lambda: filter_highway_only(self.dataset.stations, self.dataset.highways, buffer_m),
        )

    def fuel_places(self, buffer_m: float = DEFAULT_BUFFER_M) -> list[PlaceItem]:
        return self._memo(
            ("fuel", buffer_m),
            lambda: [station_to_place(s) for s in self.highway_only_stations(buffer_m)],
        )

    def places(self, query: TripQuery) -> list[PlaceItem]:
        key = ("places", query.mode, query.brands, query.facilities, query.buffer_m)
        return self._memo(key, lambda: self._filter_places(query))

    def _filter_places(self, query: TripQuery) -> list[PlaceItem]:
        merged: list[PlaceItem] = []
        if query.mode in (ViewMode.ALL, ViewMode.RNR):
            merged.extend(self._rest_places)
        if query.mode in (ViewMode.ALL, ViewMode.FUEL):
            merged.extend(self.fuel_places(query.buffer_m))

        if query.brands:
            brands = set(query.brands)
            merged = [
                p for p in merged if p.kind != PlaceKind.FUEL or (p.brand is not None and p.brand in brands)
            ]

        required = query.facility_flags
        if required.active():
            merged = [
                p
                for p in merged
                if p.kind == PlaceKind.RNR and p.facilities is not None and p.facilities.covers(required)
            ]
        logger.debug("Filtered places for %s: %d", query.to_query_params(), len(merged))
        return merged

    def _grid(self, name: str, key: tuple, items: Sequence[PlaceItem]) -> SpatialGrid[PlaceItem]:
        return self._memo(
            ("grid", name, *key),
            lambda: build_spatial_grid(items, self.settings.cell_size_deg),
        )

    def eligible_fuel(self, query: TripQuery) -> list[PlaceItem]:
        fuel = self.fuel_places(query.buffer_m)
        if not query.brands:
            return fuel
        brands = set(query.brands)
        return [p for p in fuel if p.brand is not None and p.brand in brands]

    # ------------------------------------------------------------------
    # Location dependent
    # ------------------------------------------------------------------

    def _with_eta(self, item: PlaceItem, distance_km: float) -> PlaceItem:
        return item.with_distance(distance_km, eta_minutes(distance_km, self.settings.speed_kmh))

    def _nearest_one(
        self, user: LatLng, items: Sequence[PlaceItem], grid: SpatialGrid[PlaceItem]
    ) -> PlaceItem | None:
        found = nearest(user, self._candidates(user, items, grid), 1)
        if not found:
            return None
        item, d = found[0]
        return self._with_eta(item, d)

    def _candidates(
        self, user: LatLng, items: Sequence[PlaceItem], grid: SpatialGrid[PlaceItem]
    ) -> list[PlaceItem]:
        return nearest_candidates(
            user,
            items,
            grid,
            radii_km=self.settings.search_radii_km,
            min_candidates=self.settings.min_candidates,
        )

    def nearest_list(self, user: LatLng, query: TripQuery) -> list[PlaceItem]:
        places = self.places(query)
        grid = self._grid("places", (query.mode, query.brands, query.facilities, query.buffer_m), places)
        base = [
            self._with_eta(item, d)
            for item, d in nearest(user, self._candidates(user, places, grid), NEAREST_POOL)
        ]
        return sort_places(base, query.sort)[:NEAREST_LIMIT]

    def next_by_direction(
        self,
        user: LatLng,
        highway: Highway,
        direction: Cardinal,
        query: TripQuery,
    ) -> tuple[list[PlaceItem], list[PlaceItem]]:
        same_highway = [
            p
            for p in self.places(query)
            if p.highway_id == highway.id and direction_matches(p.direction, direction)
        ]

        def _ahead(kind: PlaceKind) -> list[PlaceItem]:
            ranked = next_ahead(
                user,
                highway.polyline,
                direction,
                [p for p in same_highway if p.kind == kind],
                NEXT_AHEAD_LIMIT,
                forward=highway.forward,
            )
            return [self._with_eta(item, d) for item, d in ranked]

        return _ahead(PlaceKind.RNR), _ahead(PlaceKind.FUEL)

    def fuel_in_range(self, user: LatLng | None, query: TripQuery) -> int | None:
        if user is None or query.range_km is None or query.range_km <= 0:
            return None
        return sum(
            1 for p in self.eligible_fuel(query) if haversine_km(user, p.coordinate) <= query.range_km
        )

    def find_place(self, place_id: str, query: TripQuery) -> PlaceItem | None:
        for p in [*self._rest_places, *self.fuel_places(query.buffer_m)]:
            if p.id == place_id:
                return p
        return None

    def plan(self, query: TripQuery, location: LocationState) -> TripPlan:
        user = location.current
        match = (
            closest_highway(user, self.dataset.highways, confirm_m=self.settings.highway_confirm_m)
            if user is not None
            else None
        )
        current_highway = self.dataset.highway(match.highway_id) if match is not None else None
        direction = resolve_direction(
            manual=location.manual_direction,
            heading=location.heading,
            previous=location.previous,
            current=location.current,
        )

        places = self.places(query)
        available = len(self._rest_places) + len(self.fuel_places(query.buffer_m))

        nearest_items: list[PlaceItem] = []
        nearest_rnr: PlaceItem | None = None
        nearest_fuel: PlaceItem | None = None
        next_rnr: list[PlaceItem] = []
        next_fuel: list[PlaceItem] = []
        if user is not None:
            nearest_items = self.nearest_list(user, query)
            rest = self._rest_places
            nearest_rnr = self._nearest_one(user, rest, self._grid("rnr", (), rest))
            fuel = self.fuel_places(query.buffer_m)
            nearest_fuel = self._nearest_one(user, fuel, self._grid("fuel", (query.buffer_m,), fuel))
            if current_highway is not None and direction is not None:
                next_rnr, next_fuel = self.next_by_direction(user, current_highway, direction, query)

        in_range = self.fuel_in_range(user, query)
        total_fuel = len(self.eligible_fuel(query))
        priority = _priority_stop(next_rnr, next_fuel, nearest_items, query, in_range)

        selected: PlaceItem | None = None
        if query.selected_id:
            selected = self._resolve_selected(
                query.selected_id, user, [*nearest_items, *next_rnr, *next_fuel, *places]
            )

        stats = _trip_stats(selected or priority, in_range, total_fuel)
        if direction is None:
            status = TripStatus.NEEDS_DIRECTION
        elif query.range_km is not None and in_range == 0:
            status = TripStatus.FUEL_RISK
        elif selected is not None or priority is not None:
            status = TripStatus.READY
        else:
            status = TripStatus.PLANNING

        return TripPlan(
            location_status=self._location_status(location, match, current_highway),
            highway_line=self._highway_line(location, match, current_highway),
            route_confidence=_route_confidence(location, match),
            highway_uncertain=bool(
                user is not None and current_highway is None and not location.loading and not location.error
            ),
            highway=match,
            current_highway=current_highway,
            direction=direction,
            places_available=available,
            places_matched=len(places),
            empty_reason=_empty_reason(query, len(places)),
            nearest=nearest_items,
            nearest_rest_area=nearest_rnr,
            nearest_fuel=nearest_fuel,
            next_rest_areas=next_rnr,
            next_fuel=next_fuel,
            fuel_in_range=in_range,
            total_fuel=total_fuel,
            priority_stop=priority,
            selected=selected,
            status=status,
            stats=stats,
        )

    def _resolve_selected(
        self, place_id: str, user: LatLng | None, pool: Sequence[PlaceItem]
    ) -> PlaceItem | None:
        for item in pool:
            if item.id != place_id:
                continue
            if item.distance_km is not None and item.eta_minutes is not None:
                return item
            if user is None:
                return item
            return self._with_eta(item, haversine_km(user, item.coordinate))
        return None

    # ------------------------------------------------------------------
    # Status lines
    # ------------------------------------------------------------------

    def _uncertain_suffix(self, match: HighwayMatch | None, spaced_km: bool) -> str | None:
        if match is None or match.nearest_highway_id is None or not math.isfinite(match.distance_m):
            return None
        near = self.dataset.highway(match.nearest_highway_id)
        if near is None:
            return None
        unit = " km" if spaced_km else "km"
        return f"~{match.distance_m / 1000.0:.1f}{unit} from {near.code}"

    def _location_status(
        self, location: LocationState, match: HighwayMatch | None, highway: Highway | None
    ) -> str:
        if location.loading:
            return "Detecting location..."
        if location.error:
            return f"Location error: {location.error}"
        if location.current is None:
            return "Location not selected yet"
        if highway is None:
            suffix = self._uncertain_suffix(match, spaced_km=False)
            if suffix:
                return f"Current highway: Uncertain ({suffix})"
            return "Current highway: Uncertain (likely far from highway corridor)"
        return f"Current highway: {highway.code}"

    def _highway_line(
        self, location: LocationState, match: HighwayMatch | None, highway: Highway | None
    ) -> str:
        if location.loading:
            return "Highway: Detecting..."
        if location.error:
            return "Highway: Location error"
        if location.current is None:
            return "Highway: Not selected yet"
        if highway is not None:
            return f"Highway: {highway.code}"
        suffix = self._uncertain_suffix(match, spaced_km=True)
        return f"Highway: Uncertain ({suffix})" if suffix else "Highway: Uncertain"


def _priority_stop(
    next_rnr: list[PlaceItem],
    next_fuel: list[PlaceItem],
    nearest_items: list[PlaceItem],
    query: TripQuery,
    fuel_in_range: int | None,
) -> PlaceItem | None:
    def by_distance(items: list[PlaceItem]) -> list[PlaceItem]:
        return sorted(items, key=lambda p: p.distance_km or 0.0)

    fuel = by_distance(next_fuel)
    all_directional = by_distance([*next_fuel, *next_rnr])
    low_on_fuel = query.range_km is not None and fuel_in_range is not None and fuel_in_range <= 1
    if low_on_fuel and fuel:
        return fuel[0]
    if all_directional:
        return all_directional[0]
    if nearest_items:
        return nearest_items[0]
    return None


def _trip_stats(target: PlaceItem | None, fuel_in_range: int | None, total_fuel: int) -> TripStats:
    next_km = target.distance_km if target is not None else None
    next_eta = eta_minutes(next_km, TRIP_AVERAGE_SPEED_KMH) if next_km is not None else None
    if next_eta is None:
        suggestion = f"Every {REST_ADVICE_MINUTES} min"
    elif next_eta < 60:
        suggestion = "No immediate rest needed"
    elif next_eta <= REST_ADVICE_MINUTES:
        suggestion = "Plan short break"
    else:
        suggestion = "Take a break soon"
    return TripStats(
        target_name=target.name if target is not None else None,
        next_stop_km=next_km,
        next_stop_eta=next_eta,
        fuel_in_range=fuel_in_range if fuel_in_range is not None else total_fuel,
        total_fuel=total_fuel,
        rest_advice_minutes=REST_ADVICE_MINUTES,
        rest_suggestion=suggestion,
    )


def _route_confidence(location: LocationState, match: HighwayMatch | None) -> str:
    if location.loading:
        return "Confidence: Waiting for location"
    if location.error:
        return "Confidence: Location unavailable"
    if location.current is None:
        return "Confidence: Waiting for location"
    if match is not None and match.confirmed:
        return "Confidence: High (inside corridor)"
    if match is not None and math.isfinite(match.distance_m):
        if match.distance_m <= LOW_CONFIDENCE_METERS:
            return "Confidence: Low (outside corridor)"
        return "Confidence: Very low (far from corridor)"
    return "Confidence: Unknown"


def _empty_reason(query: TripQuery, matched: int) -> str:
    if matched > 0:
        return ""
    parts: list[str] = []
    if query.brands:
        parts.append(f"brand {', '.join(query.brands)}")
    if query.facilities:
        parts.append(f"facilities {', '.join(f.upper() for f in query.facilities)}")
    if query.buffer_m < DEFAULT_BUFFER_M:
        parts.append(f"strict buffer {query.buffer_m:g}m")
    if parts:
        return f"No results for {' + '.join(parts)}."
    return "No results for the current filters."


def _bounded_cache_put(cache: dict, key, value, *, max_items: int) -> None:
    cache[key] = value
    if len(cache) > max_items:
        oldest = next(iter(cache.keys()))
        if oldest != key:
            cache.pop(oldest, None)


@lru_cache(maxsize=4)
def engine_for(dataset_id: str) -> TripEngine:
    """
    Load a dataset once per process and wrap it in an engine.
    """
    entry = get_dataset_entry(dataset_id)
    dataset = load_dataset(entry.config.id)
    return TripEngine(dataset, EngineSettings.from_tuning(entry.config.engine))
