from __future__ import annotations

import math

from pydantic import BaseModel, Field

from engine.query import DEFAULT_BUFFER_M, TripQuery, ViewMode
from engine.trip import TripPlan
from geo.aoi import LatLng
from geo.measure import Cardinal
from ranking.proximity import SortMode
from stations.types import FacilityFlags, Highway, PlaceItem


class ApiLatLng(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    def to_latlng(self) -> LatLng:
        return LatLng(lat=self.lat, lng=self.lng)


class ApiLocation(BaseModel):
    current: ApiLatLng | None = None
    previous: ApiLatLng | None = None
    heading: float | None = None
    manualDirection: Cardinal | None = None
    error: str | None = None
    loading: bool = False


class ApiQuery(BaseModel):
    mode: ViewMode = ViewMode.ALL
    destination: str = ""
    brands: list[str] = Field(default_factory=list)
    facilities: list[str] = Field(default_factory=list)
    bufferMeters: float = Field(default=DEFAULT_BUFFER_M, gt=0)
    rangeKm: float | None = None
    sort: SortMode = SortMode.DISTANCE
    selectedId: str | None = None

    def to_trip_query(self) -> TripQuery:
        wanted = {f.strip().lower() for f in self.facilities}
        return TripQuery(
            mode=self.mode,
            destination=self.destination,
            brands=tuple(b.strip() for b in self.brands if b.strip()),
            facilities=tuple(name for name in FacilityFlags.names() if name in wanted),
            buffer_m=self.bufferMeters,
            range_km=self.rangeKm if self.rangeKm is not None and self.rangeKm > 0 else None,
            sort=self.sort,
            selected_id=self.selectedId or None,
        )


class ApiPlanRequest(BaseModel):
    datasetId: str | None = None
    location: ApiLocation = Field(default_factory=ApiLocation)
    # Either a structured query or raw URL parameters; `params` wins when given.
    query: ApiQuery = Field(default_factory=ApiQuery)
    params: dict[str, str] | None = None


class ApiPlace(BaseModel):
    id: str
    name: str
    kind: str
    highwayId: str
    direction: str
    lat: float
    lng: float
    routeConfidence: str
    brand: str | None = None
    fuelBrands: list[str] = Field(default_factory=list)
    facilities: list[str] = Field(default_factory=list)
    distanceKm: float | None = None
    etaMinutes: int | None = None

    @classmethod
    def from_place(cls, p: PlaceItem) -> "ApiPlace":
        return cls(
            id=p.id,
            name=p.name,
            kind=p.kind.value,
            highwayId=p.highway_id,
            direction=p.direction.value,
            lat=p.lat,
            lng=p.lng,
            routeConfidence=p.confidence.value,
            brand=p.brand,
            fuelBrands=list(p.fuel_brands),
            facilities=p.facilities.active() if p.facilities is not None else [],
            distanceKm=p.distance_km,
            etaMinutes=p.eta_minutes,
        )


def _place(p: PlaceItem | None) -> ApiPlace | None:
    return ApiPlace.from_place(p) if p is not None else None


class ApiTripStats(BaseModel):
    targetName: str | None
    nextStopKm: float | None
    nextStopEtaMinutes: int | None
    fuelInRange: int
    totalFuel: int
    restAdviceMinutes: int
    restSuggestion: str


class ApiPlanResponse(BaseModel):
    datasetId: str
    query: dict[str, str]
    activeFilters: list[str]
    locationStatus: str
    highwayLine: str
    routeConfidence: str
    highwayUncertain: bool
    highwayId: str | None
    nearestHighwayId: str | None
    highwayDistanceMeters: float | None
    direction: Cardinal | None
    placesAvailable: int
    placesMatched: int
    emptyReason: str
    nearest: list[ApiPlace]
    nearestRestArea: ApiPlace | None
    nearestFuel: ApiPlace | None
    nextRestAreas: list[ApiPlace]
    nextFuel: list[ApiPlace]
    fuelInRange: int | None
    totalFuel: int
    priorityStop: ApiPlace | None
    selected: ApiPlace | None
    navigationUrl: str | None
    status: str
    stats: ApiTripStats | None

    @classmethod
    def from_plan(
        cls,
        dataset_id: str,
        query: TripQuery,
        plan: TripPlan,
        navigation_url: str | None,
    ) -> "ApiPlanResponse":
        match = plan.highway
        distance_m = match.distance_m if match is not None else None
        stats = plan.stats
        return cls(
            datasetId=dataset_id,
            query=query.to_query_params(),
            activeFilters=query.active_filter_tags(),
            locationStatus=plan.location_status,
            highwayLine=plan.highway_line,
            routeConfidence=plan.route_confidence,
            highwayUncertain=plan.highway_uncertain,
            highwayId=match.highway_id if match is not None else None,
            nearestHighwayId=match.nearest_highway_id if match is not None else None,
            # JSON has no infinity.
            highwayDistanceMeters=distance_m if distance_m is not None and math.isfinite(distance_m) else None,
            direction=plan.direction,
            placesAvailable=plan.places_available,
            placesMatched=plan.places_matched,
            emptyReason=plan.empty_reason,
            nearest=[ApiPlace.from_place(p) for p in plan.nearest],
            nearestRestArea=_place(plan.nearest_rest_area),
            nearestFuel=_place(plan.nearest_fuel),
            nextRestAreas=[ApiPlace.from_place(p) for p in plan.next_rest_areas],
            nextFuel=[ApiPlace.from_place(p) for p in plan.next_fuel],
            fuelInRange=plan.fuel_in_range,
            totalFuel=plan.total_fuel,
            priorityStop=_place(plan.priority_stop),
            selected=_place(plan.selected),
            navigationUrl=navigation_url,
            status=plan.status.value,
            stats=ApiTripStats(
                targetName=stats.target_name,
                nextStopKm=stats.next_stop_km,
                nextStopEtaMinutes=stats.next_stop_eta,
                fuelInRange=stats.fuel_in_range,
                totalFuel=stats.total_fuel,
                restAdviceMinutes=stats.rest_advice_minutes,
                restSuggestion=stats.rest_suggestion,
            )
            if stats is not None
            else None,
        )


class ApiHighway(BaseModel):
    id: str
    name: str
    code: str
    forward: list[Cardinal]
    polyline: list[ApiLatLng]

    @classmethod
    def from_highway(cls, h: Highway) -> "ApiHighway":
        return cls(
            id=h.id,
            name=h.name,
            code=h.code,
            forward=list(h.forward),
            polyline=[ApiLatLng(lat=p.lat, lng=p.lng) for p in h.polyline],
        )


class ApiDatasetInfo(BaseModel):
    id: str
    title: str
    default: bool


class ApiNavigation(BaseModel):
    placeId: str
    name: str
    url: str
