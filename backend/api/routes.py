from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from api.models import (
    ApiDatasetInfo,
    ApiHighway,
    ApiNavigation,
    ApiPlanRequest,
    ApiPlanResponse,
)
from catalog.registry import fallback_dataset_id, get_dataset_entry, list_datasets
from engine.location import LocationState
from engine.navigation import build_navigation_url
from engine.query import DEFAULT_BUFFER_M, TripQuery
from engine.trip import TripEngine, engine_for

logger = logging.getLogger(__name__)

router = APIRouter()


def _engine(dataset_id: str | None) -> tuple[str, TripEngine]:
    entry = get_dataset_entry(dataset_id)
    return entry.config.id, engine_for(entry.config.id)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/datasets", response_model=list[ApiDatasetInfo])
def datasets():
    default_id = fallback_dataset_id()
    return [ApiDatasetInfo(id=c.id, title=c.title, default=c.id == default_id) for c in list_datasets()]


@router.get("/highways", response_model=list[ApiHighway])
def highways(datasetId: str | None = Query(default=None)):
    _, engine = _engine(datasetId)
    return [ApiHighway.from_highway(h) for h in engine.dataset.highways]


@router.get("/brands", response_model=list[str])
def brands(datasetId: str | None = Query(default=None)):
    _, engine = _engine(datasetId)
    return engine.dataset.brands()


@router.post("/plan", response_model=ApiPlanResponse)
def plan(body: ApiPlanRequest):
    dataset_id, engine = _engine(body.datasetId)
    query = (
        TripQuery.from_query_params(body.params)
        if body.params is not None
        else body.query.to_trip_query()
    )
    loc = body.location
    state = LocationState(
        current=loc.current.to_latlng() if loc.current is not None else None,
        previous=loc.previous.to_latlng() if loc.previous is not None else None,
        heading=loc.heading,
        manual_direction=loc.manualDirection,
        error=loc.error,
        loading=loc.loading,
    )
    result = engine.plan(query, state)
    nav = build_navigation_url(result.selected.coordinate) if result.selected is not None else None
    logger.debug(
        "Plan for %s: %d nearest, status %s", dataset_id, len(result.nearest), result.status.value
    )
    return ApiPlanResponse.from_plan(dataset_id, query, result, nav)


@router.get("/places/{place_id}/navigation", response_model=ApiNavigation)
def navigation(
    place_id: str,
    datasetId: str | None = Query(default=None),
    bufferMeters: float = Query(default=DEFAULT_BUFFER_M, gt=0),
):
    _, engine = _engine(datasetId)
    # Standalone stations only exist as places under the buffer the plan was made with.
    place = engine.find_place(place_id, TripQuery(buffer_m=bufferMeters))
    if place is None:
        raise HTTPException(status_code=404, detail=f"Unknown place: {place_id}")
    return ApiNavigation(placeId=place.id, name=place.name, url=build_navigation_url(place.coordinate))
