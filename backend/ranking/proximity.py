from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence, TypeVar

from geo.aoi import LatLng
from geo.grid import (
    DEFAULT_CELL_SIZE_DEG,
    Located,
    SpatialGrid,
    build_spatial_grid,
    query_spatial_grid,
)
from geo.measure import haversine_km
from stations.transform import unique_by_id
from stations.types import PlaceItem, RouteConfidence

T = TypeVar("T", bound=Located)

DEFAULT_SEARCH_RADII_KM: tuple[float, ...] = (80.0, 180.0, 350.0, 700.0)
DEFAULT_MIN_CANDIDATES = 50


class SortMode(str, Enum):
    DISTANCE = "DISTANCE"
    ETA = "ETA"
    ALPHA = "ALPHA"
    CONFIDENCE = "CONFIDENCE"


_CONFIDENCE_RANK = {
    RouteConfidence.RNR_LINKED: 0,
    RouteConfidence.CORRIDOR_VERIFIED: 1,
    RouteConfidence.RNR_SITE: 2,
}


def nearest(user: LatLng, candidates: Iterable[T], k: int) -> list[tuple[T, float]]:
    """
    The `k` candidates closest to `user` by haversine distance (km), ascending.

    Ties keep input order.
    """
    if k <= 0:
        return []
    scored = [
        (item, haversine_km(user, LatLng(lat=item.lat, lng=item.lng)))
        for item in candidates
    ]
    scored.sort(key=lambda x: x[1])
    return scored[:k]


def nearest_candidates(
    user: LatLng,
    items: Sequence[PlaceItem],
    grid: SpatialGrid[PlaceItem] | None = None,
    *,
    radii_km: Sequence[float] = DEFAULT_SEARCH_RADII_KM,
    min_candidates: int = DEFAULT_MIN_CANDIDATES,
    cell_size_deg: float = DEFAULT_CELL_SIZE_DEG,
) -> list[PlaceItem]:
    """
    Narrow `items` with the grid before an exact nearest-K pass.

    Tries growing radii until at least `min_candidates` unique ids are found;
    otherwise falls back to the full list so sparse regions never under-count.
    """
    g = grid if grid is not None else build_spatial_grid(items, cell_size_deg)
    for radius in radii_km:
        hit = unique_by_id(query_spatial_grid(g, user, radius))
        if len(hit) >= min_candidates:
            return hit
    return list(items)


def sort_places(items: Sequence[PlaceItem], mode: SortMode) -> list[PlaceItem]:
    """
    Re-order places that already carry `distance_km` / `eta_minutes`.
    """
    if mode == SortMode.ALPHA:
        return sorted(items, key=lambda p: (p.name.casefold(), p.name))
    if mode == SortMode.ETA:
        return sorted(items, key=lambda p: p.eta_minutes or 0)
    if mode == SortMode.CONFIDENCE:
        return sorted(
            items,
            key=lambda p: (_CONFIDENCE_RANK[p.confidence], p.distance_km or 0.0),
        )
    return sorted(items, key=lambda p: p.distance_km or 0.0)
