from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, Iterable, Protocol, TypeVar

from geo.aoi import BBox, LatLng

DEFAULT_CELL_SIZE_DEG = 0.25  # ~25-28 km at Malaysian latitudes


class Located(Protocol):
    @property
    def lat(self) -> float: ...

    @property
    def lng(self) -> float: ...


T = TypeVar("T", bound=Located)


@dataclass(frozen=True)
class SpatialGrid(Generic[T]):
    """
    Uniform lat/lng grid bucketing point items by cell.

    Holds references only; rebuild whenever the underlying item set changes.
    """

    cell_size_deg: float
    buckets: dict[tuple[int, int], list[T]] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return sum(len(b) for b in self.buckets.values())

    def cell_of(self, lat: float, lng: float) -> tuple[int, int]:
        return (
            int(math.floor(lat / self.cell_size_deg)),
            int(math.floor(lng / self.cell_size_deg)),
        )


def build_spatial_grid(
    items: Iterable[T], cell_size_deg: float = DEFAULT_CELL_SIZE_DEG
) -> SpatialGrid[T]:
    if not cell_size_deg > 0:
        raise ValueError(f"cell_size_deg must be positive, got {cell_size_deg}")
    grid: SpatialGrid[T] = SpatialGrid(cell_size_deg=cell_size_deg)
    for item in items:
        key = grid.cell_of(item.lat, item.lng)
        grid.buckets.setdefault(key, []).append(item)
    return grid


def query_spatial_grid(grid: SpatialGrid[T], center: LatLng, radius_km: float) -> list[T]:
    """
    Union of all items in cells touched by the box around `center`.

    This is a superset of the items within `radius_km` (cells are rectangular,
    the radius is circular); filter exactly downstream if needed. No
    de-duplication: items inserted twice come back twice.
    """
    if not grid.buckets:
        return []
    if math.isinf(radius_km):
        return [it for key in sorted(grid.buckets) for it in grid.buckets[key]]

    box = BBox.around(center, radius_km)
    min_y, min_x = grid.cell_of(box.min_lat, box.min_lng)
    max_y, max_x = grid.cell_of(box.max_lat, box.max_lng)

    out: list[T] = []
    covered = (max_y - min_y + 1) * (max_x - min_x + 1)
    if covered > len(grid.buckets):
        # Large radius: walk occupied cells instead of the whole cell range.
        for y, x in sorted(grid.buckets):
            if min_y <= y <= max_y and min_x <= x <= max_x:
                out.extend(grid.buckets[(y, x)])
        return out

    for y in range(min_y, max_y + 1):
        for x in range(min_x, max_x + 1):
            bucket = grid.buckets.get((y, x))
            if bucket:
                out.extend(bucket)
    return out
