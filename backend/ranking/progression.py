from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from geo.aoi import LatLng
from geo.grid import Located
from geo.measure import Cardinal, haversine_km
from geo.segments import prepare_polyline
from stations.types import DEFAULT_FORWARD

T = TypeVar("T", bound=Located)


def is_ahead(
    signed_delta_km: float,
    direction: Cardinal,
    forward: tuple[Cardinal, Cardinal] = DEFAULT_FORWARD,
) -> bool:
    if direction in forward:
        return signed_delta_km > 0
    return signed_delta_km < 0


def next_ahead(
    user: LatLng,
    polyline: Sequence[LatLng],
    direction: Cardinal,
    candidates: Iterable[T],
    k: int,
    *,
    forward: tuple[Cardinal, Cardinal] = DEFAULT_FORWARD,
) -> list[tuple[T, float]]:
    """
    The next `k` candidates strictly ahead of `user` along `polyline`.

    User and candidates are projected onto the polyline; candidates are ordered
    by how far along the road they are (not straight-line distance). The
    straight-line distance in km is returned alongside each item for display.

    Callers pre-filter candidates to the same highway and matching bound
    direction.
    """
    if k <= 0:
        return []
    line = prepare_polyline(tuple(polyline))
    user_progress = line.project_km(user)

    ranked: list[tuple[float, T]] = []
    for item in candidates:
        delta = line.project_km(LatLng(lat=item.lat, lng=item.lng)) - user_progress
        if is_ahead(delta, direction, forward):
            ranked.append((abs(delta), item))
    ranked.sort(key=lambda x: x[0])

    return [
        (item, haversine_km(user, LatLng(lat=item.lat, lng=item.lng)))
        for _, item in ranked[:k]
    ]
