from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class LatLng:
    """
    WGS84 coordinate in degrees. No altitude.
    """

    lat: float
    lng: float

    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lat/lng degrees.

    Convention used throughout this repo:
    - min_lat, min_lng, max_lat, max_lng
    """

    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def normalized(self) -> "BBox":
        return BBox(
            min_lat=min(self.min_lat, self.max_lat),
            min_lng=min(self.min_lng, self.max_lng),
            max_lat=max(self.min_lat, self.max_lat),
            max_lng=max(self.min_lng, self.max_lng),
        )

    def contains(self, lat: float, lng: float) -> bool:
        b = self.normalized()
        return b.min_lat <= lat <= b.max_lat and b.min_lng <= lng <= b.max_lng

    @staticmethod
    def around(center: LatLng, radius_km: float) -> "BBox":
        """
        Conservative box around `center` covering a circle of `radius_km`.

        The longitude span is corrected by cos(lat); the cosine factor is clamped at
        0.1 so the box stays bounded near the poles.
        """
        lat_delta = radius_km / 111.0
        lng_factor = max(math.cos(math.radians(center.lat)), 0.1)
        lng_delta = radius_km / (111.0 * lng_factor)
        return BBox(
            min_lat=center.lat - lat_delta,
            min_lng=center.lng - lng_delta,
            max_lat=center.lat + lat_delta,
            max_lng=center.lng + lng_delta,
        )
