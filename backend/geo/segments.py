from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence

from shapely.geometry import LineString, Point

from geo.aoi import LatLng
from geo.measure import haversine_km

# Metres per degree of latitude in the local equirectangular frame.
METERS_PER_DEG = 111_320.0


@dataclass(frozen=True)
class LocalFrame:
    """
    Equirectangular projection to metres around `origin`.

    Only valid for short distances (a single highway segment); not meant for
    projecting across hemispheres or the anti-meridian.
    """

    origin: LatLng

    def to_xy(self, p: LatLng) -> tuple[float, float]:
        lng_factor = METERS_PER_DEG * math.cos(math.radians(self.origin.lat))
        return (
            (p.lng - self.origin.lng) * lng_factor,
            (p.lat - self.origin.lat) * METERS_PER_DEG,
        )


def _midpoint_frame(start: LatLng, end: LatLng) -> LocalFrame:
    return LocalFrame(
        origin=LatLng(lat=(start.lat + end.lat) / 2.0, lng=(start.lng + end.lng) / 2.0)
    )


def distance_to_segment_m(point: LatLng, start: LatLng, end: LatLng) -> float:
    """
    Shortest planar distance (metres) from `point` to the segment start-end.

    Zero-length segments fall back to point-to-point distance.
    """
    if start == end:
        return haversine_km(point, start) * 1000.0

    frame = _midpoint_frame(start, end)
    a = frame.to_xy(start)
    b = frame.to_xy(end)
    if a == b:
        return haversine_km(point, start) * 1000.0
    return float(Point(frame.to_xy(point)).distance(LineString([a, b])))


@dataclass(frozen=True)
class _Segment:
    start: LatLng
    end: LatLng
    frame: LocalFrame
    # None for zero-length segments (consecutive duplicate points).
    line: LineString | None
    length_km: float
    offset_km: float


@dataclass(frozen=True)
class PreparedPolyline:
    """
    A polyline split into segments with their local frames and cumulative
    arc-length offsets, reusable across many point queries.
    """

    points: tuple[LatLng, ...]
    segments: tuple[_Segment, ...]
    length_km: float

    def distance_m(self, point: LatLng) -> float:
        """
        Minimum distance (metres) from `point` to any segment.

        +inf for an empty polyline; a single-point polyline is treated as a point.
        """
        if not self.points:
            return math.inf
        if not self.segments:
            return haversine_km(point, self.points[0]) * 1000.0
        return min(_segment_distance_m(point, seg) for seg in self.segments)

    def within(self, point: LatLng, buffer_m: float) -> bool:
        if not self.segments:
            return self.distance_m(point) <= buffer_m
        for seg in self.segments:
            if _segment_distance_m(point, seg) <= buffer_m:
                return True
        return False

    def project_km(self, point: LatLng) -> float:
        """
        Arc length (km) from the polyline start to the projection of `point` on
        its closest segment. Ties resolve to the first segment.
        """
        best_distance = math.inf
        best_along = 0.0
        for seg in self.segments:
            if seg.line is None:
                continue
            t = float(seg.line.project(Point(seg.frame.to_xy(point)), normalized=True))
            t = max(0.0, min(1.0, t))
            proj = LatLng(
                lat=seg.start.lat + (seg.end.lat - seg.start.lat) * t,
                lng=seg.start.lng + (seg.end.lng - seg.start.lng) * t,
            )
            d = haversine_km(point, proj)
            if d < best_distance:
                best_distance = d
                best_along = seg.offset_km + seg.length_km * t
        return best_along


def _segment_distance_m(point: LatLng, seg: _Segment) -> float:
    if seg.line is None:
        return haversine_km(point, seg.start) * 1000.0
    return float(Point(seg.frame.to_xy(point)).distance(seg.line))


@lru_cache(maxsize=256)
def prepare_polyline(points: tuple[LatLng, ...]) -> PreparedPolyline:
    segments: list[_Segment] = []
    offset = 0.0
    for start, end in zip(points, points[1:]):
        frame = _midpoint_frame(start, end)
        a = frame.to_xy(start)
        b = frame.to_xy(end)
        line = LineString([a, b]) if a != b else None
        length = haversine_km(start, end)
        segments.append(
            _Segment(
                start=start,
                end=end,
                frame=frame,
                line=line,
                length_km=length,
                offset_km=offset,
            )
        )
        offset += length
    return PreparedPolyline(points=points, segments=tuple(segments), length_km=offset)


def distance_to_polyline_m(point: LatLng, polyline: Sequence[LatLng]) -> float:
    return prepare_polyline(tuple(polyline)).distance_m(point)


def project_onto_polyline(point: LatLng, polyline: Sequence[LatLng]) -> float:
    """
    Progress of `point` along `polyline` in km (0.0 for polylines without a
    usable segment).
    """
    return prepare_polyline(tuple(polyline)).project_km(point)


def is_within_corridor(
    point: LatLng, polyline: Sequence[LatLng], buffer_m: float
) -> bool:
    return prepare_polyline(tuple(polyline)).within(point, buffer_m)
