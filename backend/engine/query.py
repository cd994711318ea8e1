from __future__ import annotations

import math
from enum import Enum
from typing import Mapping

from pydantic import BaseModel, ConfigDict

from ranking.proximity import SortMode
from stations.types import FacilityFlags

DEFAULT_BUFFER_M = 400.0
# Bounds for a buffer coming from a URL; the engine itself accepts any positive buffer.
MIN_QUERY_BUFFER_M = 200.0
MAX_QUERY_BUFFER_M = 800.0


class ViewMode(str, Enum):
    ALL = "ALL"
    RNR = "RNR"
    FUEL = "FUEL"


class TripQuery(BaseModel):
    """
    Filter/sort state shared with the URL layer.

    Every field is a plain scalar or list with a default, so the whole state
    round-trips through query parameters.
    """

    model_config = ConfigDict(frozen=True)

    mode: ViewMode = ViewMode.ALL
    destination: str = ""
    brands: tuple[str, ...] = ()
    facilities: tuple[str, ...] = ()
    buffer_m: float = DEFAULT_BUFFER_M
    range_km: float | None = None
    sort: SortMode = SortMode.DISTANCE
    selected_id: str | None = None

    @property
    def facility_flags(self) -> FacilityFlags:
        wanted = set(self.facilities)
        return FacilityFlags(**{name: name in wanted for name in FacilityFlags.names()})

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "TripQuery":
        """
        Parse URL query parameters; invalid values fall back to defaults.
        """
        mode = (params.get("mode") or "").strip().upper()
        sort = (params.get("sort") or "").strip().upper()
        brands = tuple(b.strip() for b in (params.get("brands") or "").split(",") if b.strip())
        return cls(
            mode=ViewMode(mode) if mode in ViewMode.__members__ else ViewMode.ALL,
            destination=(params.get("dest") or "").strip(),
            brands=brands,
            facilities=_parse_facilities(params.get("fac")),
            buffer_m=_parse_buffer(params.get("buffer")),
            range_km=parse_range_km(params.get("range")),
            sort=SortMode(sort) if sort in SortMode.__members__ else SortMode.DISTANCE,
            selected_id=(params.get("sel") or "").strip() or None,
        )

    def to_query_params(self) -> dict[str, str]:
        """
        Serialize, omitting anything at its default.
        """
        p: dict[str, str] = {}
        if self.mode != ViewMode.ALL:
            p["mode"] = self.mode.value
        if self.destination.strip():
            p["dest"] = self.destination.strip()
        if self.brands:
            p["brands"] = ",".join(self.brands)
        if self.facilities:
            p["fac"] = ",".join(self.facilities)
        if self.buffer_m != DEFAULT_BUFFER_M:
            p["buffer"] = _fmt_number(self.buffer_m)
        if self.range_km is not None:
            p["range"] = _fmt_number(self.range_km)
        if self.sort != SortMode.DISTANCE:
            p["sort"] = self.sort.value
        if self.selected_id:
            p["sel"] = self.selected_id
        return p

    def active_filter_tags(self) -> list[str]:
        fac = [f.upper() for f in self.facilities]
        tags = [
            f"Mode: {self.mode.value}" if self.mode != ViewMode.ALL else None,
            f"Brands: {summarize(list(self.brands), 2)}" if self.brands else None,
            f"Facilities: {summarize(fac, 2)}" if fac else None,
            f"Buffer: {_fmt_number(self.buffer_m)}m"
            if self.buffer_m != DEFAULT_BUFFER_M
            else None,
            f"Range: {_fmt_number(self.range_km)}km" if self.range_km is not None else None,
            f"Destination: {self.destination.strip()}" if self.destination.strip() else None,
        ]
        return [t for t in tags if t]

    def active_filter_count(self) -> int:
        return len(self.active_filter_tags())


def parse_range_km(raw: str | None) -> float | None:
    try:
        value = float((raw or "").strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _parse_buffer(raw: str | None) -> float:
    try:
        value = float((raw or "").strip())
    except ValueError:
        return DEFAULT_BUFFER_M
    if not math.isfinite(value) or not (MIN_QUERY_BUFFER_M <= value <= MAX_QUERY_BUFFER_M):
        return DEFAULT_BUFFER_M
    return value


def _parse_facilities(raw: str | None) -> tuple[str, ...]:
    wanted = {v.strip().lower() for v in (raw or "").split(",")}
    # Canonical order keeps the query (and memo keys) stable.
    return tuple(name for name in FacilityFlags.names() if name in wanted)


def _fmt_number(value: float) -> str:
    return f"{value:g}"


def summarize(items: list[str], limit: int = 3) -> str:
    if len(items) <= limit:
        return ", ".join(items)
    return f"{', '.join(items[:limit])} +{len(items) - limit} more"
