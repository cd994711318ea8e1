"""
Location state for the trip engine.

`LocationState` is the snapshot `/plan` receives on every request. The HTTP
surface is stateless, so `LocationTracker` (and `HIWAY_STRICT_LOCATION_ORDER`)
belongs to whatever process owns the geolocation requests: a client embedding
the engine, or a test driving it fix by fix.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

from catalog.config import strict_location_order
from geo.aoi import LatLng
from geo.measure import Cardinal

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "Geolocation is not supported by this browser."
DENIED_MESSAGE = "Location access denied."


@dataclass(frozen=True)
class LocationState:
    """
    Snapshot of everything the trip engine needs to know about the user's position.
    """

    current: LatLng | None = None
    previous: LatLng | None = None
    heading: float | None = None
    manual_direction: Cardinal | None = None
    error: str | None = None
    loading: bool = False


class LocationTracker:
    """
    Holds the last two fixes plus heading and request status.

    At most one request is expected in flight. By default the last response to
    arrive wins; with `strict_order` a response older than the latest dispatched
    request is dropped.
    """

    def __init__(self, *, strict_order: bool | None = None) -> None:
        self.strict_order = strict_location_order() if strict_order is None else strict_order
        self._latest_seq = 0
        self._state = LocationState()

    @property
    def state(self) -> LocationState:
        return self._state

    def begin_request(self) -> int:
        self._latest_seq += 1
        self._state = replace(self._state, loading=True, error=None)
        return self._latest_seq

    def resolve(self, seq: int, fix: LatLng, heading: float | None = None) -> bool:
        if self._is_stale(seq):
            logger.debug("Dropping stale location response %d (latest %d)", seq, self._latest_seq)
            return False
        new_heading = self._state.heading
        if heading is not None and math.isfinite(heading) and heading >= 0:
            new_heading = heading
        self._state = replace(
            self._state,
            previous=self._state.current,
            current=fix,
            heading=new_heading,
            loading=False,
        )
        return True

    def fail(self, seq: int, message: str | None = None) -> bool:
        if self._is_stale(seq):
            return False
        self._state = replace(self._state, error=message or DENIED_MESSAGE, loading=False)
        return True

    def unsupported(self) -> None:
        self._state = replace(self._state, error=UNSUPPORTED_MESSAGE, loading=False)

    def set_manual_direction(self, direction: Cardinal | None) -> None:
        self._state = replace(self._state, manual_direction=direction)

    def _is_stale(self, seq: int) -> bool:
        return self.strict_order and seq < self._latest_seq

