from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DatasetSourceType = Literal["json", "overpass"]


class DatasetSource(BaseModel):
    type: DatasetSourceType = "json"
    # Paths are relative to the dataset.yaml directory (or repo-relative with a leading "/").
    highways: str
    restAreas: str
    stations: str


class EngineTuning(BaseModel):
    """
    Per-dataset knobs for the trip engine.
    """

    cellSizeDeg: float = Field(default=0.25, gt=0.0)
    speedKmh: float = Field(default=100.0, gt=0.0)
    highwayConfirmMeters: float = Field(default=2000.0, gt=0.0)
    minCandidates: int = Field(default=50, ge=1)
    searchRadiiKm: list[float] = Field(default_factory=lambda: [80.0, 180.0, 350.0, 700.0])


class DatasetConfig(BaseModel):
    id: str
    title: str
    enabled: bool = True
    source: DatasetSource
    engine: EngineTuning = Field(default_factory=EngineTuning)
