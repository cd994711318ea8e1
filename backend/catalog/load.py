from __future__ import annotations

import logging
from pathlib import Path

from catalog.registry import get_dataset_entry
from stations.loaders import load_highways, load_rest_areas, load_stations
from stations.overpass import (
    load_overpass_highways,
    load_overpass_rest_areas,
    load_overpass_stations,
)
from stations.types import Dataset

logger = logging.getLogger(__name__)


def load_dataset(dataset_id: str | None) -> Dataset:
    """
    Load a registry-configured dataset from files.
    """
    entry = get_dataset_entry(dataset_id)
    cfg = entry.config
    src = cfg.source

    def _p(rel: str) -> Path:
        p = entry.resolve(rel)
        if not p.exists():
            raise FileNotFoundError(f"Dataset '{cfg.id}' missing file: {rel}")
        return p

    if src.type == "json":
        highways = load_highways(_p(src.highways))
        rest_areas = load_rest_areas(_p(src.restAreas))
        stations = load_stations(_p(src.stations))
    elif src.type == "overpass":
        highways = load_overpass_highways(_p(src.highways))
        rest_areas = load_overpass_rest_areas(_p(src.restAreas))
        stations = load_overpass_stations(_p(src.stations))
    else:
        raise ValueError(f"Unknown dataset source type: {src.type}")

    logger.info(
        "Loaded dataset %s: highways=%d rest_areas=%d stations=%d",
        cfg.id,
        len(highways),
        len(rest_areas),
        len(stations),
    )
    return Dataset(id=cfg.id, highways=highways, rest_areas=rest_areas, stations=stations)
