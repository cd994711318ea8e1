from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

from catalog.config import _repo_root, datasets_root, default_dataset_id
from catalog.types import DatasetConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetEntry:
    config: DatasetConfig
    # Absolute path to dataset.yaml on disk (useful for debugging).
    path: Path

    def resolve(self, rel: str) -> Path:
        # "/data/..." is repo-relative; anything else is relative to dataset.yaml.
        if rel.startswith("/"):
            return _repo_root() / rel.lstrip("/")
        return self.path.parent / rel


def _iter_dataset_yaml_files() -> Iterable[Path]:
    root = datasets_root()
    if not root.exists():
        return []
    # Convention: datasets/*/dataset.yaml
    return root.glob("*/dataset.yaml")


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid dataset yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_registry() -> dict[str, DatasetEntry]:
    out: dict[str, DatasetEntry] = {}
    for p in sorted(_iter_dataset_yaml_files(), key=lambda x: str(x)):
        cfg = DatasetConfig.model_validate(_load_yaml(p))
        if not cfg.enabled:
            continue
        out[cfg.id] = DatasetEntry(config=cfg, path=p)
    logger.info("Dataset registry: %s", ", ".join(out) or "(empty)")
    return out


def fallback_dataset_id() -> str:
    reg = get_registry()
    wanted = default_dataset_id()
    if wanted in reg or not reg:
        return wanted
    # Fall back to stable ordering.
    return next(iter(reg.keys()))


def list_datasets() -> list[DatasetConfig]:
    return [e.config for e in get_registry().values()]


def get_dataset_entry(dataset_id: str | None) -> DatasetEntry:
    reg = get_registry()
    if not reg:
        raise RuntimeError("No datasets discovered under `datasets/*/dataset.yaml`")
    did = (dataset_id or "").strip() or fallback_dataset_id()
    if did not in reg:
        logger.warning("Unknown dataset %r, using %r", did, fallback_dataset_id())
        did = fallback_dataset_id()
    return reg[did]


def clear_registry_cache() -> None:
    """
    Clear in-memory dataset registry cache, along with the engines built from it.

    Useful in tests and during development: YAML changes are otherwise not picked
    up until the process restarts.
    """
    # engine.trip imports this module.
    from engine.trip import engine_for

    get_registry.cache_clear()
    engine_for.cache_clear()
