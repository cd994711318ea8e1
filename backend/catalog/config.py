from __future__ import annotations

import os
from pathlib import Path

DEFAULT_DATASET_ID = "malaysia_sample"


def _repo_root() -> Path:
    # .../backend/catalog/config.py -> repo root is 2 levels up
    return Path(__file__).resolve().parents[2]


def datasets_root() -> Path:
    raw = (os.getenv("HIWAY_DATASETS_DIR") or "").strip()
    return Path(raw) if raw else _repo_root() / "datasets"


def default_dataset_id() -> str:
    return (os.getenv("HIWAY_DATASET") or "").strip() or DEFAULT_DATASET_ID


def log_level() -> str:
    return (os.getenv("HIWAY_LOG_LEVEL") or "INFO").strip().upper()


def strict_location_order() -> bool:
    v = (os.getenv("HIWAY_STRICT_LOCATION_ORDER") or "0").strip().lower()
    return v in {"1", "true", "yes", "on"}
