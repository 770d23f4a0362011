from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from passroute.geometry.primitives import LatLng
from passroute.ingestion.status_feed import latest_status_by_segment
from passroute.network.features import features_from_geojson, polygon_rings_from_geojson
from passroute.network.schemas import RoadFeature, RoadStatus


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def load_geojson(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"GeoJSON root must be an object: {path}")
    return data


def load_road_features(path: Path) -> list[RoadFeature]:
    if not path.exists():
        raise FileNotFoundError(f"Road features not found: {path}")
    return features_from_geojson(load_geojson(path))


def load_boundary_rings(path: Optional[Path]) -> list[list[LatLng]]:
    if path is None or not path.exists():
        return []
    return polygon_rings_from_geojson(load_geojson(path))


def save_csv(df: pd.DataFrame, path: Path) -> Path:
    ensure_parent_dir(path)
    df.to_csv(path, index=False)
    return path


def load_prior_statuses(path: Optional[Path]) -> dict[str, RoadStatus]:
    """Latest known status per segment from a `segment_id,status[,updated_at]` CSV.

    A missing file means "no history": every segment starts passable.
    """

    if path is None or not path.exists():
        return {}
    df = pd.read_csv(path, dtype={"segment_id": str})
    latest, _ = latest_status_by_segment(df)
    return {
        str(record["segment_id"]): RoadStatus(str(record["status"]))
        for record in latest.to_dict(orient="records")
    }


def statuses_frame(statuses: dict[str, RoadStatus]) -> pd.DataFrame:
    rows = [{"segment_id": segment_id, "status": status.value} for segment_id, status in sorted(statuses.items())]
    return pd.DataFrame(rows, columns=["segment_id", "status"])
