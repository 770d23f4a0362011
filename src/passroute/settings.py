from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(root: Path, value: str | Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else (root / path)


class AppSection(BaseModel):
    name: str = "passroute"


class PathsSection(BaseModel):
    data_dir: Path = Path("data")
    roads_geojson: Path = Path("data/roads.geojson")
    boundary_geojson: Optional[Path] = None
    prior_statuses_csv: Optional[Path] = None


class AssemblySection(BaseModel):
    excluded_highway_classes: list[str] = Field(
        default_factory=lambda: ["footway", "cycleway", "path", "steps", "pedestrian"]
    )
    vertex_tolerance_deg: float = 1e-4
    hash_precision: int = 6
    intersection_epsilon: float = 1e-10


class RoutingSection(BaseModel):
    avg_speed_kph: float = Field(default=30.0, gt=0)
    node_precision: int = Field(default=9, ge=0)
    # Farther than this from every node counts as a lookup failure (None disables the check).
    max_snap_distance_m: Optional[float] = 5000.0
    road_snap_distance_m: float = 100.0


class ReconcilerSection(BaseModel):
    suppression_window_ms: int = Field(default=2000, ge=0)
    strategy: Literal["window", "versioned"] = "window"


class FeedSection(BaseModel):
    base_url: str = "http://localhost:54321"
    endpoint: str = "/road_status/latest"
    request_timeout_seconds: float = 10.0
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    respect_retry_after: bool = True
    poll_interval_seconds: float = 30.0
    token_env: str = "PASSROUTE_FEED_TOKEN"


class CorsSection(BaseModel):
    allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:8000", "http://localhost:5173"]
    )


class ApiSection(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    cors: CorsSection = Field(default_factory=CorsSection)


class AppConfig(BaseModel):
    app: AppSection = Field(default_factory=AppSection)
    paths: PathsSection = Field(default_factory=PathsSection)
    assembly: AssemblySection = Field(default_factory=AssemblySection)
    routing: RoutingSection = Field(default_factory=RoutingSection)
    reconciler: ReconcilerSection = Field(default_factory=ReconcilerSection)
    feed: FeedSection = Field(default_factory=FeedSection)
    api: ApiSection = Field(default_factory=ApiSection)

    def resolve_paths(self, root: Optional[Path] = None) -> "AppConfig":
        repo_root = project_root() if root is None else root
        optional = {
            key: _resolve_path(repo_root, value)
            for key, value in (
                ("boundary_geojson", self.paths.boundary_geojson),
                ("prior_statuses_csv", self.paths.prior_statuses_csv),
            )
            if value is not None
        }
        updated_paths = self.paths.model_copy(
            update={
                "data_dir": _resolve_path(repo_root, self.paths.data_dir),
                "roads_geojson": _resolve_path(repo_root, self.paths.roads_geojson),
                **optional,
            }
        )
        return self.model_copy(update={"paths": updated_paths})


def _maybe_load_dotenv() -> None:
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return

    load_dotenv()


def load_config(config_path: str | Path | None = None) -> AppConfig:
    _maybe_load_dotenv()

    root = project_root()
    candidate = config_path or os.getenv("PASSROUTE_CONFIG", "configs/config.yaml")
    path = _resolve_path(root, candidate)
    if not path.exists():
        path = root / "configs/config.example.yaml"
    if not path.exists():
        return AppConfig().resolve_paths(root)

    data: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return AppConfig.model_validate(data).resolve_paths(root)


_CONFIG: AppConfig | None = None


def get_config() -> AppConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG
