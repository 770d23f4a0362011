from __future__ import annotations

from datetime import datetime, timezone

from passroute.settings import AppConfig, load_config
from passroute.utils.time import parse_datetime, to_utc


def test_load_config_resolves_relative_paths(tmp_path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "paths:\n"
        "  roads_geojson: data/city.geojson\n"
        "reconciler:\n"
        "  suppression_window_ms: 750\n"
        "  strategy: versioned\n",
        encoding="utf-8",
    )
    config = load_config(config_path)

    assert config.paths.roads_geojson.is_absolute()
    assert config.paths.roads_geojson.name == "city.geojson"
    assert config.reconciler.suppression_window_ms == 750
    assert config.reconciler.strategy == "versioned"
    assert config.routing.max_snap_distance_m == 5000.0


def test_resolve_paths_keeps_optional_paths_unset(tmp_path) -> None:
    config = AppConfig().resolve_paths(root=tmp_path)
    assert config.paths.roads_geojson == tmp_path / "data/roads.geojson"
    assert config.paths.boundary_geojson is None
    assert config.paths.prior_statuses_csv is None


def test_timestamps_normalize_to_utc() -> None:
    assert parse_datetime("2024-05-01T08:00:00Z") == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)
    assert parse_datetime("2024-05-01T16:00:00+08:00") == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)
    assert to_utc(datetime(2024, 5, 1, 8)).tzinfo == timezone.utc
