from __future__ import annotations

import json
import math

import pytest
from fastapi.testclient import TestClient

from passroute.geometry.primitives import EARTH_RADIUS_M
from passroute.ingestion.errors import StatusFeedError
from passroute.network.schemas import StatusUpdate


def deg(meters: float) -> float:
    return meters / (EARTH_RADIUS_M * math.pi / 180.0)


A = (0.0, 0.0)
B = (0.0, deg(100.0))
DETOUR = (deg(math.sqrt(125.0**2 - 50.0**2)), deg(50.0))


def _road(feature_id: str, points: list[tuple[float, float]], highway: str = "residential") -> dict:
    return {
        "type": "Feature",
        "properties": {"@id": feature_id, "highway": highway, "name": feature_id.title()},
        "geometry": {"type": "LineString", "coordinates": [[lng, lat] for lat, lng in points]},
    }


@pytest.fixture()
def client(monkeypatch, tmp_path) -> TestClient:
    roads = tmp_path / "roads.geojson"
    roads.write_text(
        json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    _road("short", [A, B]),
                    _road("detour", [A, DETOUR, B]),
                    _road("trail", [A, (deg(-80.0), 0.0)], highway="footway"),
                ],
            }
        ),
        encoding="utf-8",
    )
    statuses = tmp_path / "statuses.csv"
    statuses.write_text("segment_id,status\nshort_seg_0,restricted\n", encoding="utf-8")

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"paths:\n  data_dir: {tmp_path}\n  roads_geojson: {roads}\n  prior_statuses_csv: {statuses}\n",
        encoding="utf-8",
    )

    monkeypatch.setenv("PASSROUTE_CONFIG", str(config_path))
    monkeypatch.setattr("passroute.settings._CONFIG", None)

    from passroute.api.app import create_app

    return TestClient(create_app())


def _route(client: TestClient, mode: str) -> dict:
    resp = client.post("/route", json={"start": list(A), "end": list(B), "vehicle_mode": mode})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_healthz_counts_vehicular_segments(client: TestClient) -> None:
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "segments": 2}


def test_segments_listing_and_filter(client: TestClient) -> None:
    items = client.get("/segments").json()
    assert sorted(item["id"] for item in items) == ["detour_seg_0", "short_seg_0"]

    restricted = client.get("/segments", params={"status": "restricted"}).json()
    assert [item["id"] for item in restricted] == ["short_seg_0"]
    assert restricted[0]["name"] == "Short"

    assert client.get("/segments/missing").status_code == 404


def test_route_depends_on_vehicle_mode(client: TestClient) -> None:
    tall = _route(client, "tall")
    assert tall["outcome"] == "route"
    assert len(tall["path"]) == 2
    assert tall["distance_m"] == pytest.approx(100.0, rel=1e-3)

    standard = _route(client, "standard")
    assert standard["outcome"] == "route"
    assert len(standard["path"]) == 3
    assert standard["distance_m"] == pytest.approx(250.0, rel=1e-3)
    assert standard["eta_minutes"] == pytest.approx(0.25 / 30.0 * 60.0, rel=1e-3)


def test_local_edit_reroutes_and_wins_over_feed(client: TestClient) -> None:
    resp = client.put("/segments/detour_seg_0/status", json={"status": "blocked"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["outcome"] == "applied"

    standard = _route(client, "standard")
    assert len(standard["path"]) == 2

    pushed = client.post(
        "/status/updates",
        json={"updates": [{"segment_id": "detour_seg_0", "status": "passable"}]},
    ).json()
    assert pushed["outcomes"] == [{"segment_id": "detour_seg_0", "outcome": "suppressed"}]
    assert pushed["changed"] == []
    assert client.get("/segments/detour_seg_0").json()["status"] == "blocked"
    assert client.get("/segments/detour_seg_0").json()["pending"] is True


def test_blocking_every_road_leaves_nothing_to_route_on(client: TestClient) -> None:
    pushed = client.post(
        "/status/updates",
        json={
            "updates": [
                {"segment_id": "short_seg_0", "status": "blocked"},
                {"segment_id": "detour_seg_0", "status": "blocked"},
            ]
        },
    ).json()
    assert sorted(pushed["changed"]) == ["detour_seg_0", "short_seg_0"]

    body = _route(client, "standard")
    assert body["outcome"] == "lookup_failure"


def test_far_endpoint_is_a_lookup_failure(client: TestClient) -> None:
    resp = client.post("/route", json={"start": list(A), "end": [1.0, 1.0]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["outcome"] == "lookup_failure"
    assert body["endpoint"] == "end"


def test_edit_unknown_segment_is_404(client: TestClient) -> None:
    assert client.put("/segments/ghost/status", json={"status": "blocked"}).status_code == 404
    assert client.put("/segments/short_seg_0/status", json={"status": "flooded"}).status_code == 422


class _StaticSource:
    def __init__(self, updates: list[StatusUpdate]) -> None:
        self.updates = updates

    def fetch_latest(self) -> list[StatusUpdate]:
        return self.updates


class _BrokenSource:
    def fetch_latest(self) -> list[StatusUpdate]:
        raise StatusFeedError("feed down")


def test_sync_endpoint_applies_and_degrades(client: TestClient) -> None:
    client.app.state.feed_source = _StaticSource([StatusUpdate(segment_id="short_seg_0", status="passable")])
    body = client.post("/status/sync").json()
    assert body["ok"] is True
    assert body["changed"] == ["short_seg_0"]

    client.app.state.feed_source = _BrokenSource()
    body = client.post("/status/sync").json()
    assert body["ok"] is False
    assert body["error_code"] == "unknown"
    assert client.get("/segments/short_seg_0").json()["status"] == "passable"


def test_repeated_segment_in_one_batch_reports_every_outcome(client: TestClient) -> None:
    pushed = client.post(
        "/status/updates",
        json={
            "updates": [
                {"segment_id": "detour_seg_0", "status": "blocked", "updated_at": "2024-05-01T08:00:00Z"},
                {"segment_id": "detour_seg_0", "status": "blocked", "updated_at": "2024-05-01T08:00:05Z"},
            ]
        },
    ).json()

    assert pushed["received"] == 2
    assert pushed["changed"] == ["detour_seg_0"]
    assert [item["outcome"] for item in pushed["outcomes"]] == ["applied", "unchanged"]
    assert client.get("/segments/detour_seg_0").json()["status"] == "blocked"
