from __future__ import annotations

import threading
import time

from passroute.api.state import NetworkState
from passroute.network.schemas import RoadSegment, RoadStatus, StatusUpdate, VehicleMode
from passroute.reconcile.reconciler import ReconcileOutcome
from passroute.routing.planner import Route
from passroute.settings import AppConfig


def _state() -> NetworkState:
    segments = [
        RoadSegment(id="a", coordinates=((0.0, 0.0), (0.0, 0.001))),
        RoadSegment(id="b", coordinates=((0.0, 0.001), (0.0, 0.002))),
    ]
    return NetworkState.from_segments(segments, AppConfig())


class _GatedSource:
    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch_latest(self) -> list[StatusUpdate]:
        self.started.set()
        self.release.wait(timeout=5.0)
        return [StatusUpdate(segment_id="b", status="restricted")]


def test_route_is_not_blocked_by_a_slow_feed_fetch() -> None:
    state = _state()
    source = _GatedSource()
    results = []
    worker = threading.Thread(target=lambda: results.append(state.sync(source)))
    worker.start()
    try:
        assert source.started.wait(timeout=5.0)

        began = time.monotonic()
        route = state.route((0.0, 0.0), (0.0, 0.002), VehicleMode.STANDARD)
        waited = time.monotonic() - began

        assert isinstance(route, Route)
        assert waited < 1.0
        assert not source.release.is_set()
    finally:
        source.release.set()
        worker.join(timeout=5.0)

    assert results and results[0].ok
    assert results[0].changed == ["b"]
    assert state.segment("b").status is RoadStatus.RESTRICTED


def test_apply_updates_keeps_one_outcome_per_event() -> None:
    state = _state()
    outcomes = state.apply_updates(
        [
            StatusUpdate(segment_id="a", status="blocked"),
            StatusUpdate(segment_id="a", status="blocked"),
        ]
    )
    assert outcomes == [("a", ReconcileOutcome.APPLIED), ("a", ReconcileOutcome.UNCHANGED)]
    assert state.segment("a").status is RoadStatus.BLOCKED
