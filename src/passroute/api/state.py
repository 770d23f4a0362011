from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from passroute.geometry.primitives import LatLng
from passroute.ingestion.sync import FeedSyncResult, StatusSource, sync_status_feed
from passroute.network.assembly import assemble_segments, assembly_spec_from_config
from passroute.network.features import clip_to_boundary, filter_vehicular
from passroute.network.graph import RoutingGraph, build_graph
from passroute.network.schemas import RoadSegment, RoadStatus, StatusUpdate, VehicleMode
from passroute.reconcile.reconciler import ReconcileOutcome, StatusReconciler
from passroute.routing.planner import LookupFailure, RouteResult, plan_route, route_spec_from_config, snap_to_road
from passroute.settings import AppConfig
from passroute.storage.datasets import load_boundary_rings, load_prior_statuses, load_road_features


logger = logging.getLogger(__name__)


class NetworkState:
    """The live segment set plus per-mode graphs rebuilt lazily after status changes.

    FastAPI runs sync handlers on a thread pool, so every read-modify path goes through one
    lock; within it the model stays single-threaded and last-request-wins.
    """

    def __init__(self, reconciler: StatusReconciler, config: AppConfig) -> None:
        self.reconciler = reconciler
        self.config = config
        self._lock = threading.RLock()
        self._graphs: dict[VehicleMode, RoutingGraph] = {}
        reconciler.subscribe(self._on_status_change)

    @classmethod
    def from_segments(cls, segments: Iterable[RoadSegment], config: AppConfig) -> "NetworkState":
        return cls(StatusReconciler.from_config(segments, config), config)

    @classmethod
    def from_config(cls, config: AppConfig) -> "NetworkState":
        paths = config.paths
        if not paths.roads_geojson.exists():
            logger.warning("Road features not found at %s; starting with an empty network.", paths.roads_geojson)
            return cls.from_segments([], config)

        features = load_road_features(paths.roads_geojson)
        features = filter_vehicular(features, config.assembly.excluded_highway_classes)
        features = clip_to_boundary(features, load_boundary_rings(paths.boundary_geojson))
        result = assemble_segments(
            features,
            load_prior_statuses(paths.prior_statuses_csv),
            assembly_spec_from_config(config),
        )
        return cls.from_segments(result.segments, config)

    def _on_status_change(self, segment_id: str, old: RoadStatus, new: RoadStatus) -> None:
        # Any status change can alter edge sets or costs in either mode.
        self._graphs.clear()

    def graph(self, mode: VehicleMode) -> RoutingGraph:
        mode = VehicleMode(mode)
        with self._lock:
            graph = self._graphs.get(mode)
            if graph is None:
                graph = build_graph(
                    self.reconciler.segments,
                    mode,
                    precision=self.config.routing.node_precision,
                )
                self._graphs[mode] = graph
            return graph

    def route(
        self,
        start: LatLng,
        end: LatLng,
        mode: VehicleMode = VehicleMode.STANDARD,
        *,
        snap: bool = False,
    ) -> RouteResult:
        with self._lock:
            if snap:
                limit = self.config.routing.road_snap_distance_m
                segments = self.reconciler.segments
                snapped_start = snap_to_road(segments, start, limit)
                if snapped_start is None:
                    return LookupFailure(endpoint="start", reason=f"no open road within {limit:.0f} m")
                snapped_end = snap_to_road(segments, end, limit)
                if snapped_end is None:
                    return LookupFailure(endpoint="end", reason=f"no open road within {limit:.0f} m")
                start, end = snapped_start, snapped_end
            return plan_route(self.graph(mode), start, end, route_spec_from_config(self.config))

    def local_edit(self, segment_id: str, status: RoadStatus) -> ReconcileOutcome:
        with self._lock:
            return self.reconciler.apply_local_edit(segment_id, status)

    def apply_updates(self, updates: Iterable[StatusUpdate]) -> list[tuple[str, ReconcileOutcome]]:
        """Apply events in order and return one `(segment_id, outcome)` pair per event."""

        outcomes: list[tuple[str, ReconcileOutcome]] = []
        with self._lock:
            for update in updates:
                outcomes.append((update.segment_id, self.reconciler.apply_update(update)))
        return outcomes

    def sync(self, source: StatusSource) -> FeedSyncResult:
        return sync_status_feed(source, self.reconciler, lock=self._lock)

    def segment(self, segment_id: str) -> Optional[RoadSegment]:
        return self.reconciler.get(segment_id)
