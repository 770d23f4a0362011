from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from passroute.geometry.primitives import LatLng, haversine_distance
from passroute.network.schemas import RoadSegment, RoadStatus, VehicleMode


logger = logging.getLogger(__name__)

DEFAULT_NODE_PRECISION = 9

# Restricted roads are discounted for tall vehicles and penalized for standard ones.
COST_MULTIPLIERS: dict[VehicleMode, dict[RoadStatus, float]] = {
    VehicleMode.STANDARD: {RoadStatus.PASSABLE: 1.0, RoadStatus.RESTRICTED: 3.0},
    VehicleMode.TALL: {RoadStatus.PASSABLE: 1.0, RoadStatus.RESTRICTED: 0.5},
}


def cost_multiplier(status: RoadStatus, mode: VehicleMode) -> Optional[float]:
    """Edge cost multiplier for a segment status, or None when the segment is not routable."""

    if status is RoadStatus.BLOCKED:
        return None
    return COST_MULTIPLIERS[VehicleMode(mode)][RoadStatus(status)]


@dataclass(frozen=True)
class GraphEdge:
    to: int
    cost: float
    segment_id: Optional[str] = None


@dataclass
class GraphNode:
    index: int
    lat: float
    lng: float
    edges: list[GraphEdge] = field(default_factory=list)

    @property
    def point(self) -> LatLng:
        return (self.lat, self.lng)


@dataclass
class RoutingGraph:
    nodes: list[GraphNode] = field(default_factory=list)
    mode: VehicleMode = VehicleMode.STANDARD
    precision: int = DEFAULT_NODE_PRECISION
    _index_by_key: dict[str, int] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self.nodes)

    def node_key(self, point: LatLng) -> str:
        return node_key(point, self.precision)

    def get_or_create_node(self, point: LatLng) -> int:
        key = self.node_key(point)
        index = self._index_by_key.get(key)
        if index is None:
            index = len(self.nodes)
            self.nodes.append(GraphNode(index=index, lat=point[0], lng=point[1]))
            self._index_by_key[key] = index
        return index

    def find_node(self, point: LatLng) -> Optional[int]:
        return self._index_by_key.get(self.node_key(point))

    def add_undirected_edge(self, u: int, v: int, cost: float, segment_id: Optional[str] = None) -> None:
        self.nodes[u].edges.append(GraphEdge(to=v, cost=cost, segment_id=segment_id))
        self.nodes[v].edges.append(GraphEdge(to=u, cost=cost, segment_id=segment_id))

    def edge_count(self) -> int:
        """Number of directed edges (twice the number of undirected links)."""

        return sum(len(node.edges) for node in self.nodes)

    def node_coordinates(self, path: Sequence[int]) -> list[LatLng]:
        return [self.nodes[index].point for index in path]


def node_key(point: LatLng, precision: int = DEFAULT_NODE_PRECISION) -> str:
    return f"{point[0]:.{precision}f},{point[1]:.{precision}f}"


def build_graph(
    segments: Iterable[RoadSegment],
    mode: VehicleMode = VehicleMode.STANDARD,
    *,
    precision: int = DEFAULT_NODE_PRECISION,
) -> RoutingGraph:
    """Build an undirected, cost-weighted graph from every non-blocked segment.

    Each consecutive coordinate pair of a segment becomes a pair of opposite edges costing
    `haversine_distance * multiplier(status, mode)`. Endpoints that quantize to the same key
    collapse into one node, which is how separate segments join at junctions.
    """

    mode = VehicleMode(mode)
    graph = RoutingGraph(mode=mode, precision=precision)
    used = skipped_blocked = 0
    for segment in segments:
        multiplier = cost_multiplier(segment.status, mode)
        if multiplier is None:
            skipped_blocked += 1
            continue
        used += 1
        for p, q in zip(segment.coordinates, segment.coordinates[1:]):
            u = graph.get_or_create_node(p)
            v = graph.get_or_create_node(q)
            if u == v:
                continue
            graph.add_undirected_edge(u, v, haversine_distance(p, q) * multiplier, segment.id)

    logger.info(
        "Built %s graph: %s nodes, %s directed edges from %s segments (%s blocked skipped).",
        mode.value,
        len(graph.nodes),
        graph.edge_count(),
        used,
        skipped_blocked,
    )
    return graph


def nearest_node(graph: RoutingGraph, point: LatLng) -> Optional[int]:
    """Index of the node closest to `point` by haversine distance (lowest index on ties).

    Linear in the number of nodes; None for an empty graph.
    """

    best_index: Optional[int] = None
    best_distance = math.inf
    for node in graph.nodes:
        distance = haversine_distance(point, node.point)
        if distance < best_distance:
            best_distance = distance
            best_index = node.index
    return best_index
