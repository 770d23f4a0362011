from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Union

from passroute.geometry.primitives import LatLng, closest_point_on_segment, haversine_distance
from passroute.network.graph import RoutingGraph, nearest_node
from passroute.network.schemas import RoadSegment, RoadStatus
from passroute.routing.astar import find_path
from passroute.settings import AppConfig


logger = logging.getLogger(__name__)

DEFAULT_AVG_SPEED_KPH = 30.0


@dataclass(frozen=True)
class RouteSpec:
    avg_speed_kph: float = DEFAULT_AVG_SPEED_KPH
    max_snap_distance_m: Optional[float] = 5000.0


def route_spec_from_config(config: AppConfig) -> RouteSpec:
    return RouteSpec(
        avg_speed_kph=float(config.routing.avg_speed_kph),
        max_snap_distance_m=config.routing.max_snap_distance_m,
    )


@dataclass(frozen=True)
class Route:
    nodes: list[int]
    path: list[LatLng]
    distance_m: float
    eta_minutes: float
    cost: float


@dataclass(frozen=True)
class NoRoute:
    """Both endpoints resolved to graph nodes, but no path connects them."""

    start_node: int
    end_node: int


@dataclass(frozen=True)
class LookupFailure:
    """An endpoint could not be resolved to a graph node."""

    endpoint: Literal["start", "end"]
    reason: str


RouteResult = Union[Route, NoRoute, LookupFailure]


def calculate_route_distance(graph: RoutingGraph, path: list[int]) -> float:
    """Physical length in meters of a node path, independent of edge costs."""

    if len(path) < 2:
        return 0.0
    points = graph.node_coordinates(path)
    return sum(haversine_distance(p, q) for p, q in zip(points, points[1:]))


def calculate_eta(distance_m: float, avg_speed_kph: float = DEFAULT_AVG_SPEED_KPH) -> float:
    """Travel time in minutes at a constant average speed."""

    if avg_speed_kph <= 0:
        raise ValueError("avg_speed_kph must be > 0")
    return (distance_m / 1000.0) / avg_speed_kph * 60.0


def _resolve_endpoint(
    graph: RoutingGraph,
    point: LatLng,
    endpoint: Literal["start", "end"],
    max_snap_distance_m: Optional[float],
) -> Union[int, LookupFailure]:
    if not graph.nodes:
        return LookupFailure(endpoint=endpoint, reason="graph has no routable nodes")
    lat, lng = point
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return LookupFailure(endpoint=endpoint, reason=f"invalid coordinate {point}")
    index = nearest_node(graph, point)
    if index is None:
        return LookupFailure(endpoint=endpoint, reason="graph has no routable nodes")
    distance = haversine_distance(point, graph.nodes[index].point)
    if max_snap_distance_m is not None and distance > max_snap_distance_m:
        return LookupFailure(
            endpoint=endpoint,
            reason=f"nearest road node is {distance:.0f} m away (limit {max_snap_distance_m:.0f} m)",
        )
    return index


def plan_route(
    graph: RoutingGraph,
    start: LatLng,
    end: LatLng,
    spec: Optional[RouteSpec] = None,
) -> RouteResult:
    """Resolve endpoints to nodes, run A*, and attach distance and ETA to the result."""

    spec = spec or RouteSpec()

    start_node = _resolve_endpoint(graph, start, "start", spec.max_snap_distance_m)
    if isinstance(start_node, LookupFailure):
        logger.info("Route lookup failed for start point %s: %s.", start, start_node.reason)
        return start_node
    end_node = _resolve_endpoint(graph, end, "end", spec.max_snap_distance_m)
    if isinstance(end_node, LookupFailure):
        logger.info("Route lookup failed for end point %s: %s.", end, end_node.reason)
        return end_node

    found = find_path(graph, start_node, end_node)
    if found is None:
        logger.info("No route between nodes %s and %s (%s mode).", start_node, end_node, graph.mode.value)
        return NoRoute(start_node=start_node, end_node=end_node)

    distance = calculate_route_distance(graph, found.nodes)
    return Route(
        nodes=found.nodes,
        path=graph.node_coordinates(found.nodes),
        distance_m=distance,
        eta_minutes=calculate_eta(distance, spec.avg_speed_kph),
        cost=found.cost,
    )


def snap_to_road(
    segments: Iterable[RoadSegment],
    point: LatLng,
    max_distance_m: float = 100.0,
) -> Optional[LatLng]:
    """Closest point on any non-blocked segment within `max_distance_m`, or None."""

    best: Optional[LatLng] = None
    best_distance = math.inf
    for segment in segments:
        if segment.status is RoadStatus.BLOCKED:
            continue
        for a, b in zip(segment.coordinates, segment.coordinates[1:]):
            candidate = closest_point_on_segment(point, a, b)
            distance = haversine_distance(point, candidate)
            if distance < best_distance and distance <= max_distance_m:
                best_distance = distance
                best = candidate
    return best
