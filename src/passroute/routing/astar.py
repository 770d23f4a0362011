"""A* search over a `RoutingGraph`.

The heuristic is the haversine distance to the goal. It is admissible whenever every cost
multiplier is at least 1.0 (standard mode). In tall mode restricted edges cost 0.5x their
length, so the heuristic can overestimate and the returned path may be suboptimal; this
is accepted behavior, not a defect of the search.

The open set is a binary heap of `(f, node_index)` entries with lazy deletion. Entries
are only pushed when a node's g strictly improves, so at most one live entry per node
exists, and nodes with equal f are expanded lowest index first. That keeps results
reproducible across runs.
"""

from __future__ import annotations

import heapq
import math
from dataclasses import dataclass
from typing import Optional

from passroute.geometry.primitives import haversine_distance
from passroute.network.graph import RoutingGraph


@dataclass(frozen=True)
class PathResult:
    nodes: list[int]
    cost: float


def reconstruct_path(came_from: dict[int, int], current: int) -> list[int]:
    path = [current]
    while current in came_from:
        current = came_from[current]
        path.append(current)
    path.reverse()
    return path


def find_path(graph: RoutingGraph, start: int, goal: int) -> Optional[PathResult]:
    """Lowest-cost node path from `start` to `goal`, both inclusive, or None if unreachable."""

    nodes = graph.nodes
    if not (0 <= start < len(nodes) and 0 <= goal < len(nodes)):
        raise IndexError(f"node index out of range: start={start}, goal={goal}, nodes={len(nodes)}")

    goal_point = nodes[goal].point

    def heuristic(index: int) -> float:
        return haversine_distance(nodes[index].point, goal_point)

    g_score: dict[int, float] = {start: 0.0}
    f_score: dict[int, float] = {start: heuristic(start)}
    came_from: dict[int, int] = {}
    open_heap: list[tuple[float, int]] = [(f_score[start], start)]
    in_open = {start}

    while open_heap:
        f, current = heapq.heappop(open_heap)
        if current not in in_open or f > f_score[current]:
            continue  # stale
        if current == goal:
            return PathResult(nodes=reconstruct_path(came_from, current), cost=g_score[current])
        in_open.discard(current)

        current_g = g_score[current]
        for edge in nodes[current].edges:
            tentative = current_g + edge.cost
            if tentative < g_score.get(edge.to, math.inf):
                came_from[edge.to] = current
                g_score[edge.to] = tentative
                f_score[edge.to] = tentative + heuristic(edge.to)
                in_open.add(edge.to)
                heapq.heappush(open_heap, (f_score[edge.to], edge.to))

    return None


def path_cost(graph: RoutingGraph, path: list[int]) -> float:
    """Sum of the cheapest edge costs between consecutive nodes of `path`."""

    total = 0.0
    for u, v in zip(path, path[1:]):
        costs = [edge.cost for edge in graph.nodes[u].edges if edge.to == v]
        if not costs:
            raise ValueError(f"no edge between nodes {u} and {v}")
        total += min(costs)
    return total
