from __future__ import annotations

import math
import random

import pytest

from passroute.network.graph import RoutingGraph, build_graph
from passroute.network.schemas import RoadSegment, RoadStatus, VehicleMode
from passroute.routing.astar import find_path, path_cost


def _random_graph(seed: int, node_count: int = 7, segment_count: int = 12) -> RoutingGraph:
    rng = random.Random(seed)
    points = [(rng.uniform(0, 0.01), rng.uniform(0, 0.01)) for _ in range(node_count)]
    statuses = [RoadStatus.PASSABLE, RoadStatus.PASSABLE, RoadStatus.RESTRICTED, RoadStatus.BLOCKED]
    segments = []
    for i in range(segment_count):
        a, b = rng.sample(range(node_count), 2)
        segments.append(RoadSegment(id=f"s{i}", coordinates=(points[a], points[b]), status=rng.choice(statuses)))
    return build_graph(segments, VehicleMode.STANDARD)


def _exhaustive_cost(graph: RoutingGraph, start: int, goal: int) -> float:
    best = math.inf

    def visit(node: int, cost: float, seen: set[int]) -> None:
        nonlocal best
        if node == goal:
            best = min(best, cost)
            return
        cheapest: dict[int, float] = {}
        for edge in graph.nodes[node].edges:
            cheapest[edge.to] = min(edge.cost, cheapest.get(edge.to, math.inf))
        for neighbor, edge_cost in cheapest.items():
            if neighbor not in seen:
                seen.add(neighbor)
                visit(neighbor, cost + edge_cost, seen)
                seen.discard(neighbor)

    visit(start, 0.0, {start})
    return best


@pytest.mark.parametrize("seed", range(8))
def test_standard_mode_paths_are_optimal(seed: int) -> None:
    graph = _random_graph(seed)
    for start in range(len(graph)):
        for goal in range(len(graph)):
            expected = _exhaustive_cost(graph, start, goal)
            found = find_path(graph, start, goal)
            if math.isinf(expected):
                assert found is None
                continue
            assert found is not None
            assert found.nodes[0] == start and found.nodes[-1] == goal
            assert found.cost == pytest.approx(expected)
            assert path_cost(graph, found.nodes) == pytest.approx(found.cost)


@pytest.mark.parametrize("seed", range(4))
def test_reverse_path_has_equal_cost(seed: int) -> None:
    graph = _random_graph(seed)
    for start in range(len(graph)):
        for goal in range(start + 1, len(graph)):
            forward = find_path(graph, start, goal)
            backward = find_path(graph, goal, start)
            assert (forward is None) == (backward is None)
            if forward is not None:
                assert backward.cost == pytest.approx(forward.cost)


def test_start_equals_goal() -> None:
    graph = _random_graph(0)
    found = find_path(graph, 0, 0)
    assert found is not None
    assert found.nodes == [0] and found.cost == 0.0


def test_repeated_searches_are_identical() -> None:
    graph = _random_graph(3)
    first = find_path(graph, 0, len(graph) - 1)
    for _ in range(5):
        again = find_path(graph, 0, len(graph) - 1)
        assert again == first


def test_out_of_range_index_raises() -> None:
    graph = _random_graph(1)
    with pytest.raises(IndexError):
        find_path(graph, 0, len(graph))
