"""Planar and spherical geometry primitives over `(lat, lng)` coordinate pairs.

Everything except `haversine_distance` works in raw degree space. That is adequate for
ordering, splitting and intersecting road polylines at city scale, where the distortion
between latitude and longitude degrees does not change which candidate is closest in
practice. Physical distances (costs, route lengths, snapping thresholds) always go
through `haversine_distance`.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

LatLng = tuple[float, float]

EARTH_RADIUS_M = 6_371_000.0
DEFAULT_INTERSECTION_EPSILON = 1e-10


def _planar_distance(p: LatLng, q: LatLng) -> float:
    return math.hypot(q[0] - p[0], q[1] - p[1])


def projection_parameter(p: LatLng, a: LatLng, b: LatLng) -> float:
    """Return t in [0, 1] such that a + t(b - a) is the point of [a, b] closest to p."""

    dx = b[0] - a[0]
    dy = b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return 0.0
    t = ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq
    return max(0.0, min(1.0, t))


def closest_point_on_segment(p: LatLng, a: LatLng, b: LatLng) -> LatLng:
    t = projection_parameter(p, a, b)
    return (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]))


def point_to_line_distance(p: LatLng, a: LatLng, b: LatLng) -> float:
    """Shortest planar distance from p to the segment [a, b] (point distance when a == b)."""

    if a == b:
        return _planar_distance(p, a)
    return _planar_distance(p, closest_point_on_segment(p, a, b))


def line_intersection(
    a: LatLng,
    b: LatLng,
    c: LatLng,
    d: LatLng,
    *,
    epsilon: float = DEFAULT_INTERSECTION_EPSILON,
) -> Optional[LatLng]:
    """Intersection of segments [a, b] and [c, d], or None.

    Both parameters must fall within [0, 1]. Parallel and near-parallel pairs (denominator
    below `epsilon`) never intersect, including collinear overlaps.
    """

    x1, y1 = a
    x2, y2 = b
    x3, y3 = c
    x4, y4 = d

    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < epsilon:
        return None

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom
    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        return (x1 + t * (x2 - x1), y1 + t * (y2 - y1))
    return None


def point_in_polygon(p: LatLng, ring: Sequence[LatLng]) -> bool:
    """Ray-casting containment test.

    Points exactly on an edge or vertex may land on either side; callers must not rely on
    boundary behavior.
    """

    x, y = p
    inside = False
    n = len(ring)
    if n < 3:
        return False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def haversine_distance(p: LatLng, q: LatLng) -> float:
    """Great-circle distance in meters."""

    lat1, lng1 = math.radians(p[0]), math.radians(p[1])
    lat2, lng2 = math.radians(q[0]), math.radians(q[1])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_along_line(line: Sequence[LatLng], p: LatLng) -> float:
    """Planar distance from the start of `line` to the projection of p onto its closest edge."""

    best_offset = 0.0
    best_distance = math.inf
    travelled = 0.0
    for a, b in zip(line, line[1:]):
        edge_length = _planar_distance(a, b)
        distance = point_to_line_distance(p, a, b)
        if distance < best_distance:
            best_distance = distance
            best_offset = travelled + projection_parameter(p, a, b) * edge_length
        travelled += edge_length
    return best_offset


def nearest_vertex_index(line: Sequence[LatLng], p: LatLng) -> int:
    best_index = 0
    best_distance = math.inf
    for index, vertex in enumerate(line):
        distance = _planar_distance(vertex, p)
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index
