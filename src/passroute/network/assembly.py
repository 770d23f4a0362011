"""Turn raw road polylines into atomic, stably identified road segments.

Roads are split wherever another road crosses them at (or very near) one of their own
vertices, so every junction becomes a segment boundary and therefore a shared graph node.
Segment IDs are pure functions of the input: `{feature_id}_seg_{n}` when the feature has a
stable identifier, otherwise a content hash of the rounded coordinates. Rebuilding from
identical input reproduces identical IDs, which keeps persisted statuses addressable.
"""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from passroute.geometry.primitives import (
    DEFAULT_INTERSECTION_EPSILON,
    LatLng,
    distance_along_line,
    line_intersection,
    nearest_vertex_index,
)
from passroute.network.graph import DEFAULT_NODE_PRECISION, node_key
from passroute.network.schemas import RoadFeature, RoadSegment, RoadStatus
from passroute.settings import AppConfig


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssemblySpec:
    vertex_tolerance_deg: float = 1e-4
    hash_precision: int = 6
    intersection_epsilon: float = DEFAULT_INTERSECTION_EPSILON
    node_precision: int = DEFAULT_NODE_PRECISION


def assembly_spec_from_config(config: AppConfig) -> AssemblySpec:
    section = config.assembly
    return AssemblySpec(
        vertex_tolerance_deg=float(section.vertex_tolerance_deg),
        hash_precision=int(section.hash_precision),
        intersection_epsilon=float(section.intersection_epsilon),
        node_precision=int(config.routing.node_precision),
    )


@dataclass
class AssemblyStats:
    input_features: int = 0
    skipped_malformed: int = 0
    intersections: int = 0
    segments: int = 0
    discarded_degenerate: int = 0
    skipped_duplicates: int = 0
    prior_statuses_applied: int = 0


@dataclass
class AssemblyResult:
    segments: list[RoadSegment] = field(default_factory=list)
    stats: AssemblyStats = field(default_factory=AssemblyStats)


def _malformed_reason(feature: RoadFeature) -> Optional[str]:
    if len(feature.coordinates) < 2:
        return f"only {len(feature.coordinates)} coordinate(s)"
    for lat, lng in feature.coordinates:
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return "non-finite coordinate"
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return f"coordinate out of range ({lat}, {lng})"
    return None


def _bbox(line: Sequence[LatLng]) -> tuple[float, float, float, float]:
    lats = [p[0] for p in line]
    lngs = [p[1] for p in line]
    return min(lats), min(lngs), max(lats), max(lngs)


def _bboxes_overlap(a: tuple[float, float, float, float], b: tuple[float, float, float, float]) -> bool:
    return a[0] <= b[2] and b[0] <= a[2] and a[1] <= b[3] and b[1] <= a[3]


def find_intersections(
    line1: Sequence[LatLng],
    line2: Sequence[LatLng],
    *,
    epsilon: float = DEFAULT_INTERSECTION_EPSILON,
) -> list[LatLng]:
    """All crossing points between two polylines, checking every pair of their edges."""

    points: list[LatLng] = []
    for a, b in zip(line1, line1[1:]):
        for c, d in zip(line2, line2[1:]):
            point = line_intersection(a, b, c, d, epsilon=epsilon)
            if point is not None:
                points.append(point)
    return points


def _near_any_vertex(point: LatLng, line: Sequence[LatLng], tolerance: float) -> bool:
    return any(
        abs(vertex[0] - point[0]) < tolerance and abs(vertex[1] - point[1]) < tolerance
        for vertex in line
    )


def split_line(
    line: Sequence[LatLng],
    intersections: Iterable[LatLng],
    *,
    vertex_tolerance: float = 1e-4,
) -> list[tuple[LatLng, ...]]:
    """Split a polyline at the vertices nearest to the junction points lying on it.

    Junction points are ordered by their projected distance along the line. Cuts never move
    backwards, so the pieces are contiguous and share exactly their boundary vertices.
    """

    on_line = [p for p in intersections if _near_any_vertex(p, line, vertex_tolerance)]
    ordered = sorted(on_line, key=lambda p: distance_along_line(line, p))

    pieces: list[tuple[LatLng, ...]] = []
    start = 0
    for point in ordered:
        cut = nearest_vertex_index(line, point)
        if cut > start:
            pieces.append(tuple(line[start : cut + 1]))
            start = cut
    if start < len(line) - 1:
        pieces.append(tuple(line[start:]))
    return pieces


def _is_degenerate(coordinates: Sequence[LatLng], node_precision: int) -> bool:
    """True when every point collapses onto one graph node, leaving the piece without edges."""

    return len({node_key(point, node_precision) for point in coordinates}) < 2


def content_hash_id(coordinates: Sequence[LatLng], precision: int = 6) -> str:
    text = "|".join(f"{lat:.{precision}f},{lng:.{precision}f}" for lat, lng in coordinates)
    return f"seg_{hashlib.sha1(text.encode('utf-8')).hexdigest()[:16]}"


def segment_id(
    coordinates: Sequence[LatLng],
    feature_id: Optional[str],
    index: int,
    *,
    precision: int = 6,
) -> str:
    if feature_id:
        return f"{feature_id}_seg_{index}"
    return content_hash_id(coordinates, precision)


def assemble_segments(
    features: Iterable[RoadFeature],
    prior_statuses: Optional[Mapping[str, RoadStatus | str]] = None,
    spec: Optional[AssemblySpec] = None,
) -> AssemblyResult:
    """Build the segment set from raw features, overlaying any known prior statuses.

    Malformed features are skipped one by one and reported through `AssemblyResult.stats`;
    they never abort the assembly of the rest.
    """

    spec = spec or AssemblySpec()
    prior_statuses = prior_statuses or {}
    result = AssemblyResult()
    stats = result.stats

    valid: list[RoadFeature] = []
    for feature in features:
        stats.input_features += 1
        reason = _malformed_reason(feature)
        if reason is not None:
            stats.skipped_malformed += 1
            logger.warning(
                "Skipping malformed road feature %s: %s.",
                feature.feature_id or "<unnamed>",
                reason,
            )
            continue
        valid.append(feature)

    lines = [feature.coordinates for feature in valid]
    boxes = [_bbox(line) for line in lines]
    junctions: list[list[LatLng]] = [[] for _ in valid]
    for i in range(len(lines)):
        for j in range(i + 1, len(lines)):
            if not _bboxes_overlap(boxes[i], boxes[j]):
                continue
            points = find_intersections(lines[i], lines[j], epsilon=spec.intersection_epsilon)
            if points:
                stats.intersections += len(points)
                junctions[i].extend(points)
                junctions[j].extend(points)

    seen_ids: set[str] = set()
    for feature, line, points in zip(valid, lines, junctions):
        index = 0
        for piece in split_line(line, points, vertex_tolerance=spec.vertex_tolerance_deg):
            if _is_degenerate(piece, spec.node_precision):
                stats.discarded_degenerate += 1
                continue
            seg_id = segment_id(piece, feature.feature_id, index, precision=spec.hash_precision)
            index += 1
            if seg_id in seen_ids:
                stats.skipped_duplicates += 1
                logger.warning("Duplicate segment id %s; keeping the first occurrence.", seg_id)
                continue
            seen_ids.add(seg_id)

            status = RoadStatus.PASSABLE
            if seg_id in prior_statuses:
                parsed = RoadStatus.parse(prior_statuses[seg_id])
                if parsed is None:
                    logger.warning(
                        "Ignoring unknown prior status %r for segment %s.",
                        prior_statuses[seg_id],
                        seg_id,
                    )
                else:
                    status = parsed
                    stats.prior_statuses_applied += 1

            result.segments.append(
                RoadSegment(
                    id=seg_id,
                    coordinates=piece,
                    status=status,
                    properties=dict(feature.properties),
                )
            )

    stats.segments = len(result.segments)
    logger.info(
        "Assembled %s segments from %s features (%s malformed, %s degenerate, %s junction points).",
        stats.segments,
        stats.input_features,
        stats.skipped_malformed,
        stats.discarded_degenerate,
        stats.intersections,
    )
    return result
