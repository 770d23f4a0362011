from __future__ import annotations

import math

from passroute.network.assembly import AssemblySpec, assemble_segments, content_hash_id, split_line
from passroute.network.schemas import RoadFeature, RoadStatus


def _cross() -> list[RoadFeature]:
    horizontal = RoadFeature(
        coordinates=((0.0, 0.0), (0.0, 0.001), (0.0, 0.002)),
        properties={"highway": "primary", "name": "Main"},
        feature_id="r1",
    )
    vertical = RoadFeature(
        coordinates=((-0.001, 0.001), (0.0, 0.001), (0.001, 0.001)),
        properties={"highway": "residential"},
        feature_id="r2",
    )
    return [horizontal, vertical]


def test_crossing_roads_are_split_at_the_shared_vertex() -> None:
    result = assemble_segments(_cross())
    by_id = {segment.id: segment for segment in result.segments}

    assert sorted(by_id) == ["r1_seg_0", "r1_seg_1", "r2_seg_0", "r2_seg_1"]
    assert by_id["r1_seg_0"].coordinates == ((0.0, 0.0), (0.0, 0.001))
    assert by_id["r1_seg_1"].coordinates == ((0.0, 0.001), (0.0, 0.002))
    assert by_id["r2_seg_1"].coordinates == ((0.0, 0.001), (0.001, 0.001))
    assert all(segment.status is RoadStatus.PASSABLE for segment in result.segments)
    assert by_id["r1_seg_0"].properties["name"] == "Main"
    assert result.stats.segments == 4


def test_assembly_is_deterministic() -> None:
    first = assemble_segments(_cross())
    second = assemble_segments(_cross())
    assert [(s.id, s.coordinates) for s in first.segments] == [(s.id, s.coordinates) for s in second.segments]


def test_unidentified_features_get_content_hash_ids() -> None:
    feature = RoadFeature(coordinates=((1.0, 2.0), (1.0, 2.001)))
    result = assemble_segments([feature])
    expected = content_hash_id(feature.coordinates)

    assert [segment.id for segment in result.segments] == [expected]
    assert expected.startswith("seg_") and len(expected) == len("seg_") + 16
    # Differences below the hashing precision do not change the identifier.
    assert content_hash_id(((1.0000000001, 2.0), (1.0, 2.001))) == expected


def test_malformed_features_are_skipped_not_fatal(caplog) -> None:
    good = RoadFeature(coordinates=((0.0, 0.0), (0.0, 0.001)), feature_id="ok")
    malformed = [
        RoadFeature(coordinates=((0.0, 0.0),), feature_id="short"),
        RoadFeature(coordinates=((math.nan, 0.0), (0.0, 0.001)), feature_id="nan"),
        RoadFeature(coordinates=((95.0, 0.0), (0.0, 0.001)), feature_id="range"),
    ]
    result = assemble_segments([*malformed, good])

    assert [segment.id for segment in result.segments] == ["ok_seg_0"]
    assert result.stats.input_features == 4
    assert result.stats.skipped_malformed == 3
    assert "Skipping malformed road feature" in caplog.text


def test_degenerate_pieces_are_discarded() -> None:
    repeated = RoadFeature(coordinates=((0.0, 0.0), (0.0, 0.001), (0.0, 0.001)), feature_id="r1")
    crossing = RoadFeature(coordinates=((-0.001, 0.001), (0.001, 0.001)), feature_id="r2")
    result = assemble_segments([repeated, crossing])

    r1 = [segment for segment in result.segments if segment.id.startswith("r1_")]
    assert [segment.coordinates for segment in r1] == [((0.0, 0.0), (0.0, 0.001))]
    assert result.stats.discarded_degenerate == 1


def test_duplicate_ids_keep_first_occurrence() -> None:
    first = RoadFeature(coordinates=((0.0, 0.0), (0.0, 0.001)), feature_id="dup")
    second = RoadFeature(coordinates=((1.0, 0.0), (1.0, 0.001)), feature_id="dup")
    result = assemble_segments([first, second])

    assert [segment.coordinates for segment in result.segments] == [first.coordinates]
    assert result.stats.skipped_duplicates == 1


def test_prior_statuses_are_overlaid_and_bad_values_ignored() -> None:
    result = assemble_segments(
        _cross(),
        prior_statuses={"r1_seg_0": "blocked", "r1_seg_1": "flooded", "r2_seg_0": RoadStatus.RESTRICTED},
    )
    statuses = {segment.id: segment.status for segment in result.segments}

    assert statuses["r1_seg_0"] is RoadStatus.BLOCKED
    assert statuses["r1_seg_1"] is RoadStatus.PASSABLE
    assert statuses["r2_seg_0"] is RoadStatus.RESTRICTED
    assert result.stats.prior_statuses_applied == 2


def test_split_line_ignores_points_away_from_vertices() -> None:
    line = ((0.0, 0.0), (0.0, 0.01))
    # A crossing mid-edge is farther than the tolerance from every vertex.
    assert split_line(line, [(0.0, 0.005)]) == [line]


def test_split_line_orders_cuts_along_the_line() -> None:
    line = ((0.0, 0.0), (0.0, 0.001), (0.0, 0.002), (0.0, 0.003))
    pieces = split_line(line, [(0.0, 0.002), (0.0, 0.001)], vertex_tolerance=AssemblySpec().vertex_tolerance_deg)
    assert pieces == [line[0:2], line[1:3], line[2:4]]


def test_pieces_collapsing_to_one_graph_node_are_discarded() -> None:
    sliver = RoadFeature(coordinates=((0.0, 0.0), (0.0, 1e-12)), feature_id="sliver")
    result = assemble_segments([sliver])

    assert result.segments == []
    assert result.stats.discarded_degenerate == 1
    # A coarser node precision widens what counts as the same point.
    coarse = assemble_segments(
        [RoadFeature(coordinates=((0.0, 0.0), (0.0, 1e-7)), feature_id="short")],
        spec=AssemblySpec(node_precision=6),
    )
    assert coarse.segments == []
