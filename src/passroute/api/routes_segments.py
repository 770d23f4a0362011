from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from passroute.api.routes_route import network_state
from passroute.api.schemas import SegmentOut, StatusEditRequest, StatusEditResponse
from passroute.network.schemas import RoadSegment, RoadStatus
from passroute.reconcile.reconciler import ReconcileOutcome


router = APIRouter()


def _segment_out(segment: RoadSegment, pending: bool) -> SegmentOut:
    name = segment.properties.get("name")
    highway = segment.properties.get("highway")
    return SegmentOut(
        id=segment.id,
        status=segment.status,
        coordinates=list(segment.coordinates),
        name=str(name) if name is not None else None,
        highway=str(highway) if highway is not None else None,
        pending=pending,
    )


@router.get("/segments", response_model=list[SegmentOut])
def list_segments(
    request: Request,
    status: Optional[RoadStatus] = Query(default=None),
) -> list[SegmentOut]:
    reconciler = network_state(request).reconciler
    segments = reconciler.segments
    if status is not None:
        segments = [segment for segment in segments if segment.status is status]
    return [_segment_out(segment, reconciler.is_pending(segment.id)) for segment in segments]


@router.get("/segments/{segment_id}", response_model=SegmentOut)
def get_segment(segment_id: str, request: Request) -> SegmentOut:
    state = network_state(request)
    segment = state.segment(segment_id)
    if segment is None:
        raise HTTPException(status_code=404, detail=f"segment not found: {segment_id}")
    return _segment_out(segment, state.reconciler.is_pending(segment_id))


@router.put("/segments/{segment_id}/status", response_model=StatusEditResponse)
def edit_segment_status(segment_id: str, body: StatusEditRequest, request: Request) -> StatusEditResponse:
    outcome = network_state(request).local_edit(segment_id, body.status)
    if outcome is ReconcileOutcome.UNKNOWN_SEGMENT:
        raise HTTPException(status_code=404, detail=f"segment not found: {segment_id}")
    return StatusEditResponse(segment_id=segment_id, status=body.status, outcome=outcome)
