from __future__ import annotations

from fastapi import APIRouter, Request

from passroute.api.routes_route import network_state
from passroute.api.schemas import (
    FeedSyncResponse,
    StatusUpdateOutcome,
    StatusUpdatesRequest,
    StatusUpdatesResponse,
)
from passroute.ingestion.status_feed import StatusFeedClient
from passroute.network.schemas import StatusUpdate
from passroute.reconcile.reconciler import ReconcileOutcome
from passroute.utils.time import utc_now


router = APIRouter()


@router.post("/status/updates", response_model=StatusUpdatesResponse)
def push_status_updates(body: StatusUpdatesRequest, request: Request) -> StatusUpdatesResponse:
    updates = [
        StatusUpdate(
            segment_id=item.segment_id,
            status=item.status,
            timestamp=item.updated_at or utc_now(),
            source=item.source,
        )
        for item in body.updates
    ]
    outcomes = network_state(request).apply_updates(updates)
    changed: list[str] = []
    for segment_id, outcome in outcomes:
        if outcome is ReconcileOutcome.APPLIED and segment_id not in changed:
            changed.append(segment_id)
    return StatusUpdatesResponse(
        received=len(updates),
        changed=changed,
        outcomes=[StatusUpdateOutcome(segment_id=segment_id, outcome=outcome) for segment_id, outcome in outcomes],
    )


@router.post("/status/sync", response_model=FeedSyncResponse)
def sync_status_feed(request: Request) -> FeedSyncResponse:
    state = network_state(request)
    source = getattr(request.app.state, "feed_source", None)
    if source is not None:
        result = state.sync(source)
    else:
        client = StatusFeedClient(config=state.config)
        try:
            result = state.sync(client)
        finally:
            client.close()

    return FeedSyncResponse(
        ok=result.ok,
        synced_at=result.synced_at,
        received=result.received,
        changed=result.changed,
        error_code=result.error.code if result.error else None,
        error_message=result.error.message if result.error else None,
    )
