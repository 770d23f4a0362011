from __future__ import annotations

from fastapi import APIRouter, Request

from passroute.api.schemas import RouteRequest, RouteResponse
from passroute.api.state import NetworkState
from passroute.routing.planner import LookupFailure, NoRoute, Route


router = APIRouter()


def network_state(request: Request) -> NetworkState:
    return request.app.state.network


@router.post("/route", response_model=RouteResponse)
def compute_route(body: RouteRequest, request: Request) -> RouteResponse:
    result = network_state(request).route(body.start, body.end, body.vehicle_mode, snap=body.snap)

    # No-route and lookup failures are answers, not HTTP errors.
    if isinstance(result, Route):
        return RouteResponse(
            outcome="route",
            path=result.path,
            distance_m=result.distance_m,
            eta_minutes=result.eta_minutes,
            cost=result.cost,
        )
    if isinstance(result, NoRoute):
        return RouteResponse(outcome="no_route", reason="no open road connects the two points")
    if isinstance(result, LookupFailure):
        return RouteResponse(outcome="lookup_failure", endpoint=result.endpoint, reason=result.reason)
    raise TypeError(f"unexpected route result: {result!r}")
