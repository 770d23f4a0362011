from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from passroute.network.schemas import RoadStatus, VehicleMode
from passroute.reconcile.reconciler import ReconcileOutcome


class RouteRequest(BaseModel):
    start: tuple[float, float] = Field(description="(lat, lng)")
    end: tuple[float, float] = Field(description="(lat, lng)")
    vehicle_mode: VehicleMode = VehicleMode.STANDARD
    snap: bool = False


class RouteResponse(BaseModel):
    outcome: Literal["route", "no_route", "lookup_failure"]
    path: list[tuple[float, float]] = Field(default_factory=list)
    distance_m: Optional[float] = None
    eta_minutes: Optional[float] = None
    cost: Optional[float] = None
    endpoint: Optional[Literal["start", "end"]] = None
    reason: Optional[str] = None


class SegmentOut(BaseModel):
    id: str
    status: RoadStatus
    coordinates: list[tuple[float, float]]
    name: Optional[str] = None
    highway: Optional[str] = None
    pending: bool = False


class StatusEditRequest(BaseModel):
    status: RoadStatus


class StatusEditResponse(BaseModel):
    segment_id: str
    status: RoadStatus
    outcome: ReconcileOutcome


class StatusUpdateIn(BaseModel):
    segment_id: str
    status: RoadStatus
    updated_at: Optional[datetime] = None
    source: str = "push"


class StatusUpdatesRequest(BaseModel):
    updates: list[StatusUpdateIn] = Field(default_factory=list)


class StatusUpdateOutcome(BaseModel):
    segment_id: str
    outcome: ReconcileOutcome


class StatusUpdatesResponse(BaseModel):
    received: int
    changed: list[str] = Field(default_factory=list)
    outcomes: list[StatusUpdateOutcome] = Field(default_factory=list)


class FeedSyncResponse(BaseModel):
    ok: bool
    synced_at: datetime
    received: int = 0
    changed: list[str] = Field(default_factory=list)
    error_code: Optional[str] = None
    error_message: Optional[str] = None
