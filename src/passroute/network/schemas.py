from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from passroute.utils.time import parse_datetime, to_utc, utc_now

LatLng = tuple[float, float]


class RoadStatus(str, Enum):
    PASSABLE = "passable"
    RESTRICTED = "restricted"
    BLOCKED = "blocked"

    @classmethod
    def parse(cls, value: Any) -> Optional["RoadStatus"]:
        """Return the matching status, or None for anything that is not one of the three values."""

        if isinstance(value, cls):
            return value
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class VehicleMode(str, Enum):
    STANDARD = "standard"
    TALL = "tall"


@dataclass(frozen=True)
class RoadFeature:
    """A raw road polyline in `(lat, lng)` order with its original properties."""

    coordinates: tuple[LatLng, ...]
    properties: dict[str, Any] = field(default_factory=dict)
    feature_id: Optional[str] = None

    @property
    def classification(self) -> Optional[str]:
        value = self.properties.get("highway")
        return str(value) if value is not None else None

    @property
    def name(self) -> Optional[str]:
        value = self.properties.get("name")
        return str(value) if value is not None else None


@dataclass
class RoadSegment:
    id: str
    coordinates: tuple[LatLng, ...]
    status: RoadStatus = RoadStatus.PASSABLE
    properties: dict[str, Any] = field(default_factory=dict)


class StatusUpdate(BaseModel):
    """A single status event, from the external feed or from a local edit."""

    segment_id: str
    status: RoadStatus
    timestamp: datetime = Field(default_factory=utc_now)
    source: str = "feed"

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        parsed = RoadStatus.parse(value)
        return parsed if parsed is not None else value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_datetime(value)
        return value

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return to_utc(value)
