"""Authoritative in-memory segment set, updated by feed events and local edits.

Local edits win over the feed for a short while: after a user sets a status, feed updates
for that segment are dropped until the suppression window expires, so a feed snapshot
taken before the edit cannot visibly revert it. With `strategy="versioned"` the window is
replaced by a timestamp comparison: a feed update for a locally edited segment applies
only if it is newer than the edit.

All mutations replace a segment's `status` attribute in one assignment and happen on the
caller's thread; events are expected to be fed in one at a time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Literal, Optional

from passroute.network.schemas import RoadSegment, RoadStatus, StatusUpdate
from passroute.settings import AppConfig
from passroute.utils.time import to_utc, utc_now


logger = logging.getLogger(__name__)

StatusListener = Callable[[str, RoadStatus, RoadStatus], None]


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    SUPPRESSED = "suppressed"
    STALE = "stale"
    UNKNOWN_SEGMENT = "unknown_segment"


@dataclass
class _LocalEdit:
    monotonic_at: float
    timestamp: datetime


class StatusReconciler:
    def __init__(
        self,
        segments: Iterable[RoadSegment],
        *,
        suppression_window_seconds: float = 2.0,
        strategy: Literal["window", "versioned"] = "window",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if strategy not in ("window", "versioned"):
            raise ValueError(f"unknown reconciliation strategy: {strategy!r}")
        self._segments: dict[str, RoadSegment] = {segment.id: segment for segment in segments}
        self._window = max(0.0, float(suppression_window_seconds))
        self._strategy = strategy
        self._clock = clock
        self._local_edits: dict[str, _LocalEdit] = {}
        self._versions: dict[str, int] = {}
        self._latest: dict[str, StatusUpdate] = {}
        self._listeners: list[StatusListener] = []

    @classmethod
    def from_config(cls, segments: Iterable[RoadSegment], config: AppConfig, **kwargs) -> "StatusReconciler":
        return cls(
            segments,
            suppression_window_seconds=config.reconciler.suppression_window_ms / 1000.0,
            strategy=config.reconciler.strategy,
            **kwargs,
        )

    @property
    def segments(self) -> list[RoadSegment]:
        return list(self._segments.values())

    def get(self, segment_id: str) -> Optional[RoadSegment]:
        return self._segments.get(segment_id)

    def statuses(self) -> dict[str, RoadStatus]:
        return {segment_id: segment.status for segment_id, segment in self._segments.items()}

    def version(self, segment_id: str) -> int:
        return self._versions.get(segment_id, 0)

    def latest_update(self, segment_id: str) -> Optional[StatusUpdate]:
        return self._latest.get(segment_id)

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def is_pending(self, segment_id: str) -> bool:
        """True while a local edit on `segment_id` is still inside the suppression window."""

        edit = self._local_edits.get(segment_id)
        if edit is None:
            return False
        if self._clock() - edit.monotonic_at < self._window:
            return True
        del self._local_edits[segment_id]
        return False

    def _set_status(self, segment: RoadSegment, status: RoadStatus) -> None:
        old = segment.status
        segment.status = status
        for listener in self._listeners:
            listener(segment.id, old, status)

    def apply_local_edit(
        self,
        segment_id: str,
        status: RoadStatus | str,
        *,
        timestamp: Optional[datetime] = None,
    ) -> ReconcileOutcome:
        """Apply a user-initiated status change immediately and mark the segment pending."""

        segment = self._segments.get(segment_id)
        if segment is None:
            return ReconcileOutcome.UNKNOWN_SEGMENT
        new_status = RoadStatus(status)

        self._versions[segment_id] = self._versions.get(segment_id, 0) + 1
        self._local_edits[segment_id] = _LocalEdit(
            monotonic_at=self._clock(),
            timestamp=to_utc(timestamp) if timestamp is not None else utc_now(),
        )

        if segment.status is new_status:
            return ReconcileOutcome.UNCHANGED
        logger.debug("Local edit on %s: %s -> %s.", segment_id, segment.status.value, new_status.value)
        self._set_status(segment, new_status)
        return ReconcileOutcome.APPLIED

    def _blocked_by_local_edit(self, update: StatusUpdate) -> bool:
        if self._strategy == "window":
            return self.is_pending(update.segment_id)
        edit = self._local_edits.get(update.segment_id)
        return edit is not None and update.timestamp <= edit.timestamp

    def apply_update(self, update: StatusUpdate) -> ReconcileOutcome:
        """Merge one feed event; only a real status change mutates the segment."""

        segment = self._segments.get(update.segment_id)
        if segment is None:
            return ReconcileOutcome.UNKNOWN_SEGMENT

        previous = self._latest.get(update.segment_id)
        if previous is not None and update.timestamp < previous.timestamp:
            return ReconcileOutcome.STALE
        self._latest[update.segment_id] = update

        if self._blocked_by_local_edit(update):
            logger.debug("Suppressed %s update for locally edited segment %s.", update.source, update.segment_id)
            return ReconcileOutcome.SUPPRESSED

        if segment.status is update.status:
            return ReconcileOutcome.UNCHANGED

        logger.debug(
            "Feed update on %s: %s -> %s (%s).",
            update.segment_id,
            segment.status.value,
            update.status.value,
            update.source,
        )
        self._set_status(segment, update.status)
        return ReconcileOutcome.APPLIED

    def apply_updates(self, updates: Iterable[StatusUpdate]) -> list[str]:
        """Apply events one at a time and return the IDs whose status actually changed."""

        changed: list[str] = []
        for update in updates:
            if self.apply_update(update) is ReconcileOutcome.APPLIED:
                changed.append(update.segment_id)
        return changed
