from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, ContextManager, Optional, Protocol

from passroute.ingestion.errors import FeedErrorInfo, StatusFeedError, classify_feed_error
from passroute.network.schemas import StatusUpdate
from passroute.reconcile.reconciler import StatusReconciler
from passroute.utils.time import utc_now


logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    def fetch_latest(self) -> list[StatusUpdate]: ...


@dataclass(frozen=True)
class FeedSyncResult:
    ok: bool
    synced_at: datetime
    received: int = 0
    changed: list[str] = field(default_factory=list)
    error: Optional[FeedErrorInfo] = None

    @property
    def degraded(self) -> bool:
        return not self.ok


def sync_status_feed(
    source: StatusSource,
    reconciler: StatusReconciler,
    *,
    lock: Optional[ContextManager] = None,
) -> FeedSyncResult:
    """Pull the latest statuses once and merge them into the reconciler.

    A feed failure leaves every segment at its last-known-good status and is reported as a
    degraded result instead of an exception, so routing keeps working on the current set.
    The fetch (including retries and backoff) runs without `lock`; only the merge holds it.
    """

    try:
        updates = source.fetch_latest()
    except StatusFeedError as exc:
        info = classify_feed_error(exc)
        logger.warning("Status feed unavailable (%s); keeping last-known statuses. %s", info.code, info.message)
        return FeedSyncResult(ok=False, synced_at=utc_now(), error=info)

    with lock if lock is not None else nullcontext():
        changed = reconciler.apply_updates(updates)
    if changed:
        logger.info("Status feed sync changed %s of %s segments.", len(changed), len(updates))
    return FeedSyncResult(ok=True, synced_at=utc_now(), received=len(updates), changed=changed)


def poll_status_feed(
    sync: Callable[[], FeedSyncResult],
    *,
    interval_seconds: float,
    max_iterations: Optional[int] = None,
    on_result: Optional[Callable[[FeedSyncResult], None]] = None,
) -> int:
    """Run `sync` repeatedly, sleeping between polls; returns the number of polls made.

    The limit is checked before sleeping, so the last poll returns immediately.
    """

    iterations = 0
    while max_iterations is None or iterations < max_iterations:
        result = sync()
        iterations += 1
        if on_result is not None:
            on_result(result)
        if max_iterations is not None and iterations >= max_iterations:
            break
        time.sleep(max(0.0, float(interval_seconds)))
    return iterations
