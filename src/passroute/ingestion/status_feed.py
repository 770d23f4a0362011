"""Pollable road-status feed client.

The feed is an HTTP endpoint answering with the status history (or just the latest rows)
as JSON records `{segment_id, status, updated_at}`, either as a bare array or wrapped in
`{"value": [...]}`. The engine only needs "the latest status per segment", so every
response is reduced with pandas to one row per segment before it reaches the reconciler.

External services fail routinely (timeouts, 5xx, rate limits), so requests are retried
with exponential backoff and `Retry-After` support before a `StatusFeedError` is raised.
"""

from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import pandas as pd

from passroute.ingestion.errors import InvalidFeedPayload, StatusFeedError
from passroute.network.schemas import RoadStatus, StatusUpdate
from passroute.settings import AppConfig, get_config
from passroute.utils.time import utc_now


logger = logging.getLogger(__name__)

VALID_STATUSES = frozenset(status.value for status in RoadStatus)


@dataclass(frozen=True)
class FeedCleanStats:
    input_rows: int
    output_rows: int
    dropped_missing_ids: int
    dropped_invalid_status: int
    dropped_invalid_timestamp: int
    dropped_superseded: int


def latest_status_by_segment(
    records: pd.DataFrame,
    *,
    segment_id_column: str = "segment_id",
    status_column: str = "status",
    time_column: str = "updated_at",
) -> tuple[pd.DataFrame, FeedCleanStats]:
    """Reduce status records to the most recent valid row per segment.

    Guarantees (when output is non-empty):
    - `segment_id_column` is a non-empty string
    - `status_column` is one of passable / restricted / blocked
    - `time_column` is UTC-aware datetime64 (NaT only when the input had no time column)
    - one row per segment; ties on time keep the row that came last in the input
    """

    columns = [segment_id_column, status_column, time_column]
    if records.empty:
        empty = pd.DataFrame(columns=columns)
        return empty, FeedCleanStats(0, 0, 0, 0, 0, 0)

    missing = sorted({segment_id_column, status_column} - set(records.columns))
    if missing:
        raise ValueError(f"Status records are missing required columns: {missing}")

    df = records.copy()
    input_rows = int(len(df))
    has_time = time_column in df.columns

    df[segment_id_column] = df[segment_id_column].astype("string").str.strip()
    df[segment_id_column] = df[segment_id_column].replace("", pd.NA)
    before = int(len(df))
    df = df.dropna(subset=[segment_id_column])
    dropped_missing_ids = before - int(len(df))

    df[status_column] = df[status_column].astype("string").str.strip().str.lower()
    before = int(len(df))
    df = df[df[status_column].isin(VALID_STATUSES).fillna(False)]
    dropped_invalid_status = before - int(len(df))

    dropped_invalid_timestamp = 0
    if has_time:
        df[time_column] = pd.to_datetime(df[time_column], errors="coerce", utc=True, format="ISO8601")
        before = int(len(df))
        df = df.dropna(subset=[time_column])
        dropped_invalid_timestamp = before - int(len(df))
    else:
        df[time_column] = pd.NaT

    before = int(len(df))
    if has_time:
        df = df.sort_values(time_column, kind="mergesort")
    df = df.drop_duplicates(subset=[segment_id_column], keep="last")
    dropped_superseded = before - int(len(df))

    df = df[columns].sort_values(segment_id_column, kind="mergesort").reset_index(drop=True)
    stats = FeedCleanStats(
        input_rows=input_rows,
        output_rows=int(len(df)),
        dropped_missing_ids=dropped_missing_ids,
        dropped_invalid_status=dropped_invalid_status,
        dropped_invalid_timestamp=dropped_invalid_timestamp,
        dropped_superseded=dropped_superseded,
    )
    return df, stats


def updates_from_frame(
    latest: pd.DataFrame,
    *,
    source: str = "feed",
    segment_id_column: str = "segment_id",
    status_column: str = "status",
    time_column: str = "updated_at",
) -> list[StatusUpdate]:
    updates: list[StatusUpdate] = []
    for record in latest.to_dict(orient="records"):
        timestamp = record.get(time_column)
        if timestamp is None or pd.isna(timestamp):
            timestamp = utc_now()
        elif isinstance(timestamp, pd.Timestamp):
            timestamp = timestamp.to_pydatetime()
        updates.append(
            StatusUpdate(
                segment_id=str(record[segment_id_column]),
                status=str(record[status_column]),
                timestamp=timestamp,
                source=source,
            )
        )
    return updates


class StatusFeedClient:
    """HTTP client for the road-status feed.

    Owns an `httpx.Client` unless one is injected; call `close()` when done.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or get_config()
        feed = self.config.feed
        headers = {"accept": "application/json"}
        token = os.getenv(feed.token_env) if feed.token_env else None
        if token:
            headers["authorization"] = f"Bearer {token}"
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(
            base_url=feed.base_url,
            timeout=feed.request_timeout_seconds,
            headers=headers,
        )
        self.last_stats: Optional[FeedCleanStats] = None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    @staticmethod
    def _parse_retry_after_seconds(value: Optional[str]) -> Optional[float]:
        """Parse a Retry-After header given in seconds; HTTP-date values are ignored."""

        if not value:
            return None
        try:
            seconds = float(value.strip())
        except ValueError:
            return None
        return seconds if seconds >= 0 else None

    def _compute_backoff_seconds(self, attempt: int, retry_after_seconds: Optional[float]) -> float:
        feed = self.config.feed
        delay = float(feed.retry_backoff_seconds) * (float(feed.backoff_multiplier) ** attempt)
        delay = min(float(feed.max_backoff_seconds), max(0.0, delay))
        if delay > 0:
            delay += random.uniform(0.0, delay * 0.1)
        if feed.respect_retry_after and retry_after_seconds is not None:
            delay = max(delay, retry_after_seconds)
        return delay

    @staticmethod
    def _is_retryable_status(status_code: int) -> bool:
        return status_code in {408, 429, 500, 502, 503, 504}

    @staticmethod
    def _extract_items(payload: Any) -> list[dict[str, Any]]:
        if isinstance(payload, list):
            return [item for item in payload if isinstance(item, dict)]
        if isinstance(payload, dict) and isinstance(payload.get("value"), list):
            return [item for item in payload["value"] if isinstance(item, dict)]
        raise InvalidFeedPayload(f"Unexpected status feed payload type: {type(payload).__name__}")

    def fetch_records(self) -> list[dict[str, Any]]:
        """GET the feed endpoint and return its raw record dicts."""

        max_retries = max(0, int(self.config.feed.max_retries))
        last_error: Optional[Exception] = None
        for attempt in range(max_retries + 1):
            try:
                response = self._http.get(self.config.feed.endpoint)
                response.raise_for_status()
                return self._extract_items(response.json())
            except InvalidFeedPayload:
                raise
            except httpx.HTTPStatusError as exc:
                last_error = exc
                status = int(exc.response.status_code)
                if not self._is_retryable_status(status) or attempt >= max_retries:
                    break
                delay = self._compute_backoff_seconds(
                    attempt,
                    self._parse_retry_after_seconds(exc.response.headers.get("retry-after")),
                )
                logger.warning(
                    "Status feed request failed (%s). Retrying in %.2fs (attempt %s/%s).",
                    status,
                    delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(delay)
            except (httpx.TransportError, ValueError) as exc:
                last_error = exc
                if attempt >= max_retries:
                    break
                delay = self._compute_backoff_seconds(attempt, None)
                logger.warning(
                    "Status feed request error (%s). Retrying in %.2fs (attempt %s/%s).",
                    type(exc).__name__,
                    delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(delay)

        raise StatusFeedError(f"Status feed request failed after retries: {last_error}") from last_error

    def fetch_latest(self) -> list[StatusUpdate]:
        """Latest status per segment, as `StatusUpdate` events ready for the reconciler."""

        records = self.fetch_records()
        try:
            latest, stats = latest_status_by_segment(pd.DataFrame.from_records(records))
        except ValueError as exc:
            raise InvalidFeedPayload(str(exc)) from exc
        self.last_stats = stats
        dropped = stats.dropped_missing_ids + stats.dropped_invalid_status + stats.dropped_invalid_timestamp
        if dropped:
            logger.warning("Dropped %s invalid status feed records out of %s.", dropped, stats.input_rows)
        return updates_from_frame(latest, source="feed")
