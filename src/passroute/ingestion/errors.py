from __future__ import annotations

from dataclasses import dataclass

import httpx


@dataclass(frozen=True)
class FeedErrorInfo:
    code: str
    kind: str
    message: str


class StatusFeedError(RuntimeError):
    """Raised when the status feed fails after retries or returns an unexpected shape."""


class InvalidFeedPayload(StatusFeedError):
    """The feed answered, but the body is not a list of status records."""


def classify_feed_error(exc: BaseException) -> FeedErrorInfo:
    """Classify status-feed failures into stable codes for logs and sync results."""

    # Client errors wrap the last transport/HTTP error as their cause.
    root: BaseException = exc
    if isinstance(exc, StatusFeedError) and not isinstance(exc, InvalidFeedPayload) and exc.__cause__ is not None:
        root = exc.__cause__

    text = str(exc)
    lower = str(root).lower()

    if isinstance(exc, InvalidFeedPayload):
        return FeedErrorInfo(code="invalid_payload", kind="data", message=text)

    if isinstance(root, httpx.HTTPStatusError):
        status = int(root.response.status_code)
        if status == 429:
            return FeedErrorInfo(code="rate_limited", kind="http", message=f"HTTP 429 rate limited: {text}")
        if status in {401, 403}:
            return FeedErrorInfo(code="auth", kind="http", message=f"HTTP {status} auth error: {text}")
        return FeedErrorInfo(code=f"http_{status}", kind="http", message=f"HTTP {status}: {text}")

    if isinstance(root, httpx.TimeoutException):
        return FeedErrorInfo(code="timeout", kind="network", message=text)

    if isinstance(root, httpx.ConnectError):
        if "name or service not known" in lower or "temporary failure in name resolution" in lower:
            return FeedErrorInfo(code="dns", kind="network", message=text)
        return FeedErrorInfo(code="connect_error", kind="network", message=text)

    if isinstance(root, httpx.TransportError):
        return FeedErrorInfo(code="transport_error", kind="network", message=text)

    return FeedErrorInfo(code="unknown", kind="unknown", message=text)
