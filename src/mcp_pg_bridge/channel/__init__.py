"""Result channel and the SSE subscription endpoint built on it."""

from __future__ import annotations

from .broadcast import ResultChannel, Subscription
from .sse import KEEPALIVE_COMMENT, format_event, stream_results

__all__ = [
    "KEEPALIVE_COMMENT",
    "ResultChannel",
    "Subscription",
    "format_event",
    "stream_results",
]
