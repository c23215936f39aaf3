"""Server-Sent Events stream over a result channel subscription."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.channel.broadcast import Subscription
from mcp_pg_bridge.exceptions import ChannelClosedError

_logger = get_logger(__name__)

KEEPALIVE_COMMENT = ": keep-alive\n\n"


class DisconnectCheck(Protocol):
    """The part of a Starlette request the stream needs."""

    async def is_disconnected(self) -> bool: ...


def format_event(data: str, event: str | None = None) -> str:
    """Encode one SSE event; multi-line payloads become several ``data:`` lines."""
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


async def stream_results(
    request: DisconnectCheck,
    subscription: Subscription,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """Yield channel messages as SSE events until the client goes away.

    Emits a keep-alive comment whenever no message arrived for
    ``keepalive_seconds``. The subscription is closed on every exit path.
    """
    _logger.info("SSE client connected")
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                message = await asyncio.wait_for(subscription.receive(), timeout=keepalive_seconds)
            except TimeoutError:
                yield KEEPALIVE_COMMENT
                continue
            except ChannelClosedError:
                break
            yield format_event(message)
    finally:
        subscription.close()
        _logger.info("SSE client disconnected")
