"""Bounded-retry publishing of responses onto the result channel."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.channel.broadcast import ResultChannel
from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.exceptions import ChannelClosedError

_logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryPolicy:
    """Fixed attempt count with a fixed pause between attempts.

    An attempt counts as delivered when at least one subscriber received the
    message. Zero subscribers and a closed channel both trigger a retry.
    """

    max_attempts: int = Constants.PUBLISH_MAX_ATTEMPTS
    delay_seconds: float = Constants.PUBLISH_RETRY_DELAY_SEC

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)
        if self.delay_seconds < 0:
            msg = "delay_seconds must not be negative"
            raise ValueError(msg)

    async def publish(self, channel: ResultChannel, message: str) -> bool:
        """Try to publish ``message``; return False once every attempt failed."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                if channel.publish(message) > 0:
                    return True
            except ChannelClosedError:
                _logger.debug("Publish attempt %d hit a closed channel", attempt)
            if attempt < self.max_attempts:
                await asyncio.sleep(self.delay_seconds)
        return False
