"""In-process broadcast channel for serialized responses.

Every subscriber owns a bounded queue. Publishing copies the message into
each queue that exists at publish time, so a subscriber only ever sees
messages published after it subscribed. A reader that falls behind loses
its oldest buffered messages rather than blocking publishers.

The channel is meant to be used from a single asyncio event loop.
"""

from __future__ import annotations

import asyncio
from types import TracebackType
from typing import Final

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.exceptions import ChannelClosedError

_logger = get_logger(__name__)

_CLOSED: Final[object] = object()


class Subscription:
    """A single reader attached to a `ResultChannel`."""

    def __init__(self, channel: ResultChannel, capacity: int) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[str | object] = asyncio.Queue(maxsize=capacity + 1)
        self._capacity = capacity
        self._closed = False
        self.lagged = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of buffered messages not yet received."""
        return self._queue.qsize()

    def _offer(self, message: str) -> None:
        # One slot is held back for the close marker.
        if self._queue.qsize() >= self._capacity:
            self._queue.get_nowait()
            self.lagged += 1
            _logger.warning("Subscriber lagging; dropped oldest message (total=%d)", self.lagged)
        self._queue.put_nowait(message)

    def _mark_closed(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def receive(self) -> str:
        """Wait for the next message.

        Raises:
            ChannelClosedError: the subscription or its channel has been closed
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker in place for any further receive() calls.
            self._queue.put_nowait(_CLOSED)
            msg = "Result channel closed"
            raise ChannelClosedError(msg)
        return str(item)

    def close(self) -> None:
        """Detach from the channel; buffered messages are discarded."""
        self._channel._unsubscribe(self)  # noqa: SLF001
        self._mark_closed()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class ResultChannel:
    """Bounded multi-producer, multi-subscriber broadcast transport."""

    def __init__(self, capacity: int = Constants.DEFAULT_CHANNEL_CAPACITY) -> None:
        if capacity < 1:
            msg = "capacity must be at least 1"
            raise ValueError(msg)
        self._capacity = capacity
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Attach a new reader that sees messages published from now on."""
        if self._closed:
            msg = "Result channel closed"
            raise ChannelClosedError(msg)
        sub = Subscription(self, self._capacity)
        self._subscribers.append(sub)
        _logger.debug("Subscriber attached (subscribers=%d)", len(self._subscribers))
        return sub

    def publish(self, message: str) -> int:
        """Broadcast ``message`` to current subscribers.

        Returns the number of subscribers reached. Zero is not an error: the
        message is simply never read.

        Raises:
            ChannelClosedError: the channel has been closed
        """
        if self._closed:
            msg = "Result channel closed"
            raise ChannelClosedError(msg)
        for sub in self._subscribers:
            sub._offer(message)  # noqa: SLF001
        return len(self._subscribers)

    def close(self) -> None:
        """Close the channel and wake every waiting subscriber."""
        if self._closed:
            return
        self._closed = True
        subscribers, self._subscribers = self._subscribers, []
        for sub in subscribers:
            sub._mark_closed()  # noqa: SLF001
        _logger.debug("Result channel closed (detached=%d)", len(subscribers))

    def _unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
            _logger.debug("Subscriber detached (subscribers=%d)", len(self._subscribers))
