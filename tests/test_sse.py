from __future__ import annotations

import asyncio

from mcp_pg_bridge.channel.broadcast import ResultChannel
from mcp_pg_bridge.channel.sse import KEEPALIVE_COMMENT, format_event, stream_results


class _FakeRequest:
    def __init__(self) -> None:
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


def test_format_event() -> None:
    assert format_event('{"id":1}') == 'data: {"id":1}\n\n'
    assert format_event("a\nb", event="message") == "event: message\ndata: a\ndata: b\n\n"
    assert format_event("") == "data: \n\n"


def test_stream_yields_messages_then_keepalive() -> None:
    async def scenario() -> tuple[list[str], int]:
        channel = ResultChannel()
        request = _FakeRequest()
        stream = stream_results(request, channel.subscribe(), keepalive_seconds=0.01)
        channel.publish('{"id":"7"}')
        chunks = [await anext(stream), await anext(stream)]
        request.disconnected = True
        async for _ in stream:
            chunks.append("unexpected")
        return chunks, channel.subscriber_count

    chunks, remaining = asyncio.run(scenario())
    assert chunks == ['data: {"id":"7"}\n\n', KEEPALIVE_COMMENT]
    assert remaining == 0


def test_stream_ends_when_channel_closes() -> None:
    async def scenario() -> list[str]:
        channel = ResultChannel()
        stream = stream_results(_FakeRequest(), channel.subscribe(), keepalive_seconds=5.0)
        channel.publish("last")
        channel.close()
        return [chunk async for chunk in stream]

    assert asyncio.run(scenario()) == ["data: last\n\n"]


def test_closing_the_stream_unsubscribes() -> None:
    async def scenario() -> int:
        channel = ResultChannel()
        stream = stream_results(_FakeRequest(), channel.subscribe(), keepalive_seconds=5.0)
        channel.publish("one")
        await anext(stream)
        await stream.aclose()
        return channel.subscriber_count

    assert asyncio.run(scenario()) == 0
