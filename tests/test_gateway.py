from __future__ import annotations

import asyncio
from collections.abc import Mapping
import json
import random
from typing import Any

import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

from mcp_pg_bridge.channel.broadcast import ResultChannel, Subscription
from mcp_pg_bridge.execute.store import ReadOnlyStore
from mcp_pg_bridge.gateway.delivery import DeliveryPolicy
from mcp_pg_bridge.gateway.dispatcher import Gateway, Method
from mcp_pg_bridge.models import JsonRpcRequest, ToolDescriptor
from mcp_pg_bridge.tools.builtin import build_default_registry
from mcp_pg_bridge.tools.registry import ToolRegistry


def _mk_engine() -> sa.Engine:
    return sa.create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


def _mk_gateway(registry: ToolRegistry | None = None, engine: sa.Engine | None = None) -> Gateway:
    return Gateway(
        registry=registry or build_default_registry(),
        store=ReadOnlyStore(engine=engine or _mk_engine()),
        channel=ResultChannel(capacity=64),
        delivery=DeliveryPolicy(max_attempts=3, delay_seconds=0.0),
    )


def _call(name: str, arguments: dict[str, Any] | None = None, id_: Any = "1") -> JsonRpcRequest:
    return JsonRpcRequest(
        method="tools/call", id=id_, params={"name": name, "arguments": arguments or {}}
    )


async def _submit_and_collect(
    gateway: Gateway, sub: Subscription, *requests: JsonRpcRequest
) -> list[dict[str, Any]]:
    for req in requests:
        assert gateway.submit(req) is None
    await gateway.drain()
    return [json.loads(await sub.receive()) for _ in range(sub.pending())]


def _run(gateway: Gateway, *requests: JsonRpcRequest) -> list[dict[str, Any]]:
    async def scenario() -> list[dict[str, Any]]:
        with gateway.channel.subscribe() as sub:
            return await _submit_and_collect(gateway, sub, *requests)

    return asyncio.run(scenario())


def test_method_parse() -> None:
    assert Method.parse("tools/call") is Method.TOOLS_CALL
    assert Method.parse("resources/list") is None


def test_initialize_is_answered_synchronously() -> None:
    async def scenario() -> None:
        gateway = _mk_gateway()
        with gateway.channel.subscribe() as sub:
            response = gateway.submit(JsonRpcRequest(method="initialize", id=1))
            assert response is not None
            assert gateway.in_flight == 0
            assert sub.pending() == 0
        assert response.id == 1
        assert response.result["protocolVersion"] == "2024-11-05"
        assert response.result["serverInfo"]["name"] == "mcp-postgres"
        assert response.result["capabilities"] == {"tools": {"listChanged": False}}

    asyncio.run(scenario())


def test_tools_list_is_published() -> None:
    (msg,) = _run(_mk_gateway(), JsonRpcRequest(method="tools/list", id="a"))
    assert msg["jsonrpc"] == "2.0"
    assert msg["id"] == "a"
    names = [t["name"] for t in msg["result"]["tools"]]
    assert names[0] == "sql_read_query"
    assert "inputSchema" in msg["result"]["tools"][0]


def test_tools_list_is_byte_identical_across_calls() -> None:
    async def scenario() -> tuple[str, str]:
        gateway = _mk_gateway()
        with gateway.channel.subscribe() as sub:
            gateway.submit(JsonRpcRequest(method="tools/list", id=5))
            await gateway.drain()
            first = await sub.receive()
            gateway.submit(JsonRpcRequest(method="tools/list", id=5))
            await gateway.drain()
            return first, await sub.receive()

    first, second = asyncio.run(scenario())
    assert first == second


def test_notifications_publish_nothing() -> None:
    messages = _run(
        _mk_gateway(),
        JsonRpcRequest(method="notifications/initialized"),
        JsonRpcRequest(method="tools/list"),
        JsonRpcRequest(method="tools/call", params={"name": "list_tables"}),
    )
    assert messages == []


def test_initialized_notification_with_id_publishes_nothing() -> None:
    assert _run(_mk_gateway(), JsonRpcRequest(method="notifications/initialized", id=3)) == []


def test_ping() -> None:
    (msg,) = _run(_mk_gateway(), JsonRpcRequest(method="ping", id=9))
    assert msg == {"jsonrpc": "2.0", "id": 9, "result": {}}


def test_unsupported_method() -> None:
    (msg,) = _run(_mk_gateway(), JsonRpcRequest(method="resources/list", id=2))
    assert msg["result"]["isError"] is True
    assert msg["result"]["content"][0]["text"] == "Method resources/list not supported"


def test_write_query_is_rejected_without_touching_the_database() -> None:
    engine = _mk_engine()
    with engine.begin() as conn:
        conn.execute(sa.text("CREATE TABLE x(id INTEGER)"))

    (msg,) = _run(_mk_gateway(engine=engine), _call("sql_read_query", {"sql": "DROP TABLE x"}))

    assert msg["result"]["isError"] is True
    assert "Read-only mode" in msg["result"]["content"][0]["text"]
    assert "x" in sa.inspect(engine).get_table_names()


def test_unknown_tool_error_names_the_tool() -> None:
    (msg,) = _run(_mk_gateway(), _call("drop_everything", id_=11))
    assert msg["id"] == 11
    assert msg["result"]["isError"] is True
    assert "drop_everything" in msg["result"]["content"][0]["text"]


def test_successful_tool_call_wraps_text() -> None:
    (msg,) = _run(_mk_gateway(), _call("sql_read_query", {"sql": "SELECT 1 AS one"}))
    assert "isError" not in msg["result"]
    content = msg["result"]["content"]
    assert content[0]["type"] == "text"
    assert json.loads(content[0]["text"]) == [{"one": 1}]


def test_empty_query_returns_plain_text() -> None:
    (msg,) = _run(_mk_gateway(), _call("sql_read_query", {"sql": ""}))
    assert msg["result"]["content"][0]["text"] == "Query is empty"


def test_malformed_arguments_become_error_results() -> None:
    bad = JsonRpcRequest(
        method="tools/call", id=4, params={"name": "sql_read_query", "arguments": [1, 2]}
    )
    (msg,) = _run(_mk_gateway(), bad)
    assert msg["result"]["isError"] is True
    assert "arguments" in msg["result"]["content"][0]["text"]


def test_non_object_params_become_error_results() -> None:
    bad = JsonRpcRequest.model_validate(
        {"id": 5, "method": "tools/call", "params": ["sql_read_query"]}
    )
    (msg,) = _run(_mk_gateway(), bad)
    assert msg["id"] == 5
    assert msg["result"]["isError"] is True
    assert "'params' must be an object" in msg["result"]["content"][0]["text"]


def test_handler_crash_is_converted_to_error_result() -> None:
    async def boom(_store: ReadOnlyStore, _arguments: Mapping[str, Any]) -> str:
        raise RuntimeError("boom")

    registry = ToolRegistry()
    registry.register(ToolDescriptor(name="boom", description="fails"), boom)
    gateway = _mk_gateway(registry=registry.freeze())

    (msg,) = _run(gateway, _call("boom", id_="b"))

    assert msg["id"] == "b"
    assert msg["result"]["isError"] is True
    assert "boom" in msg["result"]["content"][0]["text"]
    assert gateway.in_flight == 0


def test_concurrent_calls_each_publish_one_response() -> None:
    async def echo(_store: ReadOnlyStore, arguments: Mapping[str, Any]) -> str:
        await asyncio.sleep(arguments["delay"])
        return str(arguments["n"])

    registry = ToolRegistry()
    registry.register(ToolDescriptor(name="echo", description="echo"), echo)
    gateway = _mk_gateway(registry=registry.freeze())
    rng = random.Random(42)
    requests = [
        _call("echo", {"n": n, "delay": rng.uniform(0, 0.02)}, id_=f"req-{n}") for n in range(25)
    ]

    messages = _run(gateway, *requests)

    assert len(messages) == 25
    by_id = {m["id"]: m["result"]["content"][0]["text"] for m in messages}
    assert by_id == {f"req-{n}": str(n) for n in range(25)}


def test_subscriber_receives_exactly_one_message_for_its_request() -> None:
    messages = _run(_mk_gateway(), JsonRpcRequest(method="tools/list", id="7"))
    assert [m["id"] for m in messages] == ["7"]


def test_undelivered_response_is_dropped_quietly() -> None:
    async def scenario() -> int:
        gateway = _mk_gateway()
        gateway.submit(JsonRpcRequest(method="tools/list", id=1))
        await gateway.drain()
        # A subscriber attaching afterwards sees nothing from the earlier request.
        with gateway.channel.subscribe() as sub:
            return sub.pending()

    assert asyncio.run(scenario()) == 0
