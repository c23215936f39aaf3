"""Protocol gateway: request dispatch and asynchronous result delivery.

``initialize`` is answered inline so capability negotiation never depends on
the push channel. Every other request is acknowledged immediately and
processed on its own asyncio task; the response, if any, is published to the
result channel with bounded retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.channel.broadcast import ResultChannel
from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.exceptions import BridgeError, ProtocolError
from mcp_pg_bridge.execute.store import ReadOnlyStore
from mcp_pg_bridge.gateway.delivery import DeliveryPolicy
from mcp_pg_bridge.models import (
    JsonRpcRequest,
    JsonRpcResponse,
    error_result,
    text_result,
)
from mcp_pg_bridge.tools.registry import ToolRegistry

_logger = get_logger(__name__)


class Method(StrEnum):
    """Methods the gateway understands."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

    @classmethod
    def parse(cls, name: str) -> Method | None:
        try:
            return cls(name)
        except ValueError:
            return None


def initialize_result() -> dict[str, Any]:
    """Server capability descriptor returned by ``initialize``."""
    return {
        "protocolVersion": Constants.PROTOCOL_VERSION,
        "capabilities": {"tools": {"listChanged": False}},
        "serverInfo": {"name": Constants.SERVER_NAME, "version": Constants.SERVER_VERSION},
    }


def _tool_call_params(params: Any) -> tuple[str, Mapping[str, Any]]:
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        msg = "Invalid params: 'params' must be an object"
        raise ProtocolError(msg)
    name = params.get("name", "")
    if not isinstance(name, str):
        msg = "Invalid params: 'name' must be a string"
        raise ProtocolError(msg)
    arguments = params.get("arguments")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        msg = "Invalid params: 'arguments' must be an object"
        raise ProtocolError(msg)
    return name, arguments


class Gateway:
    """Dispatches requests to tools and publishes their responses."""

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        store: ReadOnlyStore,
        channel: ResultChannel,
        delivery: DeliveryPolicy | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._channel = channel
        self._delivery = delivery or DeliveryPolicy()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def channel(self) -> ResultChannel:
        return self._channel

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # -- ingress ----------------------------------------------------------

    def submit(self, request: JsonRpcRequest) -> JsonRpcResponse | None:
        """Accept a request.

        Returns the response for ``initialize``; for every other method the
        request is scheduled and None is returned (the caller answers 202).
        Must be called from a running event loop.
        """
        if request.method == Method.INITIALIZE:
            _logger.info("Handling 'initialize' via direct HTTP response")
            return JsonRpcResponse(id=request.id, result=initialize_result())

        task = asyncio.create_task(self._process(request), name=f"rpc:{request.method}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return None

    async def drain(self) -> None:
        """Wait for every in-flight request task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            _logger.debug("Task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Task %s failed: %r", task.get_name(), exc)

    async def _process(self, request: JsonRpcRequest) -> None:
        response = await self.dispatch(request)
        if response is None:
            return
        delivered = await self._delivery.publish(self._channel, response.model_dump_json())
        if not delivered:
            _logger.warning(
                "Could not deliver %s (id=%r) via SSE (no client connected)",
                request.method,
                request.id,
            )

    # -- dispatch ---------------------------------------------------------

    async def dispatch(self, request: JsonRpcRequest) -> JsonRpcResponse | None:
        """Compute the response for ``request``; None means nothing is published."""
        method = Method.parse(request.method)
        if request.is_notification and method is not Method.INITIALIZED:
            _logger.debug("Dropping notification for %s", request.method)
            return None

        match method:
            case Method.INITIALIZED:
                return None
            case Method.INITIALIZE:
                result = initialize_result()
            case Method.PING:
                result = {}
            case Method.TOOLS_LIST:
                result = {"tools": [d.to_wire() for d in self._registry.descriptors()]}
            case Method.TOOLS_CALL:
                result = await self._call_tool(request.params)
            case _:
                result = error_result(f"Method {request.method} not supported")

        return JsonRpcResponse(id=request.id, result=result)

    async def _call_tool(self, params: Any) -> dict[str, Any]:
        try:
            name, arguments = _tool_call_params(params)
            tool = self._registry.resolve(name)
            text = await tool.handler(self._store, arguments)
        except BridgeError as exc:
            _logger.error("Tool call failed: %s", exc)
            return error_result(str(exc))
        except Exception as exc:
            _logger.exception("Tool call raised an unexpected error")
            return error_result(f"Internal error: {exc}")
        return text_result(text)
