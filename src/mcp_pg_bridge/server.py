"""Starlette application for mcp-pg-bridge.

Routes:
- ``GET /health``: liveness check
- ``GET /sse``: Server-Sent Events stream of published responses
- ``POST /messages`` (also ``POST /sse``): JSON-RPC ingress
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp.utilities.logging import get_logger
from pydantic import ValidationError
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.routing import Route

from mcp_pg_bridge.channel.sse import stream_results
from mcp_pg_bridge.exceptions import ChannelClosedError
from mcp_pg_bridge.models import JsonRpcErrorBody, JsonRpcErrorResponse, JsonRpcRequest
from mcp_pg_bridge.services.state import BridgeState

# Load environment variables
dotenv.load_dotenv()

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def _check_connection(engine: sa.Engine) -> None:
    _logger.info("Connecting to database...")
    with engine.connect() as conn:
        conn.execute(sa.text("SELECT 1"))
    _logger.info("Database connection pool established")


def _bridge(request: Request) -> BridgeState:
    return request.app.state.bridge


def _protocol_error(code: int, message: str) -> JSONResponse:
    body = JsonRpcErrorResponse(error=JsonRpcErrorBody(code=code, message=message))
    return JSONResponse(body.model_dump(mode="json"), status_code=400)


# -- Routes ----------------------------------------------------------------
async def health_check(_request: Request) -> PlainTextResponse:
    return PlainTextResponse("OK")


async def sse_stream(request: Request) -> Response:
    bridge = _bridge(request)
    try:
        subscription = bridge.channel.subscribe()
    except ChannelClosedError:
        return PlainTextResponse("Server shutting down", status_code=503)
    return StreamingResponse(
        stream_results(request, subscription, bridge.keepalive_seconds),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def post_message(request: Request) -> Response:
    try:
        payload = await request.json()
    except ValueError as exc:
        _logger.warning("Rejected undecodable request body: %s", exc)
        return _protocol_error(PARSE_ERROR, "Parse error")
    try:
        rpc_request = JsonRpcRequest.model_validate(payload)
    except ValidationError as exc:
        _logger.warning("Rejected invalid request: %s", exc.errors()[0].get("msg", exc))
        return _protocol_error(INVALID_REQUEST, "Invalid Request")

    response = _bridge(request).gateway.submit(rpc_request)
    if response is not None:
        return JSONResponse(response.model_dump(mode="json"))
    return Response(status_code=202)


# -- Application factory ---------------------------------------------------
def create_app(state: BridgeState | None = None) -> Starlette:
    """Build the HTTP application.

    When ``state`` is None the lifespan builds it from the environment and
    verifies the database connection before serving.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None]:
        bridge = state
        if bridge is None:
            bridge = BridgeState.from_config()
            try:
                await asyncio.to_thread(_check_connection, bridge.engine)
            except SQLAlchemyError:
                _logger.exception("Failed to connect to the database")
                raise
        app.state.bridge = bridge
        _logger.info("Bridge ready (%d tools)", len(bridge.gateway.registry))
        try:
            yield
        finally:
            _logger.info("Shutting down bridge")
            await bridge.shutdown()

    app = Starlette(
        routes=[
            Route("/health", health_check, methods=["GET"]),
            Route("/sse", sse_stream, methods=["GET"]),
            Route("/sse", post_message, methods=["POST"]),
            Route("/messages", post_message, methods=["POST"]),
        ],
        lifespan=lifespan,
    )
    if state is not None:
        app.state.bridge = state
    return app


app = create_app()
