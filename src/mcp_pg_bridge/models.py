"""Pydantic models for the JSON-RPC wire format.

Minimal models for what the bridge reads and writes: incoming requests,
outgoing responses, tool descriptors and tool results.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mcp_pg_bridge.constants import Constants

RequestId = str | int | None

# -----------------------
# JSON-RPC envelope
# -----------------------


class JsonRpcRequest(BaseModel):
    """A request or notification received on ``POST /messages``."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = Field(default=Constants.JSONRPC_VERSION, description="Protocol marker")
    method: str = Field(description="Method name, e.g. 'tools/call'")
    id: RequestId = Field(
        default=None, description="Correlation token; absent or null marks a notification"
    )
    params: Any = Field(
        default=None, description="Method parameters; checked by the method that reads them"
    )

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcResponse(BaseModel):
    """A response published on the result channel (or returned for initialize)."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: str = Constants.JSONRPC_VERSION
    id: RequestId = None
    result: dict[str, Any]


class JsonRpcErrorBody(BaseModel):
    """Transport-level error returned synchronously for undecodable bodies."""

    code: int
    message: str


class JsonRpcErrorResponse(BaseModel):
    jsonrpc: str = Constants.JSONRPC_VERSION
    id: RequestId = None
    error: JsonRpcErrorBody


# -----------------------
# Tools
# -----------------------


class ToolDescriptor(BaseModel):
    """Name, description and input contract advertised by ``tools/list``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    description: str
    input_schema: dict[str, Any] = Field(
        alias="inputSchema",
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def text_result(text: str) -> dict[str, Any]:
    """Successful tool result carrying a single text block."""
    return {"content": [{"type": "text", "text": text}]}


def error_result(message: str) -> dict[str, Any]:
    """Failed tool result; clients must check ``isError``, not the HTTP status."""
    return {"isError": True, "content": [{"type": "text", "text": message}]}
