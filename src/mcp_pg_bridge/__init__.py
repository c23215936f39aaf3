"""mcp-pg-bridge package.

Bridges JSON-RPC tool calls received over HTTP to read-only database
operations and pushes the results to Server-Sent Events subscribers.
"""

from mcp_pg_bridge.channel import ResultChannel
from mcp_pg_bridge.execute import ReadOnlyStore, ShapedResult
from mcp_pg_bridge.gateway import DeliveryPolicy, Gateway
from mcp_pg_bridge.models import JsonRpcRequest, JsonRpcResponse, ToolDescriptor
from mcp_pg_bridge.services import BridgeState, ConfigService
from mcp_pg_bridge.tools import ToolRegistry

__all__ = [  # noqa: RUF022
    # Core models
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ShapedResult",
    "ToolDescriptor",
    # Components
    "DeliveryPolicy",
    "Gateway",
    "ReadOnlyStore",
    "ResultChannel",
    "ToolRegistry",
    # Services
    "BridgeState",
    "ConfigService",
]
