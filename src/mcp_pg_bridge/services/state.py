"""Process-wide state shared by the HTTP routes.

The bundle is built once at startup (or injected by tests) and passed to
the Starlette app explicitly; nothing here is a hidden module global.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import sqlalchemy as sa

from mcp_pg_bridge.channel.broadcast import ResultChannel
from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.execute.store import ReadOnlyStore
from mcp_pg_bridge.gateway.delivery import DeliveryPolicy
from mcp_pg_bridge.gateway.dispatcher import Gateway
from mcp_pg_bridge.services.config_service import ConfigService
from mcp_pg_bridge.tools.builtin import build_default_registry
from mcp_pg_bridge.tools.registry import ToolRegistry


@dataclass(frozen=True)
class BridgeState:
    """Engine, channel and gateway owned by one running server."""

    engine: sa.Engine
    channel: ResultChannel
    gateway: Gateway
    keepalive_seconds: float = Constants.DEFAULT_KEEPALIVE_SEC
    owns_engine: bool = field(default=False, compare=False)

    @classmethod
    def build(
        cls,
        engine: sa.Engine,
        *,
        registry: ToolRegistry | None = None,
        row_limit: int = Constants.MAX_ROWS,
        schema: str | None = None,
        channel_capacity: int = Constants.DEFAULT_CHANNEL_CAPACITY,
        keepalive_seconds: float = Constants.DEFAULT_KEEPALIVE_SEC,
        delivery: DeliveryPolicy | None = None,
        owns_engine: bool = False,
    ) -> BridgeState:
        channel = ResultChannel(capacity=channel_capacity)
        gateway = Gateway(
            registry=registry or build_default_registry(),
            store=ReadOnlyStore(engine=engine, row_limit=row_limit, schema=schema),
            channel=channel,
            delivery=delivery,
        )
        return cls(
            engine=engine,
            channel=channel,
            gateway=gateway,
            keepalive_seconds=keepalive_seconds,
            owns_engine=owns_engine,
        )

    @classmethod
    def from_config(cls) -> BridgeState:
        """Build state from ``MCP_PG_*`` environment settings."""
        engine = ConfigService.create_database_engine(ConfigService.get_database_url())
        return cls.build(
            engine,
            row_limit=ConfigService.result_row_limit(),
            schema=ConfigService.database_schema(),
            channel_capacity=ConfigService.channel_capacity(),
            keepalive_seconds=ConfigService.keepalive_seconds(),
            owns_engine=True,
        )

    async def shutdown(self) -> None:
        """Finish in-flight requests, close the channel, release the pool."""
        await self.gateway.drain()
        self.channel.close()
        if self.owns_engine:
            self.engine.dispose()
