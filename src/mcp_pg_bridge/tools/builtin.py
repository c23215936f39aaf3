"""Default tool set exposed by the bridge, in advertised order."""

from __future__ import annotations

from mcp_pg_bridge.tools import catalog, portfolio
from mcp_pg_bridge.tools.registry import ToolRegistry


def build_default_registry() -> ToolRegistry:
    """Register every built-in tool and freeze the registry."""
    registry = ToolRegistry()
    registry.register(catalog.SQL_READ_QUERY, catalog.sql_read_query)
    registry.register(catalog.LIST_TABLES, catalog.list_tables)
    registry.register(catalog.DESCRIBE_TABLE, catalog.describe_table)
    registry.register(portfolio.PORTFOLIO_PERFORMANCE, portfolio.portfolio_performance)
    registry.register(portfolio.AT_RISK_POSITIONS, portfolio.at_risk_positions)
    registry.register(portfolio.SECTOR_EXPOSURE, portfolio.sector_exposure)
    return registry.freeze()
