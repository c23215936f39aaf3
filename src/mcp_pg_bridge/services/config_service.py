"""Configuration service for mcp-pg-bridge.

This module provides configuration management and database connection utilities
for the bridge. It centralizes environment variable handling (all variables use
the ``MCP_PG_`` prefix) and database engine creation.
"""

from __future__ import annotations

import os

import sqlalchemy as sa

from mcp_pg_bridge.constants import Constants

_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def _int_env(name: str, default: int, minimum: int) -> int:
    val = os.getenv(name, str(default))
    try:
        n = int(val)
    except ValueError:
        n = default
    return max(minimum, n)


class ConfigService:
    """Service for managing configuration and database connections."""

    @staticmethod
    def get_database_url() -> str:
        """Get database URL from the ``MCP_PG_DATABASE_URL`` environment variable.

        Returns:
            Database URL string, or a local PostgreSQL default when unset
        """
        return os.getenv("MCP_PG_DATABASE_URL") or Constants.DEFAULT_DATABASE_URL

    @staticmethod
    def create_database_engine(url: str) -> sa.Engine:
        """Create SQLAlchemy database engine.

        Args:
            url: Database connection URL

        Returns:
            SQLAlchemy Engine instance shared by all tool handlers
        """
        # Stale pooled connections are replaced transparently instead of
        # surfacing as tool errors after a database restart.
        return sa.create_engine(url, pool_pre_ping=True)

    # ---- HTTP listener ---------------------------------------------------
    @staticmethod
    def listen_host() -> str:
        """Interface the HTTP server binds to."""
        return os.getenv("MCP_PG_HOST") or Constants.DEFAULT_HOST

    @staticmethod
    def listen_port() -> int:
        """TCP port the HTTP server listens on."""
        port = _int_env("MCP_PG_PORT", Constants.DEFAULT_PORT, 1)
        return port if port <= 65535 else Constants.DEFAULT_PORT

    @staticmethod
    def log_level() -> str:
        """Log verbosity, upper-cased for the logging module."""
        level = os.getenv("MCP_PG_LOG", Constants.DEFAULT_LOG_LEVEL).strip().upper()
        return level if level in _LOG_LEVELS else Constants.DEFAULT_LOG_LEVEL.upper()

    # ---- Result size budgets ---------------------------------------------
    @staticmethod
    def result_row_limit() -> int:
        """Maximum number of rows a shaped result may hold."""
        return _int_env("MCP_PG_ROW_LIMIT", Constants.MAX_ROWS, 1)

    @staticmethod
    def database_schema() -> str | None:
        """Schema inspected by ``list_tables``/``describe_table``; None means the default."""
        return os.getenv("MCP_PG_SCHEMA") or None

    # ---- Result channel --------------------------------------------------
    @staticmethod
    def channel_capacity() -> int:
        """Per-subscriber buffer size of the result channel."""
        return _int_env("MCP_PG_CHANNEL_CAPACITY", Constants.DEFAULT_CHANNEL_CAPACITY, 1)

    @staticmethod
    def keepalive_seconds() -> float:
        """Idle interval after which the SSE stream emits a keep-alive comment."""
        val = os.getenv("MCP_PG_KEEPALIVE_SECONDS", str(Constants.DEFAULT_KEEPALIVE_SEC))
        try:
            n = float(val)
        except ValueError:
            n = Constants.DEFAULT_KEEPALIVE_SEC
        return n if n > 0 else Constants.DEFAULT_KEEPALIVE_SEC
