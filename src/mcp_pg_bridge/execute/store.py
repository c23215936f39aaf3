"""Shared read-only handle to the backing database.

Tool handlers receive a `ReadOnlyStore` instead of a raw engine. Every
database round trip runs on a worker thread so the event loop keeps
accepting requests while queries are in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.exceptions import UpstreamFailure
from mcp_pg_bridge.execute.guards import ensure_identifier
from mcp_pg_bridge.execute.shaping import ShapedResult, run_shaped_query, to_json_value

_logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TableEntry:
    """A table or view visible in the inspected schema."""

    name: str
    table_type: str


@dataclass(frozen=True, slots=True)
class ColumnEntry:
    """Column definition as reported by SQLAlchemy inspection."""

    name: str
    data_type: str
    nullable: bool
    default: str | None


@dataclass(frozen=True, slots=True)
class ReadOnlyStore:
    """Engine plus the shaping limits shared by all handler tasks."""

    engine: sa.Engine
    row_limit: int = Constants.MAX_ROWS
    schema: str | None = None

    async def fetch(self, sql: str, params: Mapping[str, object] | None = None) -> ShapedResult:
        """Run a read-only statement through the shaping engine off the event loop."""
        return await asyncio.to_thread(
            run_shaped_query,
            sql=sql,
            engine=self.engine,
            limit=self.row_limit,
            params=params,
        )

    async def list_tables(self) -> list[TableEntry]:
        """Tables and views of the configured schema, sorted by name."""
        return await asyncio.to_thread(self._list_tables_sync)

    async def describe_columns(self, table: str) -> list[ColumnEntry]:
        """Columns of ``table`` in ordinal order; empty when the table does not exist."""
        ensure_identifier(table)
        return await asyncio.to_thread(self._describe_columns_sync, table)

    # -- sync helpers -----------------------------------------------------

    def _list_tables_sync(self) -> list[TableEntry]:
        try:
            insp = sa.inspect(self.engine)
            tables = [TableEntry(t, "BASE TABLE") for t in insp.get_table_names(schema=self.schema)]
            views = [TableEntry(v, "VIEW") for v in insp.get_view_names(schema=self.schema)]
        except SQLAlchemyError as exc:
            _logger.warning("Table listing failed: %s", exc)
            msg = f"Database error: {exc}"
            raise UpstreamFailure(msg) from exc
        return sorted(tables + views, key=lambda e: (e.name, e.table_type))

    def _describe_columns_sync(self, table: str) -> list[ColumnEntry]:
        try:
            insp = sa.inspect(self.engine)
            columns = insp.get_columns(table, schema=self.schema)
        except NoSuchTableError:
            return []
        except SQLAlchemyError as exc:
            _logger.warning("Column inspection failed for %s: %s", table, exc)
            msg = f"Database error: {exc}"
            raise UpstreamFailure(msg) from exc
        out: list[ColumnEntry] = []
        for col in columns:
            default = col.get("default")
            out.append(
                ColumnEntry(
                    name=str(col["name"]),
                    data_type=str(col["type"]),
                    nullable=bool(col.get("nullable", True)),
                    default=None if default is None else str(to_json_value(default)),
                )
            )
        return out
