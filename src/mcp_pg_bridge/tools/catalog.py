"""Generic database tools: free-form read queries and schema introspection."""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.exceptions import NotFound, ProtocolError
from mcp_pg_bridge.execute.store import ReadOnlyStore
from mcp_pg_bridge.models import ToolDescriptor

_logger = get_logger(__name__)
MAX_QUERY_DISPLAY = 100


def _string_arg(arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        msg = f"Argument '{key}' must be a string"
        raise ProtocolError(msg)
    return value


SQL_READ_QUERY = ToolDescriptor(
    name="sql_read_query",
    description=(
        "Execute a read-only SELECT query on the PostgreSQL database. Returns a JSON array. "
        "Only SELECT and WITH...SELECT are allowed."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "sql": {
                "type": "string",
                "description": "A valid SELECT or WITH...SELECT SQL query",
            }
        },
        "required": ["sql"],
    },
)


async def sql_read_query(store: ReadOnlyStore, arguments: Mapping[str, Any]) -> str:
    sql = _string_arg(arguments, "sql")
    if not sql.strip():
        return "Query is empty"
    preview = sql[:MAX_QUERY_DISPLAY] + ("..." if len(sql) > MAX_QUERY_DISPLAY else "")
    _logger.info("sql_read_query: %s", preview)
    shaped = await store.fetch(sql)
    return shaped.render()


LIST_TABLES = ToolDescriptor(
    name="list_tables",
    description="List all tables in the database (public schema).",
)


async def list_tables(store: ReadOnlyStore, _arguments: Mapping[str, Any]) -> str:
    entries = await store.list_tables()
    result = [{"table": e.name, "type": e.table_type} for e in entries]
    return json.dumps(result, indent=2)


DESCRIBE_TABLE = ToolDescriptor(
    name="describe_table",
    description="Get column definitions (name, type, nullable, default) for a given table.",
    input_schema={
        "type": "object",
        "properties": {
            "table": {
                "type": "string",
                "description": "Table name (e.g. 'quotes', 'holdings', 'signals')",
            }
        },
        "required": ["table"],
    },
)


async def describe_table(store: ReadOnlyStore, arguments: Mapping[str, Any]) -> str:
    table = _string_arg(arguments, "table")
    columns = await store.describe_columns(table)
    if not columns:
        msg = f"Table '{table}' not found in public schema."
        raise NotFound(msg)
    result = [
        {
            "column": c.name,
            "type": c.data_type,
            "nullable": c.nullable,
            "default": c.default,
        }
        for c in columns
    ]
    return json.dumps(result, indent=2)
