"""Result shaping for read-only queries.

This module provides a small, dependency-injected runner that:
- Enforces the SELECT/WITH-only policy
- Wraps the statement so at most ``limit`` rows come back
- Converts every row into a JSON-safe object, preserving row order
- Flags truncation when the row count reaches the cap
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
import datetime as dt
from decimal import Decimal
import json
import time
from typing import Any
import uuid

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.exceptions import UpstreamFailure
from mcp_pg_bridge.execute.guards import ensure_read_only, strip_trailing_semicolon

_logger = get_logger(__name__)

JsonValue = str | int | float | bool | None | list[Any] | dict[str, Any]


@dataclass(frozen=True, slots=True)
class ShapedResult:
    """Row-oriented query output bounded by ``limit``.

    ``truncated`` is set whenever the row count equals the cap. A result that
    happens to contain exactly ``limit`` rows is reported as truncated too,
    since no extra row is fetched to tell the two cases apart.
    """

    rows: tuple[dict[str, JsonValue], ...]
    truncated: bool
    limit: int

    def with_rows(self, rows: Iterable[dict[str, JsonValue]]) -> ShapedResult:
        """Return a copy carrying derived rows and the original truncation flag."""
        return replace(self, rows=tuple(rows))

    def to_json(self) -> str:
        return json.dumps(list(self.rows), indent=2, ensure_ascii=False)

    def render(self) -> str:
        """Pretty JSON array, followed by a notice when the cap was reached."""
        payload = self.to_json()
        if self.truncated:
            notice = Constants.TRUNCATION_NOTICE.format(limit=self.limit)
            return f"{payload}\n\n{notice}"
        return payload


def to_json_value(val: object) -> JsonValue:
    """Convert a single driver value to something ``json.dumps`` accepts."""
    if val is None or isinstance(val, str | bool | int | float):
        return val
    if isinstance(val, Decimal):
        return float(val)
    if isinstance(val, dt.datetime | dt.date | dt.time):
        return val.isoformat()
    if isinstance(val, dt.timedelta):
        return val.total_seconds()
    if isinstance(val, uuid.UUID):
        return str(val)
    if isinstance(val, bytes | bytearray | memoryview):
        return bytes(val).hex()
    if isinstance(val, Mapping):
        return {str(k): to_json_value(v) for k, v in val.items()}
    if isinstance(val, list | tuple):
        return [to_json_value(v) for v in val]
    return str(val)


def _shape_rows(rows: Iterable[sa.RowMapping], limit: int) -> list[dict[str, JsonValue]]:
    out: list[dict[str, JsonValue]] = []
    for i, row in enumerate(rows):
        if i >= limit:
            break
        out.append({str(col): to_json_value(val) for col, val in row.items()})
    return out


def wrap_query(sql: str, limit: int) -> str:
    """Wrap a validated statement so the database applies the row cap."""
    return f"SELECT * FROM ({strip_trailing_semicolon(sql)}) AS q LIMIT {int(limit)}"


def run_shaped_query(
    *,
    sql: str,
    engine: sa.Engine,
    limit: int = Constants.MAX_ROWS,
    params: Mapping[str, object] | None = None,
) -> ShapedResult:
    """Execute a read-only statement and shape its rows.

    Raises:
        PolicyViolation: the statement is not SELECT/WITH; the database is not touched
        UpstreamFailure: the driver reported an error
    """
    ensure_read_only(sql)
    wrapped = wrap_query(sql, limit)
    if params is None:
        # Free-form SQL: every colon is literal text, never a bind marker.
        statement = sa.text(wrapped.replace(":", "\\:"))
    else:
        statement = sa.text(wrapped).bindparams(
            *(sa.bindparam(key, value) for key, value in params.items())
        )

    start = time.perf_counter()
    try:
        with engine.connect() as conn:
            result = conn.execute(statement)
            rows = _shape_rows(result.mappings(), limit)
    except SQLAlchemyError as exc:
        _logger.warning("Query failed: %s", exc)
        msg = f"Database error: {exc}"
        raise UpstreamFailure(msg) from exc

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    truncated = len(rows) == limit
    _logger.debug(
        "Query finished (elapsed_ms=%.1f, rows_returned=%d, truncated=%s)",
        elapsed_ms,
        len(rows),
        truncated,
    )
    return ShapedResult(rows=tuple(rows), truncated=truncated, limit=limit)
