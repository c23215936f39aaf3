"""Portfolio analytics tools.

Each tool runs a fixed query template through the shaping engine and then
derives display values (P&L, percentages) from the shaped rows. Queries
expect the tables ``holdings``, ``quotes``, ``signals`` and ``news``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any, Final

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.exceptions import PolicyViolation, ProtocolError
from mcp_pg_bridge.execute.shaping import JsonValue
from mcp_pg_bridge.execute.store import ReadOnlyStore
from mcp_pg_bridge.models import ToolDescriptor

_logger = get_logger(__name__)

DEFAULT_DRAWDOWN_THRESHOLD: Final[float] = 10.0
SENTIMENT_FLOOR: Final[float] = -0.5
SENTIMENT_WINDOW: Final[timedelta] = timedelta(days=7)

_LATEST_QUOTES = """
    latest AS (
        SELECT ticker, close,
               ROW_NUMBER() OVER (PARTITION BY ticker ORDER BY ts DESC) AS rn
        FROM quotes
    )"""

POSITIONS_SQL = f"""
WITH {_LATEST_QUOTES}
SELECT h.account, h.ticker, h.sector, h.quantity, h.avg_cost, l.close AS last_price
FROM holdings h
LEFT JOIN latest l ON l.ticker = h.ticker AND l.rn = 1
ORDER BY h.account, h.ticker
"""

SECTOR_SQL = f"""
WITH {_LATEST_QUOTES},
    positions AS (
        SELECT COALESCE(h.sector, 'Unknown') AS sector, h.quantity * l.close AS value
        FROM holdings h
        JOIN latest l ON l.ticker = h.ticker AND l.rn = 1
    )
SELECT sector, COUNT(*) AS positions, SUM(value) AS total_value
FROM positions
GROUP BY sector
ORDER BY total_value DESC, sector
"""

AT_RISK_SQL = f"""
WITH {_LATEST_QUOTES},
    sentiment AS (
        SELECT ticker, AVG(sentiment) AS avg_sentiment_7d
        FROM news
        WHERE published_at >= :since
        GROUP BY ticker
    ),
    latest_signal AS (
        SELECT ticker, rsi_14, sma_50, sma_200,
               ROW_NUMBER() OVER (PARTITION BY ticker ORDER BY ts DESC) AS rn
        FROM signals
    )
SELECT h.account, h.ticker, h.quantity, h.avg_cost, l.close AS last_price,
       s.avg_sentiment_7d, g.rsi_14, g.sma_50, g.sma_200
FROM holdings h
JOIN latest l ON l.ticker = h.ticker AND l.rn = 1
LEFT JOIN sentiment s ON s.ticker = h.ticker
LEFT JOIN latest_signal g ON g.ticker = h.ticker AND g.rn = 1
WHERE (h.avg_cost > 0 AND (l.close - h.avg_cost) * 100.0 / h.avg_cost <= :max_loss_pct)
   OR s.avg_sentiment_7d < :sentiment_floor
ORDER BY h.account, h.ticker
"""


def _num(val: JsonValue) -> float | None:
    if isinstance(val, bool) or not isinstance(val, int | float):
        return None
    return float(val)


def _round(val: float | None, digits: int = 2) -> float | None:
    return None if val is None else round(val, digits)


def _pnl(quantity: float | None, avg_cost: float | None, price: float | None) -> dict[str, Any]:
    cost_basis = quantity * avg_cost if quantity is not None and avg_cost is not None else None
    current_value = quantity * price if quantity is not None and price is not None else None
    pnl = (
        current_value - cost_basis
        if current_value is not None and cost_basis is not None
        else None
    )
    pnl_pct = pnl / cost_basis * 100.0 if pnl is not None and cost_basis else None
    return {
        "cost_basis": _round(cost_basis),
        "current_value": _round(current_value),
        "unrealized_pnl": _round(pnl),
        "pnl_pct": _round(pnl_pct),
    }


PORTFOLIO_PERFORMANCE = ToolDescriptor(
    name="portfolio_performance",
    description=(
        "Returns current holdings with unrealized P&L, current value, and cost basis per "
        "account. Uses latest available quote for each ticker."
    ),
)


async def portfolio_performance(store: ReadOnlyStore, _arguments: Mapping[str, Any]) -> str:
    shaped = await store.fetch(POSITIONS_SQL)
    rows: list[dict[str, JsonValue]] = []
    for row in shaped.rows:
        price = _num(row.get("last_price"))
        rows.append(
            {
                "account": row.get("account"),
                "ticker": row.get("ticker"),
                "sector": row.get("sector"),
                "quantity": row.get("quantity"),
                "avg_cost": row.get("avg_cost"),
                "last_price": price,
                **_pnl(_num(row.get("quantity")), _num(row.get("avg_cost")), price),
            }
        )
    return shaped.with_rows(rows).render()


SECTOR_EXPOSURE = ToolDescriptor(
    name="sector_exposure",
    description=(
        "Returns portfolio allocation by sector: number of positions, total value, and "
        "percentage of portfolio. Useful for concentration and rebalancing analysis."
    ),
)


async def sector_exposure(store: ReadOnlyStore, _arguments: Mapping[str, Any]) -> str:
    shaped = await store.fetch(SECTOR_SQL)
    total = sum(_num(r.get("total_value")) or 0.0 for r in shaped.rows)
    rows: list[dict[str, JsonValue]] = []
    for row in shaped.rows:
        value = _num(row.get("total_value")) or 0.0
        rows.append(
            {
                "sector": row.get("sector"),
                "positions": row.get("positions"),
                "total_value": round(value, 2),
                "pct_of_portfolio": round(value / total * 100.0, 2) if total else 0.0,
            }
        )
    return shaped.with_rows(rows).render()


AT_RISK_POSITIONS = ToolDescriptor(
    name="at_risk_positions",
    description=(
        "Returns positions flagged as at-risk: drawdown below threshold OR 7-day average news "
        "sentiment < -0.5. Also returns RSI and moving averages for context."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "drawdown_threshold": {
                "type": "number",
                "description": (
                    "Loss percentage threshold (default: 10.0 → flags positions down more "
                    "than 10%)"
                ),
            }
        },
        "required": [],
    },
)


def parse_drawdown_threshold(arguments: Mapping[str, Any]) -> float:
    """Read ``drawdown_threshold``; must be a number in (0, 100]."""
    raw = arguments.get("drawdown_threshold")
    if raw is None:
        return DEFAULT_DRAWDOWN_THRESHOLD
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        msg = "Argument 'drawdown_threshold' must be a number"
        raise ProtocolError(msg)
    threshold = float(raw)
    if not 0.0 < threshold <= 100.0:
        msg = f"drawdown_threshold must be between 0 and 100, got {threshold}"
        raise PolicyViolation(msg)
    return threshold


async def at_risk_positions(store: ReadOnlyStore, arguments: Mapping[str, Any]) -> str:
    threshold = parse_drawdown_threshold(arguments)
    since = datetime.now(UTC) - SENTIMENT_WINDOW
    _logger.info("at_risk_positions: threshold=%.2f", threshold)
    shaped = await store.fetch(
        AT_RISK_SQL,
        {
            "since": since,
            "max_loss_pct": -threshold,
            "sentiment_floor": SENTIMENT_FLOOR,
        },
    )
    rows: list[dict[str, JsonValue]] = []
    for row in shaped.rows:
        price = _num(row.get("last_price"))
        pnl = _pnl(_num(row.get("quantity")), _num(row.get("avg_cost")), price)
        sentiment = _num(row.get("avg_sentiment_7d"))
        reasons: list[JsonValue] = []
        if pnl["pnl_pct"] is not None and pnl["pnl_pct"] <= -threshold:
            reasons.append("drawdown")
        if sentiment is not None and sentiment < SENTIMENT_FLOOR:
            reasons.append("negative_sentiment")
        rows.append(
            {
                "account": row.get("account"),
                "ticker": row.get("ticker"),
                "last_price": price,
                "pnl_pct": pnl["pnl_pct"],
                "avg_sentiment_7d": _round(sentiment, 3),
                "rsi_14": _round(_num(row.get("rsi_14"))),
                "sma_50": _round(_num(row.get("sma_50"))),
                "sma_200": _round(_num(row.get("sma_200"))),
                "reasons": reasons,
            }
        )
    return shaped.with_rows(rows).render()
