"""Input guards for the read-only safety contract.

Both guards run before any SQL is built or sent to the database.
"""

from __future__ import annotations

from mcp_pg_bridge.constants import Constants
from mcp_pg_bridge.exceptions import PolicyViolation

READ_ONLY_MESSAGE = "Read-only mode: only SELECT and WITH...SELECT queries are allowed."


def is_read_only(sql: str) -> bool:
    """Return True when the statement starts with SELECT or WITH.

    Prefix heuristic only: statements chained after a semicolon or hidden
    behind a leading comment are not detected.
    """
    normalized = sql.strip().upper()
    return normalized.startswith(Constants.READ_ONLY_PREFIXES)


def ensure_read_only(sql: str) -> None:
    """Raise PolicyViolation unless the SQL is a SELECT or WITH...SELECT."""
    if not is_read_only(sql):
        raise PolicyViolation(READ_ONLY_MESSAGE)


def ensure_identifier(value: str, *, kind: str = "table") -> str:
    """Validate a bare identifier that will be used in place of a bind value.

    Only ASCII letters, digits and underscore are accepted.
    """
    if not value or Constants.IDENTIFIER_PATTERN.fullmatch(value) is None:
        msg = f"Invalid {kind} name: '{value}'"
        raise PolicyViolation(msg)
    return value


def strip_trailing_semicolon(sql: str) -> str:
    s = sql.strip()
    return s.removesuffix(";").rstrip()
