"""Query safety and shaping package.

Exports the read-only guards, the shaping runner and the shared store handle.
"""

from __future__ import annotations

from .guards import ensure_identifier, ensure_read_only, is_read_only, strip_trailing_semicolon
from .shaping import ShapedResult, run_shaped_query, wrap_query
from .store import ColumnEntry, ReadOnlyStore, TableEntry

__all__ = [
    "ColumnEntry",
    "ReadOnlyStore",
    "ShapedResult",
    "TableEntry",
    "ensure_identifier",
    "ensure_read_only",
    "is_read_only",
    "run_shaped_query",
    "strip_trailing_semicolon",
    "wrap_query",
]
