"""Tool registry and the built-in database tools."""

from __future__ import annotations

from .registry import RegisteredTool, ToolHandler, ToolRegistry

__all__ = [
    "RegisteredTool",
    "ToolHandler",
    "ToolRegistry",
]
