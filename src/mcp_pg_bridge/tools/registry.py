"""Registry mapping tool names to handlers and descriptors.

The registry is filled once at startup, then frozen. After that it is only
read, so concurrent handler tasks can share it without locking.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from fastmcp.utilities.logging import get_logger

from mcp_pg_bridge.exceptions import NotFound
from mcp_pg_bridge.execute.store import ReadOnlyStore
from mcp_pg_bridge.models import ToolDescriptor

_logger = get_logger(__name__)

ToolHandler = Callable[[ReadOnlyStore, Mapping[str, Any]], Awaitable[str]]


@dataclass(frozen=True, slots=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry:
    """Name → tool map preserving declaration order."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        self._frozen = False

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        """Add a tool.

        Raises:
            RuntimeError: the registry has been frozen
            ValueError: a tool with the same name already exists
        """
        if self._frozen:
            msg = f"Cannot register '{descriptor.name}': registry is frozen"
            raise RuntimeError(msg)
        if descriptor.name in self._tools:
            msg = f"Duplicate tool name: '{descriptor.name}'"
            raise ValueError(msg)
        self._tools[descriptor.name] = RegisteredTool(descriptor=descriptor, handler=handler)
        _logger.debug("Registered tool %s", descriptor.name)

    def freeze(self) -> ToolRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, name: str) -> RegisteredTool:
        try:
            return self._tools[name]
        except KeyError:
            msg = f"Unknown tool: {name}"
            raise NotFound(msg) from None

    def descriptors(self) -> tuple[ToolDescriptor, ...]:
        """All descriptors in declaration order."""
        return tuple(t.descriptor for t in self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[RegisteredTool]:
        return iter(self._tools.values())
