"""Exception hierarchy for the bridge.

Every error raised while executing a tool call derives from `BridgeError`, so
the gateway can turn it into an `isError` result at the handler boundary.

Exception Categories:
- Policy violations for rejected user input (writes, bad identifiers, ranges)
- Lookup failures for unknown tools and tables
- Upstream failures surfaced from the database driver
- Protocol errors for malformed JSON-RPC payloads
- Channel errors for the in-process result transport
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for bridge operations.

    The string form of the exception is what clients see in the
    `content[0].text` field of an error result.
    """


class PolicyViolation(BridgeError):  # noqa: N818
    """Raised when input breaks the read-only safety contract.

    Examples:
    - a query that does not start with SELECT or WITH
    - a table identifier containing characters outside [A-Za-z0-9_]
    - a numeric argument outside its accepted range
    """


class NotFound(BridgeError):  # noqa: N818
    """Raised when a tool name or table cannot be resolved."""


class UpstreamFailure(BridgeError):
    """Raised when the database driver reports an error.

    Backing-store errors are never retried; the message is passed through.
    """


class ProtocolError(BridgeError):
    """Raised for unsupported methods or malformed request parameters."""


class ChannelClosedError(BridgeError):
    """Raised when publishing to or receiving from a closed result channel."""
