"""Protocol gateway package.

Exports the dispatcher, its method set and the delivery policy.
"""

from __future__ import annotations

from .delivery import DeliveryPolicy
from .dispatcher import Gateway, Method, initialize_result

__all__ = [
    "DeliveryPolicy",
    "Gateway",
    "Method",
    "initialize_result",
]
