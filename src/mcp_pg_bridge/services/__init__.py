"""Services package for mcp-pg-bridge.

Main Components:
- ConfigService: Configuration and database connection management
- BridgeState: Engine, result channel and gateway owned by a running server
"""

from .config_service import ConfigService
from .state import BridgeState

__all__ = [
    "BridgeState",
    "ConfigService",
]
