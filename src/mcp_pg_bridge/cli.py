"""Command-line entrypoint for the mcp-pg-bridge HTTP server.

Reads listener and log settings from ``MCP_PG_*`` environment variables
(a ``.env`` file is honored) and serves the Starlette app with uvicorn.
"""

from __future__ import annotations

import traceback

from fastmcp.utilities.logging import configure_logging, get_logger
import uvicorn

from mcp_pg_bridge.services.config_service import ConfigService

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)


def main() -> None:
    """Start the bridge server via CLI."""
    # Importing the server loads .env before any setting is read.
    from mcp_pg_bridge.server import app  # noqa: PLC0415

    level = ConfigService.log_level()
    configure_logging(level=level)  # pyright: ignore[reportArgumentType]
    host = ConfigService.listen_host()
    port = ConfigService.listen_port()
    _logger.info("MCP PostgreSQL Bridge starting on %s:%d", host, port)
    try:
        uvicorn.run(app, host=host, port=port, log_level=level.lower())
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")
    except Exception:  # noqa: BLE001
        traceback.print_exc(limit=1)


if __name__ == "__main__":
    # Delegate to main() so behavior is consistent across execution paths.
    main()
