"""Container healthcheck: verify HTTP /health endpoint.

Uses stdlib only. Exit code 0 indicates healthy.
"""

from __future__ import annotations

import os
import sys
from urllib.request import Request, urlopen


def _url() -> str:
    port = os.getenv("MCP_PG_PORT", "3001")
    return f"http://127.0.0.1:{port}/health"


def main() -> int:
    try:
        req = Request(_url(), headers={"User-Agent": "mcp-pg-bridge/healthcheck"})  # noqa: S310
        with urlopen(req, timeout=4) as resp:  # noqa: S310 - fixed host/http
            if resp.status != 200:
                print(f"unexpected status: {resp.status}", file=sys.stderr)
                return 1
            body = resp.read().decode("utf-8").strip()
            if body != "OK":
                print(f"payload not healthy: {body!r}", file=sys.stderr)
                return 1
            return 0
    except Exception as exc:
        print(f"healthcheck error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - used by Docker
    raise SystemExit(main())
