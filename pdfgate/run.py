"""Programmatic uvicorn entry point for PdfGate.

Reads host and port from the loaded config (127.0.0.1:3005 by default) and
starts uvicorn with hardened defaults:

  --limit-concurrency 100  Max 100 concurrent connections; HTTP 503 when exceeded
  --backlog 50             OS connection queue depth
  --timeout-keep-alive 5   Reduces the Slow Loris window

Usage:
    python -m pdfgate.run
    pdfgate                    # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import os

import uvicorn

from pdfgate.config import load_config

# Must stay ≤ POOL_MAX_CONNECTIONS in pdfgate/proxy/forwarder.py.
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the PdfGate server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "pdfgate.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
