"""PdfGate FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan — @asynccontextmanager startup/shutdown sequence
  - /health router — delegated to pdfgate/health.py
  - /        route  — service discovery root
  - app = create_app() — module-level instance for uvicorn

Configuration is loaded in create_app() rather than in the lifespan: the CORS
policy and body size cap are middleware options, and middleware cannot be
added once the app has started.

Startup sequence:
  1. upload rate limit pushed into the limiter
  2. marker catalogue logged (auditable at every start)
  3. create_http_client()    → app.state.http_client
  4. ScanLatencyTracker()    → app.state.latency_tracker
  5. app.state.ready = True

Shutdown sequence (reverse):
  app.state.ready = False → close shared HTTP client
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pdfgate import __version__
from pdfgate.config import Config, load_config
from pdfgate.constants import MULTIPART_OVERHEAD_BYTES
from pdfgate.health import router as health_router
from pdfgate.models.responses import REJECTED_HEADER, SCAN_ID_HEADER, build_error_response
from pdfgate.proxy.engine import router as upload_router
from pdfgate.proxy.forwarder import create_http_client
from pdfgate.proxy.limiter import limiter, set_upload_rate_limit
from pdfgate.proxy.middleware import BodySizeLimitMiddleware
from pdfgate.scanner.definitions import describe_catalogue
from pdfgate.utils.health import ScanLatencyTracker
from pdfgate.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
# Configure logging at module import time (before any other imports that may log).
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "PdfGate is starting up.",
            },
        )


# ─── Rate limit handler ───────────────────────────────────────────────────────


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """HTTP 429 in the shared error body shape.

    Synchronous: SlowAPIMiddleware calls the registered handler without awaiting it.
    """
    logger.warning("upload_rate_limited", path=str(request.url.path), limit=str(exc.detail))
    return build_error_response(
        429,
        "Too many uploads. Please try again later.",
        f"Rate limit exceeded: {exc.detail}",
    )


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "PdfGate",
        "version": __version__,
        "upload": "/api/upload",
        "health": "/health",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("PdfGate starting up...")

    config: Config = app.state.config

    set_upload_rate_limit(config.upload.rate_limit)

    logger.info(
        "Marker catalogue loaded",
        catalogue=describe_catalogue(),
        max_file_bytes=config.upload.max_file_bytes,
        rate_limit=config.upload.rate_limit,
    )

    # Single shared client with connection pooling — NEVER per request.
    http_client: httpx.AsyncClient = create_http_client(config.downstream.timeout_s)
    app.state.http_client = http_client
    logger.info(
        "HTTP client created",
        downstream=config.downstream.upload_url,
        timeout_s=config.downstream.timeout_s,
    )

    app.state.latency_tracker = ScanLatencyTracker()

    app.state.ready = True
    logger.info("PdfGate ready", host=config.server.host, port=config.server.port)

    yield

    logger.info("PdfGate shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
        logger.info("HTTP client closed")
    except Exception as exc:
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    logger.info("PdfGate shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the PdfGate FastAPI application.

    Call this function directly in tests to get an isolated app instance:
        app = create_app(Config.defaults())

    Args:
        config: Configuration to use. Loaded via load_config() when omitted
                (raises SystemExit on an invalid config file).

    Returns:
        Configured FastAPI application with lifespan, routers, and middleware.
    """
    if config is None:
        config = load_config()

    # OpenAPI docs expose the full schema; only served with DEBUG=true.
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="PdfGate",
        description="PDF upload screening proxy",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    application.state.config = config
    # /health returns 503 for any request that arrives before startup completes.
    application.state.ready = False

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # NOTE: In Starlette, the LAST-added middleware is OUTERMOST (runs first).
    # Order, outermost first: CORS → body cap → rate limit → routes. CORS wraps
    # everything so 400/413/429 responses still carry Access-Control-Allow-Origin.
    application.add_middleware(SlowAPIMiddleware)

    application.add_middleware(
        BodySizeLimitMiddleware,
        max_bytes=config.upload.max_file_bytes + MULTIPART_OVERHEAD_BYTES,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.allow_origins,
        allow_credentials=config.cors.allow_credentials,
        allow_methods=config.cors.allow_methods,
        allow_headers=config.cors.allow_headers,
        expose_headers=[SCAN_ID_HEADER, REJECTED_HEADER],
    )

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(upload_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        if isinstance(exc.detail, dict):
            message = exc.detail.get("message", "Request failed")
            details = exc.detail
        else:
            message = str(exc.detail)
            details = None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": message, "details": details},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500,
            content={"error": True, "message": "Internal server error", "details": None},
        )

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────
#   uvicorn pdfgate.main:app --host 127.0.0.1 --port 3005

app = create_app()
