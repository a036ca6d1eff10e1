"""Health endpoint for PdfGate.

  GET /health — 503 before ``app.state.ready`` is set, 200 with scanner and
                downstream status afterwards.

Polled by container health probes and uptime monitors.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from pdfgate.config import Config
from pdfgate.utils.health import ScanLatencyTracker, check_scanner_health

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check endpoint.

    Response body (200):
        {
          "status": "ok" | "degraded",
          "scanner": "healthy" | "error",
          "avg_scan_ms": 0.0,
          "p99_scan_ms": 0.0,
          "scans_recorded": 0,
          "verdicts": {"allowed": 0, "high-risk": 0, ...},
          "downstream_configured": true
        }

    ``status`` is "degraded" when the scanner has failed closed since startup
    or no downstream CMS is configured.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "PdfGate is starting up.",
            },
        )

    config: Config = request.app.state.config
    latency_tracker: Optional[ScanLatencyTracker] = getattr(
        request.app.state, "latency_tracker", None
    )
    scanner_health = check_scanner_health(latency_tracker)
    downstream_configured = config.downstream.upload_url is not None

    return {
        "status": "ok" if scanner_health.healthy and downstream_configured else "degraded",
        "scanner": "healthy" if scanner_health.healthy else "error",
        "avg_scan_ms": round(scanner_health.avg_latency_ms, 3),
        "p99_scan_ms": round(scanner_health.p99_latency_ms, 3),
        "scans_recorded": scanner_health.scans_recorded,
        "verdicts": scanner_health.verdicts,
        "downstream_configured": downstream_configured,
    }
