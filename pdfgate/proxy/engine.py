"""Upload handler — POST /api/upload.

Request flow for one upload:
  1. BodySizeLimitMiddleware has already capped the raw body (413).
  2. Parse multipart; the file must be in the configured field (default
     ``files``) → 400 "No file uploaded" otherwise.
  3. Declared MIME type must be in ``upload.allowed_mime_types`` → 400.
  4. File size ≤ ``upload.max_file_bytes`` → 413 otherwise.
  5. scan_or_reject() — REJECT → 400 with X-PdfGate-Rejected: true;
     the CMS is NEVER contacted for a rejected file.
  6. forward_upload() — the CMS response (status, body, content-type) is
     returned verbatim, including CMS 4xx/5xx.

Failure mode separation:
  - REJECT verdict → HTTP 400 with X-PdfGate-Rejected: true.
  - httpx.TransportError (connect, timeout, protocol) → HTTP 502, never
    X-PdfGate-Rejected.
  - Downstream not configured / invalid URL → HTTP 500 configuration error.

Every response carries ``X-PdfGate-Scan-ID`` (ULID) for log correlation.
"""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import APIRouter, Request, Response
from starlette.datastructures import UploadFile

from pdfgate.config import Config
from pdfgate.models.responses import (
    SCAN_ID_HEADER,
    build_downstream_unavailable_response,
    build_error_response,
    build_rejection_response,
)
from pdfgate.models.scan import ScanInput
from pdfgate.proxy.forwarder import DownstreamNotConfigured, forward_upload
from pdfgate.proxy.headers import build_client_response_headers, build_downstream_headers
from pdfgate.proxy.limiter import limiter, upload_rate_limit
from pdfgate.scanner.safe_scan import scan_or_reject
from pdfgate.utils.logger import PerformanceLogger, bind_scan_id, get_logger, unbind_scan_id
from pdfgate.utils.ulid import generate_ulid

logger = get_logger(__name__)

router = APIRouter(tags=["upload"])

# Used when the multipart part carries no filename.
DEFAULT_FILENAME: str = "upload.pdf"


@router.post("/api/upload")
@limiter.limit(upload_rate_limit)
async def upload_handler(request: Request) -> Response:
    """Screen one PDF upload and relay it to the CMS if it passes.

    Readiness gate is enforced as a router-level dependency (``require_ready``)
    registered in create_app().
    """
    scan_id: str = generate_ulid()
    bind_scan_id(scan_id)
    try:
        return await _handle_upload(request, scan_id)
    finally:
        unbind_scan_id()


async def _handle_upload(request: Request, scan_id: str) -> Response:
    config: Config = request.app.state.config
    http_client: httpx.AsyncClient = request.app.state.http_client

    # ── Multipart ingress ─────────────────────────────────────────────────────
    form = await request.form()
    try:
        upload = form.get(config.upload.field_name)
        if not isinstance(upload, UploadFile):
            logger.info("upload_missing_file", field=config.upload.field_name)
            return build_error_response(400, "No file uploaded", "Upload failed", scan_id)

        content_type: Optional[str] = upload.content_type
        if content_type not in config.upload.allowed_mime_types:
            logger.info("upload_wrong_type", content_type=content_type, filename=upload.filename)
            return build_error_response(400, "Only PDF files are allowed", "Upload failed", scan_id)

        # Read one byte past the limit so an oversized file is detected without
        # buffering more than necessary.
        max_bytes = config.upload.max_file_bytes
        buffer: bytes = await upload.read(max_bytes + 1)
        if len(buffer) > max_bytes:
            logger.warning("upload_too_large", limit=max_bytes, filename=upload.filename)
            return build_error_response(
                413,
                f"File too large. Maximum size: {max_bytes} bytes",
                "payload_too_large",
                scan_id,
            )

        scan_input = ScanInput(buffer=buffer, filename=upload.filename or DEFAULT_FILENAME)
    finally:
        await form.close()

    logger.info("upload_received", filename=scan_input.filename, size=scan_input.size)

    # ── Scan gate ─────────────────────────────────────────────────────────────
    verdict = await scan_or_reject(
        scan_input.buffer,
        scan_id=scan_id,
        latency_tracker=getattr(request.app.state, "latency_tracker", None),
    )

    if not verdict.allowed:
        logger.info(
            "upload_rejected",
            filename=scan_input.filename,
            reason=verdict.label,
            markers=list(verdict.markers),
        )
        return build_rejection_response(verdict, scan_id)

    # ── Forward to the CMS ────────────────────────────────────────────────────
    downstream_headers = build_downstream_headers(request.headers.items(), scan_id)

    try:
        with PerformanceLogger("downstream_upload", logger, warn_after_ms=5000):
            downstream_response = await forward_upload(
                http_client,
                config.downstream,
                scan_input,
                downstream_headers,
                field_name=config.upload.field_name,
            )
    except DownstreamNotConfigured:
        logger.error("downstream_not_configured")
        return build_error_response(
            500, "Internal configuration error", "downstream_not_configured", scan_id
        )
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
        logger.error(
            "invalid_downstream_url",
            downstream_url=config.downstream.upload_url,
            error=str(exc),
        )
        return build_error_response(500, "Internal configuration error", "config_error", scan_id)
    except httpx.TransportError as exc:
        # Connectivity failure — NOT a security rejection.
        logger.warning(
            "downstream_unavailable",
            downstream_url=config.downstream.upload_url,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return build_downstream_unavailable_response(scan_id=scan_id, reason=type(exc).__name__)

    log = logger.info if downstream_response.status_code < 400 else logger.warning
    log(
        "upload_forwarded",
        filename=scan_input.filename,
        status_code=downstream_response.status_code,
    )

    response = Response(
        content=downstream_response.content,
        status_code=downstream_response.status_code,
    )
    for name, value in build_client_response_headers(downstream_response.headers):
        response.headers.append(name, value)
    response.headers[SCAN_ID_HEADER] = scan_id
    return response
