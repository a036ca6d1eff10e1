"""Request body size limit middleware for PdfGate.

Caps the raw request body before multipart parsing, so an oversized upload is
never buffered in full:
  - HTTP 413 is returned for bodies exceeding ``max_bytes``.
  - Two-phase check:
      1. Content-Length fast path: reject immediately on oversized header value.
      2. Chunked/streaming slow path: accumulate body with rolling cap; reject
         as soon as ``max_bytes`` is exceeded.

``max_bytes`` is the configured file limit plus MULTIPART_OVERHEAD_BYTES for
multipart framing. The exact per-file limit is enforced by the upload handler
after parsing.
"""

from __future__ import annotations

from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from pdfgate.constants import MAX_UPLOAD_FILE_BYTES, MULTIPART_OVERHEAD_BYTES
from pdfgate.utils.logger import get_logger

logger = get_logger(__name__)

_INVALID_CONTENT_LENGTH_BODY: dict = {
    "error": True,
    "message": "Invalid Content-Length header",
    "details": "bad_request",
}


def _payload_too_large(max_bytes: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "error": True,
            "message": f"Request body too large. Maximum size: {max_bytes} bytes",
            "details": "payload_too_large",
        },
    )


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Starlette middleware enforcing a hard cap on the request body.

    Registration (in create_app() in pdfgate/main.py):
        application.add_middleware(BodySizeLimitMiddleware, max_bytes=...)

      - Content-Length > max_bytes  → HTTP 413 (fast path, no body read)
      - Content-Length == max_bytes → accepted
      - No Content-Length, accumulated body > max_bytes → HTTP 413 (rolling cap)
      - No Content-Length, accumulated body ≤ max_bytes → accepted, body cached
    """

    def __init__(self, app: ASGIApp, max_bytes: Optional[int] = None) -> None:
        super().__init__(app)
        self.max_bytes: int = (
            max_bytes if max_bytes is not None else MAX_UPLOAD_FILE_BYTES + MULTIPART_OVERHEAD_BYTES
        )

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        """Enforce the body size limit; delegate to the next handler if within it."""
        content_length_header = request.headers.get("content-length")

        # ── Phase 1: Content-Length fast path ─────────────────────────────────
        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "Invalid Content-Length header",
                    value=content_length_header,
                    path=request.url.path,
                )
                return JSONResponse(status_code=400, content=_INVALID_CONTENT_LENGTH_BODY)

            if declared_size > self.max_bytes:
                logger.warning(
                    "Request body too large (Content-Length)",
                    declared_size=declared_size,
                    limit=self.max_bytes,
                    path=request.url.path,
                )
                return _payload_too_large(self.max_bytes)

            return await call_next(request)

        # ── Phase 2: Chunked / no Content-Length — rolling cap ───────────────
        body_chunks: list[bytes] = []
        total_size: int = 0

        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > self.max_bytes:
                logger.warning(
                    "Request body too large (chunked)",
                    accumulated_size=total_size,
                    limit=self.max_bytes,
                    path=request.url.path,
                )
                return _payload_too_large(self.max_bytes)
            body_chunks.append(chunk)

        # Starlette's Request.body()/stream() check for _body first, so the
        # handler reads the cached bytes instead of the consumed stream.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]

        return await call_next(request)
