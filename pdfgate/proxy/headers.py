"""HTTP header processing for forwarded uploads.

  - build_downstream_headers(): the CMS receives only the caller's
    ``Authorization`` header plus ``X-PdfGate-Scan-ID``. Everything else the
    browser sent (cookies, origin, the original multipart content-type) stays
    at the proxy boundary — httpx writes its own multipart content-type.

  - build_client_response_headers(): strips hop-by-hop headers from the CMS
    response and forwards the rest unchanged.

RFC 7230 §6.1 — hop-by-hop headers MUST NOT be forwarded by intermediaries.
"""

from __future__ import annotations

from typing import Iterable

import httpx

from pdfgate.models.responses import SCAN_ID_HEADER

# Hop-by-hop headers MUST be stripped before forwarding (RFC 7230 §6.1).
# content-length / content-encoding are recomputed by Starlette for the
# (already decoded) body we return.
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
    }
)

# Request headers relayed to the CMS (lower-case).
FORWARDED_REQUEST_HEADERS: frozenset[str] = frozenset({"authorization"})


def build_downstream_headers(
    request_headers: Iterable[tuple[str, str]],
    scan_id: str,
) -> dict[str, str]:
    """Build the header dict for the forwarded upload.

    Args:
        request_headers: ``request.headers.items()`` of the incoming upload.
        scan_id:         ULID of the upload, injected as ``X-PdfGate-Scan-ID``.
    """
    headers: dict[str, str] = {}
    for name, value in request_headers:
        if name.lower() in FORWARDED_REQUEST_HEADERS and value:
            headers[name] = value
    headers[SCAN_ID_HEADER] = scan_id
    return headers


def build_client_response_headers(downstream_headers: httpx.Headers) -> list[tuple[str, str]]:
    """Headers to return to the caller from the CMS response (hop-by-hop stripped).

    Returned as ordered (name, value) pairs: repeated headers such as
    ``Set-Cookie`` stay separate instead of being comma-joined.
    """
    return [
        (name, value)
        for name, value in downstream_headers.multi_items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    ]
