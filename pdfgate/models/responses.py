"""Rejection and downstream-unavailable HTTP response builders.

Every error the upload endpoint produces itself shares one body shape, so the
frontend can treat them uniformly:

    {"error": true, "message": "<human readable>", "details": <object | string>}

  build_rejection_response():
      HTTP 400 — the scan gate returned REJECT.
      MUST include ``X-PdfGate-Rejected: true`` and ``X-PdfGate-Scan-ID``.
      ``details`` carries the reason and the ordered marker list.

  build_downstream_unavailable_response():
      HTTP 502 — the CMS could not be reached.
      MUST NOT include ``X-PdfGate-Rejected`` — a connectivity failure is not a
      security rejection.

  build_error_response():
      Any other client/config error raised by the upload handler itself
      (no file, wrong MIME type, file too large, downstream not configured).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse

from pdfgate.models.scan import Verdict

SCAN_ID_HEADER = "X-PdfGate-Scan-ID"
REJECTED_HEADER = "X-PdfGate-Rejected"


def build_error_response(
    status_code: int,
    message: str,
    details: Any = None,
    scan_id: Optional[str] = None,
) -> JSONResponse:
    """Build a ``{"error": true, "message", "details"}`` JSON response."""
    response = JSONResponse(
        status_code=status_code,
        content={"error": True, "message": message, "details": details},
    )
    if scan_id is not None:
        response.headers[SCAN_ID_HEADER] = scan_id
    return response


def build_rejection_response(verdict: Verdict, scan_id: str) -> JSONResponse:
    """Build the HTTP 400 response for a rejected upload.

    Body:

    .. code-block:: json

        {
          "error": true,
          "message": "PDF security check failed: High-risk content detected",
          "details": {
            "reason": "high-risk",
            "markers": ["/JS", "/JavaScript"],
            "scan_id": "<ulid>"
          }
        }

    The marker list is diagnostic detail for tuning the catalogue; it never
    contains file content beyond the catalogue tokens themselves.

    Args:
        verdict: Verdict with action == REJECT.
        scan_id: ULID of the upload.
    """
    if verdict.allowed:
        raise ValueError("build_rejection_response() called with an ALLOW verdict")

    response = build_error_response(
        status_code=400,
        message=verdict.message or "PDF security check failed",
        details={
            "reason": verdict.label,
            "markers": list(verdict.markers),
            "scan_id": scan_id,
        },
        scan_id=scan_id,
    )
    response.headers[REJECTED_HEADER] = "true"
    return response


def build_downstream_unavailable_response(scan_id: str, reason: str = "") -> JSONResponse:
    """Build the HTTP 502 response for downstream connectivity failures.

    Args:
        scan_id: ULID of the upload, for log correlation.
        reason:  Short failure description, typically the httpx exception
                 class name. MUST NOT contain credentials or config details.
    """
    # X-PdfGate-Rejected is intentionally absent.
    return build_error_response(
        status_code=502,
        message="Downstream upload API unavailable",
        details=reason or "Upload failed",
        scan_id=scan_id,
    )
