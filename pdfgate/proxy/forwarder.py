"""Forwarding client — relays an approved upload to the downstream CMS.

The shared ``httpx.AsyncClient`` is created once in the lifespan and stored in
``app.state.http_client``; it is NEVER instantiated per request.
"""

from __future__ import annotations

import httpx

from pdfgate.config import DownstreamConfig
from pdfgate.constants import PDF_MEDIA_TYPE
from pdfgate.models.scan import ScanInput

# Pool sized for the uvicorn concurrency limit (see pdfgate/run.py).
POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds


class DownstreamNotConfigured(Exception):
    """Raised when no downstream base URL is configured."""


def create_http_client(timeout_s: float = 30.0) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured.

    Args:
        timeout_s: Total timeout applied to every forwarded upload.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=False,  # pass 3xx through to the caller; do not resolve
    )


async def forward_upload(
    http_client: httpx.AsyncClient,
    downstream: DownstreamConfig,
    upload: ScanInput,
    headers: dict[str, str],
    field_name: str,
) -> httpx.Response:
    """POST ``upload`` to the CMS as a single-file multipart form.

    The file is sent under ``field_name`` with its original filename and
    ``application/pdf`` as content type. The CMS response is returned as-is,
    whatever its status code.

    Raises:
        DownstreamNotConfigured: No ``downstream.base_url`` set.
        httpx.TransportError / httpx.InvalidURL: propagated to the caller,
            which maps them to 502 / 500.
    """
    url = downstream.upload_url
    if url is None:
        raise DownstreamNotConfigured("downstream.base_url is not set")

    return await http_client.post(
        url,
        files={field_name: (upload.filename, upload.buffer, PDF_MEDIA_TYPE)},
        headers=headers,
    )
