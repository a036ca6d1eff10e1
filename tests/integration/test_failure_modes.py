"""Integration tests for upload failure mode separation.

  - scan gate REJECT            → HTTP 400 with X-PdfGate-Rejected (CMS never called)
  - scanner internal failure    → HTTP 400 high-risk (fails closed)
  - httpx.ConnectError/Timeout  → HTTP 502, NO X-PdfGate-Rejected
  - UnsupportedProtocol         → HTTP 500 configuration error
  - downstream not configured   → HTTP 500 configuration error
  - CMS 4xx/5xx                 → passed through as-is (NOT 502)
  - request before startup      → HTTP 503
  - rate limit exceeded         → HTTP 429
"""

from __future__ import annotations

from typing import Any, Optional
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from starlette.testclient import TestClient

from pdfgate.config import Config
from pdfgate.main import create_app
from pdfgate.models.scan import RejectReason, Verdict

CLEAN_PDF = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\n%%EOF\n"


class _MockCms:
    """Mock CMS returning a fixed response or raising a transport error."""

    def __init__(
        self,
        *,
        status_code: int = 201,
        body: bytes = b'[{"id": 1}]',
        content_type: str = "application/json",
        raise_on_send: Optional[Exception] = None,
    ) -> None:
        self.received_requests: list[httpx.Request] = []
        self._status_code = status_code
        self._body = body
        self._content_type = content_type
        self._raise_on_send = raise_on_send

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.received_requests.append(request)
        if self._raise_on_send is not None:
            raise self._raise_on_send
        return httpx.Response(
            self._status_code,
            content=self._body,
            headers={"content-type": self._content_type},
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def request_count(self) -> int:
        return len(self.received_requests)


def _build_app(
    cms: _MockCms,
    monkeypatch: pytest.MonkeyPatch,
    base_url: Optional[str] = "http://cms.test",
    rate_limit: Optional[str] = None,
) -> Any:
    config = Config.defaults()
    config.downstream.base_url = base_url
    if rate_limit is not None:
        config.upload.rate_limit = rate_limit
    application = create_app(config)
    monkeypatch.setattr("pdfgate.main.create_http_client", lambda *a, **k: cms.client())
    return application


def _upload(client: TestClient, content: bytes = CLEAN_PDF) -> httpx.Response:
    return client.post(
        "/api/upload",
        files={"files": ("report.pdf", content, "application/pdf")},
    )


# ─── Downstream connectivity ──────────────────────────────────────────────────


class TestDownstreamUnavailable:
    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            httpx.RemoteProtocolError("server hung up"),
        ],
        ids=["connect", "timeout", "protocol"],
    )
    def test_transport_error_is_502(self, exc: Exception, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms(raise_on_send=exc)
        with TestClient(_build_app(cms, monkeypatch)) as client:
            response = _upload(client)
        assert response.status_code == 502
        body = response.json()
        assert body["error"] is True
        assert body["message"] == "Downstream upload API unavailable"
        assert body["details"] == type(exc).__name__
        assert "x-pdfgate-rejected" not in response.headers
        assert "x-pdfgate-scan-id" in response.headers

    def test_502_body_has_no_downstream_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms(raise_on_send=httpx.ConnectError("refused by cms.test"))
        with TestClient(_build_app(cms, monkeypatch)) as client:
            response = _upload(client)
        assert "cms.test" not in response.text


class TestConfigurationErrors:
    def test_not_configured_is_500(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with TestClient(_build_app(cms, monkeypatch, base_url=None)) as client:
            response = _upload(client)
        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Internal configuration error"
        assert body["details"] == "downstream_not_configured"
        assert cms.request_count == 0

    def test_not_configured_still_rejects_bad_pdf(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The scan gate runs before forwarding, configured or not."""
        cms = _MockCms()
        with TestClient(_build_app(cms, monkeypatch, base_url=None)) as client:
            response = _upload(client, content=b"%PDF-1.4 /JavaScript")
        assert response.status_code == 400
        assert response.headers["x-pdfgate-rejected"] == "true"

    def test_unsupported_protocol_is_500(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms(raise_on_send=httpx.UnsupportedProtocol("missing scheme"))
        with TestClient(_build_app(cms, monkeypatch)) as client:
            response = _upload(client)
        assert response.status_code == 500
        assert response.json()["details"] == "config_error"


# ─── CMS responses passed through ─────────────────────────────────────────────


class TestCmsPassthrough:
    @pytest.mark.parametrize("status_code", [200, 400, 401, 403, 413, 500, 503])
    def test_status_passed_through(self, status_code: int, monkeypatch: pytest.MonkeyPatch) -> None:
        body = b'{"error": {"status": %d, "message": "from cms"}}' % status_code
        cms = _MockCms(status_code=status_code, body=body)
        with TestClient(_build_app(cms, monkeypatch)) as client:
            response = _upload(client)
        assert response.status_code == status_code
        assert response.content == body
        assert response.headers["content-type"] == "application/json"
        assert "x-pdfgate-rejected" not in response.headers

    def test_non_json_body_passed_through(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms(status_code=500, body=b"Internal Server Error", content_type="text/plain")
        with TestClient(_build_app(cms, monkeypatch)) as client:
            response = _upload(client)
        assert response.status_code == 500
        assert response.text == "Internal Server Error"
        assert response.headers["content-type"].startswith("text/plain")


# ─── Scan gate wiring ─────────────────────────────────────────────────────────


class TestScanGateWiring:
    def test_patched_reject_never_reaches_cms(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with patch(
            "pdfgate.proxy.engine.scan_or_reject",
            new_callable=AsyncMock,
            return_value=Verdict.reject(RejectReason.MEDIUM_RISK),
        ):
            with TestClient(_build_app(cms, monkeypatch)) as client:
                response = _upload(client)
        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "medium-risk"
        assert cms.request_count == 0

    def test_patched_allow_reaches_cms(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with patch(
            "pdfgate.proxy.engine.scan_or_reject",
            new_callable=AsyncMock,
            return_value=Verdict.allow(),
        ):
            with TestClient(_build_app(cms, monkeypatch)) as client:
                response = _upload(client, content=b"%PDF-1.4 /JavaScript")
        assert response.status_code == 201
        assert cms.request_count == 1

    def test_scanner_crash_fails_closed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _boom(buffer: bytes) -> Verdict:
            raise RuntimeError("scanner exploded")

        monkeypatch.setattr("pdfgate.scanner.safe_scan.scan", _boom)
        cms = _MockCms()
        with TestClient(_build_app(cms, monkeypatch)) as client:
            response = _upload(client)
            health = client.get("/health").json()
        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "high-risk"
        assert cms.request_count == 0
        assert health["scanner"] == "error"
        assert health["status"] == "degraded"


# ─── Readiness and rate limiting ──────────────────────────────────────────────


class TestReadinessAndRateLimit:
    def test_upload_before_startup_is_503(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        # No context manager: lifespan never runs.
        client = TestClient(_build_app(cms, monkeypatch))
        response = _upload(client)
        assert response.status_code == 503
        assert cms.request_count == 0

    def test_rate_limit_exceeded_is_429(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with TestClient(_build_app(cms, monkeypatch, rate_limit="2/minute")) as client:
            statuses = [_upload(client).status_code for _ in range(3)]
        assert statuses == [201, 201, 429]
        assert cms.request_count == 2

    def test_429_uses_shared_error_shape(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with TestClient(_build_app(cms, monkeypatch, rate_limit="1/minute")) as client:
            _upload(client)
            response = _upload(client)
        assert response.status_code == 429
        body = response.json()
        assert body["error"] is True
        assert body["message"] == "Too many uploads. Please try again later."
        assert body["details"].startswith("Rate limit exceeded: 1 per 1 minute")

    def test_429_carries_cors_headers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        origin = {"origin": "http://localhost:3000"}
        with TestClient(_build_app(cms, monkeypatch, rate_limit="1/minute")) as client:
            client.post("/api/upload", files={"files": ("a.pdf", CLEAN_PDF, "application/pdf")}, headers=origin)
            response = client.post(
                "/api/upload", files={"files": ("a.pdf", CLEAN_PDF, "application/pdf")}, headers=origin
            )
        assert response.status_code == 429
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_rate_limit_counts_rejected_uploads(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with TestClient(_build_app(cms, monkeypatch, rate_limit="1/minute")) as client:
            first = _upload(client, content=b"not a pdf")
            second = _upload(client)
        assert first.status_code == 400
        assert second.status_code == 429
        assert cms.request_count == 0


# ─── Unhandled errors ─────────────────────────────────────────────────────────


class TestUnhandledErrors:
    def test_unexpected_handler_error_is_500(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cms = _MockCms()
        with patch(
            "pdfgate.proxy.engine.forward_upload",
            new_callable=AsyncMock,
            side_effect=KeyError("boom"),
        ):
            app = _build_app(cms, monkeypatch)
            with TestClient(app, raise_server_exceptions=False) as client:
                response = _upload(client)
        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"
