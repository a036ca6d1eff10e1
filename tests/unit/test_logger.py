"""Unit tests for pdfgate/utils/logger.py — scan ID binding and PerformanceLogger."""

from __future__ import annotations

import pytest
import structlog
from structlog.testing import capture_logs

from pdfgate.utils.logger import (
    SCAN_ID_KEY,
    PerformanceLogger,
    bind_scan_id,
    get_logger,
    unbind_scan_id,
)


@pytest.fixture(autouse=True)
def clean_contextvars():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestScanIdBinding:
    def test_bind_adds_scan_id(self) -> None:
        bind_scan_id("01HZY0000000000000000SCAN04")
        assert structlog.contextvars.get_contextvars()[SCAN_ID_KEY] == "01HZY0000000000000000SCAN04"

    def test_unbind_removes_only_scan_id(self) -> None:
        structlog.contextvars.bind_contextvars(component="upload")
        bind_scan_id("01HZY0000000000000000SCAN05")
        unbind_scan_id()
        assert structlog.contextvars.get_contextvars() == {"component": "upload"}

    def test_unbind_without_bind_is_noop(self) -> None:
        unbind_scan_id()
        assert structlog.contextvars.get_contextvars() == {}

    def test_rebinding_replaces_value(self) -> None:
        bind_scan_id("first")
        bind_scan_id("second")
        assert structlog.contextvars.get_contextvars()[SCAN_ID_KEY] == "second"


class TestPerformanceLogger:
    def test_slow_block_logs_warning(self) -> None:
        with capture_logs() as logs:
            with PerformanceLogger("downstream_upload", get_logger("perf-test"), warn_after_ms=-1):
                pass
        assert len(logs) == 1
        assert logs[0]["event"] == "downstream_upload_completed"
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["duration_ms"] >= 0

    def test_failure_logs_error_and_propagates(self) -> None:
        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                with PerformanceLogger("downstream_upload", get_logger("perf-test")):
                    raise RuntimeError("cms down")
        assert logs[0]["event"] == "downstream_upload_failed"
        assert logs[0]["log_level"] == "error"
        assert logs[0]["error"] == "cms down"
