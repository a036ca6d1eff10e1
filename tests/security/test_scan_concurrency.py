"""Concurrency tests for the scanner.

scan() holds no shared mutable state: concurrent scans of the same or
different buffers from many threads produce exactly the verdicts a serial
run produces, and the marker catalogue is never modified.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from pdfgate.models.scan import RejectReason
from pdfgate.scanner.definitions import describe_catalogue
from pdfgate.scanner.engine import scan
from pdfgate.scanner.safe_scan import scan_or_reject
from pdfgate.utils.health import ScanLatencyTracker

BUFFERS: list[bytes] = [
    b"%PDF-1.4 clean body",
    b"%PDF-1.4 /JavaScript",
    b"%PDF-1.7 /Encrypt",
    b"not a pdf",
    b"%PDF-1.5 /AcroForm /EmbeddedFiles",
    b"%PDF-1.6 " + b"0" * 1_000_000 + b"/XFA",
]


class TestThreadedScans:
    def test_threads_match_serial_results(self) -> None:
        expected = [scan(b) for b in BUFFERS]
        workload = BUFFERS * 20
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(scan, workload))
        assert results == expected * 20

    def test_catalogue_unchanged_after_concurrent_scans(self) -> None:
        before = describe_catalogue()
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(scan, BUFFERS * 10))
        assert describe_catalogue() == before

    def test_large_buffer_marker_at_end(self) -> None:
        verdict = scan(BUFFERS[-1])
        assert verdict.reason == RejectReason.HIGH_RISK
        assert verdict.markers == ("/XFA",)


class TestConcurrentScanGate:
    @pytest.mark.asyncio
    async def test_gather_scans(self) -> None:
        tracker = ScanLatencyTracker()
        verdicts = await asyncio.gather(
            *(scan_or_reject(b, scan_id=f"scan-{i}", latency_tracker=tracker) for i, b in enumerate(BUFFERS))
        )
        assert list(verdicts) == [scan(b) for b in BUFFERS]
        assert tracker.total == len(BUFFERS)
        assert tracker.errors == 0
