"""Scan gate — the only entry point the upload handler uses.

Provides ``scan_or_reject()``, an async wrapper around the pure ``scan()``.

ATOMIC WRAPPER INVARIANTS:
  - ``scan_or_reject()`` ALWAYS returns a ``Verdict`` — it NEVER raises.
  - On ANY internal failure (exception, wrong return type) it returns
    ``REJECT(high-risk)``: an upload the scanner could not judge is never
    forwarded.

The scan runs in Starlette's threadpool so a 5 MB buffer never stalls the
event loop. Latency and verdict outcome are recorded in the
``ScanLatencyTracker`` and every verdict is logged with its marker list.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from starlette.concurrency import run_in_threadpool

from pdfgate.models.scan import RejectReason, Verdict
from pdfgate.scanner.engine import scan

if TYPE_CHECKING:
    from pdfgate.scanner.header import BufferLike
    from pdfgate.utils.health import ScanLatencyTracker

logger = logging.getLogger(__name__)


async def scan_or_reject(
    buffer: "BufferLike",
    scan_id: str,
    latency_tracker: Optional["ScanLatencyTracker"] = None,
) -> Verdict:
    """ATOMIC SCAN WRAPPER — scan ``buffer`` and return its verdict.

    INVARIANT: ALWAYS returns Verdict. NEVER raises.

    Args:
        buffer:          Raw bytes of the uploaded file.
        scan_id:         ULID for this upload — used in every log line.
        latency_tracker: Optional tracker to record duration and outcome.

    Returns:
        The scanner's Verdict, or REJECT(high-risk) if the scanner failed.
    """
    t0 = time.perf_counter()
    try:
        verdict = await run_in_threadpool(scan, buffer)

        if not isinstance(verdict, Verdict):
            logger.critical(
                "[%s] Scanner returned invalid type: %s — REJECTING",
                scan_id,
                type(verdict),
            )
            return _fail_closed(latency_tracker, t0)

    except Exception as exc:  # noqa: BLE001
        logger.critical(
            "[%s] Unhandled scanner exception: %s: %s — REJECTING",
            scan_id,
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        return _fail_closed(latency_tracker, t0)

    elapsed_ms = _record_latency(latency_tracker, t0, verdict.label)
    if verdict.allowed:
        logger.info("[%s] scan_complete verdict=allowed size=%d duration_ms=%.2f", scan_id, len(buffer), elapsed_ms)
    else:
        logger.warning(
            "[%s] scan_complete verdict=%s markers=%s size=%d duration_ms=%.2f",
            scan_id,
            verdict.label,
            list(verdict.markers),
            len(buffer),
            elapsed_ms,
        )
    return verdict


def _fail_closed(tracker: Optional["ScanLatencyTracker"], t0: float) -> Verdict:
    if tracker is not None:
        tracker.record_error()
    verdict = Verdict.reject(RejectReason.HIGH_RISK)
    _record_latency(tracker, t0, verdict.label)
    return verdict


def _record_latency(
    tracker: Optional["ScanLatencyTracker"],
    t0: float,
    outcome: str,
) -> float:
    """Record elapsed scan time to the tracker (if any) and return it in ms."""
    elapsed_ms = (time.perf_counter() - t0) * 1000
    if tracker is None:
        return elapsed_ms
    try:
        tracker.record(elapsed_ms, outcome=outcome)
    except Exception:  # noqa: BLE001
        pass  # Latency recording is best-effort — never fail a scan over it
    return elapsed_ms
