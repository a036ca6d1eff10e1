"""Health utility classes for PdfGate.

Provides:
  - ScanLatencyTracker — rolling window of the last 100 scan latencies (avg, p99)
                         plus running verdict counters
  - ScannerHealth      — dataclass snapshot consumed by ``/health``
  - check_scanner_health() — builds a ScannerHealth from a tracker
"""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Optional

# ─── Data Types ───────────────────────────────────────────────────────────────


@dataclass
class ScannerHealth:
    """Snapshot of scanner subsystem health.

    Attributes:
        healthy:         True unless the scan gate has had to fail closed on
                         an internal scanner error since startup.
        avg_latency_ms:  Rolling average of the last 100 scan durations.
        p99_latency_ms:  p99 latency of the last 100 scan durations.
        scans_recorded:  Total scans recorded since startup.
        verdicts:        Count of verdict outcomes keyed by label
                         (``allowed``, ``invalid-format``, ``high-risk``, ``medium-risk``).
    """

    healthy: bool
    avg_latency_ms: float
    p99_latency_ms: float
    scans_recorded: int
    verdicts: dict[str, int] = field(default_factory=dict)


# ─── ScanLatencyTracker ───────────────────────────────────────────────────────


class ScanLatencyTracker:
    """Rolling window of scan latency measurements (last *window* samples).

    Used by ``/health`` to report ``avg_scan_ms`` and ``p99_scan_ms`` without
    storing unbounded history.

    Thread-safety:
        All mutation happens on the event loop (the scan gate records after the
        threadpool call returns), so no locking is needed.

    Args:
        window: Maximum number of samples to retain (default 100).

    Usage::

        tracker = ScanLatencyTracker()
        tracker.record(12.3, outcome="allowed")
        avg  = tracker.avg_ms     # rolling average
        p99  = tracker.p99_ms     # p99 (0.0 until 10+ samples)
    """

    def __init__(self, window: int = 100) -> None:
        self._times: deque[float] = deque(maxlen=window)
        self._total: int = 0
        self._outcomes: Counter[str] = Counter()
        self._errors: int = 0

    # ── Mutation ──────────────────────────────────────────────────────────────

    def record(self, duration_ms: float, outcome: Optional[str] = None) -> None:
        """Append a latency sample and, optionally, count the verdict outcome.

        Args:
            duration_ms: Scan duration in milliseconds.
            outcome:     Verdict label for the scan (e.g. ``"high-risk"``).
        """
        self._times.append(duration_ms)
        self._total += 1
        if outcome is not None:
            self._outcomes[outcome] += 1

    def record_error(self) -> None:
        """Count a scan that failed inside the scanner itself."""
        self._errors += 1

    # ── Computed properties ───────────────────────────────────────────────────

    @property
    def avg_ms(self) -> float:
        """Rolling arithmetic mean of all samples in the window (0.0 if empty)."""
        if not self._times:
            return 0.0
        return sum(self._times) / len(self._times)

    @property
    def p99_ms(self) -> float:
        """99th percentile of samples in the rolling window.

        Returns 0.0 when fewer than 10 samples are available (avoids
        misleading p99 values from tiny sample sets).
        """
        if len(self._times) < 10:
            return 0.0
        sorted_times = sorted(self._times)
        # Use floor index so we never go out-of-bounds
        idx = max(0, int(len(sorted_times) * 0.99) - 1)
        return sorted_times[idx]

    @property
    def count(self) -> int:
        """Number of samples currently in the window (0 ≤ count ≤ window)."""
        return len(self._times)

    @property
    def total(self) -> int:
        """Number of scans recorded since the tracker was created."""
        return self._total

    @property
    def errors(self) -> int:
        return self._errors

    def outcomes(self) -> dict[str, int]:
        """Copy of the verdict counters."""
        return dict(self._outcomes)


# ─── Scanner Health Check ─────────────────────────────────────────────────────


def check_scanner_health(
    latency_tracker: Optional[ScanLatencyTracker] = None,
) -> ScannerHealth:
    """Return a health snapshot for the scanner subsystem.

    The scanner has no pool or external dependency, so health is derived
    purely from the tracker: any internal scanner error since startup marks
    the scanner as unhealthy.

    Args:
        latency_tracker: Tracker to read from. Falls back to a fresh
                         (all-zero) tracker when ``None``.
    """
    tracker: ScanLatencyTracker = latency_tracker or ScanLatencyTracker()

    return ScannerHealth(
        healthy=tracker.errors == 0,
        avg_latency_ms=tracker.avg_ms,
        p99_latency_ms=tracker.p99_ms,
        scans_recorded=tracker.total,
        verdicts=tracker.outcomes(),
    )
