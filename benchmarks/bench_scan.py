"""PDF scanner benchmark.

Measures p99 latency of scan() across buffer sizes up to the 5 MB upload cap:

  1. Clean PDF-like buffers (no markers) — the worst case: every token is
     searched across the whole buffer
  2. Buffers with an early active-content marker
  3. Non-PDF buffers (signature rejection — should be ~constant time)

Usage (from project root, with .venv activated):
    python benchmarks/bench_scan.py
"""

from __future__ import annotations

import time
from typing import Any

from pdfgate.constants import MAX_UPLOAD_FILE_BYTES
from pdfgate.scanner.engine import scan

# p99 budget per scan at the 5 MB cap
P99_BUDGET_MS: float = 50.0

_FILLER = b"0 0 612 792 re f\nBT /F1 12 Tf 72 712 Td (lorem ipsum) Tj ET\n"


def _pdf_buffer(size: int, marker: bytes = b"") -> bytes:
    body = b"%PDF-1.7\n" + marker + _FILLER * (size // len(_FILLER) + 1)
    return body[:size]


SCENARIOS: list[tuple[str, bytes]] = [
    ("Clean 64 KB", _pdf_buffer(64 * 1024)),
    ("Clean 1 MB", _pdf_buffer(1024 * 1024)),
    ("Clean 5 MB (cap)", _pdf_buffer(MAX_UPLOAD_FILE_BYTES)),
    ("JavaScript 5 MB", _pdf_buffer(MAX_UPLOAD_FILE_BYTES, b"/OpenAction << /S /JavaScript >>\n")),
    ("Not a PDF 5 MB", b"PK\x03\x04" + b"\x00" * (MAX_UPLOAD_FILE_BYTES - 4)),
]


def measure_p99(fn: Any, *args: Any, n: int = 100) -> tuple[float, float, float]:
    """Run fn(*args) n times and return (p50, p99, max) in milliseconds."""
    latencies: list[float] = []
    for _ in range(n):
        start = time.perf_counter()
        fn(*args)
        latencies.append((time.perf_counter() - start) * 1_000)
    latencies.sort()
    return latencies[int(0.50 * n)], latencies[int(0.99 * n)], latencies[-1]


def run_benchmarks() -> bool:
    """Run all benchmarks. Returns True if all are within budget."""
    WARMUP = 5
    N = 100

    print("=" * 70)
    print("PdfGate scan() Benchmark")
    print(f"Warmup: {WARMUP} calls | Measurement: {N} calls each | budget p99 ≤ {P99_BUDGET_MS}ms")
    print("=" * 70)

    all_pass = True
    for name, buffer in SCENARIOS:
        for _ in range(WARMUP):
            scan(buffer)

        p50, p99, worst = measure_p99(scan, buffer, n=N)
        passed = p99 <= P99_BUDGET_MS
        all_pass = all_pass and passed
        status = "✓ PASS" if passed else "✗ FAIL"
        print(f"  [{status}] {name} → {scan(buffer).label}")
        print(f"          p50={p50:.3f}ms  p99={p99:.3f}ms  worst={worst:.3f}ms")

    print("=" * 70)
    print("RESULT: " + ("ALL WITHIN BUDGET ✓" if all_pass else "BUDGET EXCEEDED ✗"))
    print("=" * 70)
    return all_pass


if __name__ == "__main__":
    import sys

    sys.exit(0 if run_benchmarks() else 1)
