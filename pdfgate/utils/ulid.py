"""ULID generation for PdfGate scan IDs.

Every upload gets a 26-character ULID used as:
  - X-PdfGate-Scan-ID response header and downstream request header
  - scan_id field in structured log entries and rejection bodies

Uses the ``python-ulid`` library — do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new ULID as a 26-character Crockford Base32 string."""
    return str(ULID())
