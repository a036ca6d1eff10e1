"""PdfGate scanner package.

Provides the PDF structural risk scan: the marker catalogue (definitions.py),
the signature check (header.py), the pure scan and classification
(engine.py) and the async scan_or_reject gate used by the HTTP layer
(safe_scan.py).
"""

from pdfgate.scanner.engine import classify, find_markers, scan

__all__ = ["classify", "find_markers", "scan"]
