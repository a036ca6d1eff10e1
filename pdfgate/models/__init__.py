"""PdfGate models package.

Defines the shared data contracts used across the scanner and the upload handler:

  - scan.py      — ScanInput, MarkerCategory, ScanFindings, Verdict, RejectReason
  - responses.py — Response builders for HTTP 400 rejection and HTTP 502
                   downstream-unavailable

These models are the single source of truth for the scan gate contract.
"""
