"""PDF structural risk scanner.

Pipeline for one buffer:
  1. has_pdf_signature()  — fail fast with REJECT(invalid-format)
  2. find_markers()       — raw substring search for every catalogue token
  3. classify()           — map findings to ALLOW / REJECT(high-risk|medium-risk)

Classification rules:
  high-risk   ⇔ active-content ∨ embedded-resource ∨ any catalogue token matched
  medium-risk ⇔ encryption ∨ form
  high-risk wins when both apply.

Because every matched token lands in the marker list, a form token alone is
already high-risk; medium-risk is in practice reached only by ``/Encrypt``
with no other marker present. The rule is kept as is.

Everything here is pure and synchronous: no I/O, no shared state, the input
buffer is never modified. ``scan()`` never raises for any byte input.
"""

from __future__ import annotations

import logging

from pdfgate.models.scan import MarkerCategory, RejectReason, ScanFindings, Verdict
from pdfgate.scanner.definitions import ENCRYPTION_MARKER, MARKER_CATALOGUE
from pdfgate.scanner.header import BufferLike, has_pdf_signature

logger = logging.getLogger(__name__)


def find_markers(buffer: BufferLike) -> ScanFindings:
    """Search ``buffer`` for every catalogue token and the encryption marker.

    Categories and tokens are visited in catalogue order; each hit flags its
    category and is appended to ``findings.markers``.
    """
    content = bytes(buffer)
    findings = ScanFindings()

    for category, tokens in MARKER_CATALOGUE.items():
        for token in tokens:
            if token.raw in content:
                findings.record(category, token.text)

    if ENCRYPTION_MARKER.raw in content:
        findings.flag(MarkerCategory.ENCRYPTION)

    return findings


def classify(findings: ScanFindings) -> Verdict:
    """Map ``findings`` to a verdict. High risk takes precedence over medium."""
    high_risk = findings.active_content or findings.embedded_resource or bool(findings.markers)
    medium_risk = findings.encryption or findings.form

    if high_risk:
        return Verdict.reject(RejectReason.HIGH_RISK, tuple(findings.markers))
    if medium_risk:
        return Verdict.reject(RejectReason.MEDIUM_RISK, tuple(findings.markers))
    return Verdict.allow()


def scan(buffer: BufferLike) -> Verdict:
    """Scan one uploaded buffer and return its verdict."""
    if not has_pdf_signature(buffer):
        logger.debug("PDF signature missing (%d bytes) — rejecting as invalid-format", len(buffer))
        return Verdict.reject(RejectReason.INVALID_FORMAT)

    findings = find_markers(buffer)
    verdict = classify(findings)
    if not verdict.allowed:
        logger.debug(
            "Risk markers found: categories=%s markers=%s",
            [c.value for c in findings.flagged_categories],
            findings.markers,
        )
    return verdict
