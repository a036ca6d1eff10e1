"""Scan gate data models.

  - ScanInput     — one uploaded file (bytes + original filename)
  - MarkerCategory — the marker catalogue's categories
  - ScanFindings  — per-scan accumulator filled by the marker search
  - Action / RejectReason / Verdict — the terminal result of one scan

A Verdict is either ALLOW (no reason) or REJECT with exactly one
RejectReason. The HTTP layer decides how to present it; the scanner never
raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class ScanInput:
    """One uploaded file as handed over by the ingress layer.

    ``filename`` is opaque: the scanner never looks at it, it only travels
    with the buffer so the forwarding client can name the file downstream.
    """

    buffer: bytes
    filename: str

    @property
    def size(self) -> int:
        return len(self.buffer)


class MarkerCategory(str, Enum):
    """Categories of the marker catalogue."""

    ACTIVE_CONTENT = "active-content"
    EMBEDDED_RESOURCE = "embedded-resource"
    FORM = "form"
    OTHER_DANGEROUS = "other-dangerous"
    ENCRYPTION = "encryption"


@dataclass
class ScanFindings:
    """Mutable accumulator for a single scan.

    One boolean per category plus the ordered list of every matched token.
    Tokens are appended in catalogue order with no de-duplication. The
    encryption marker sets ``encryption`` but is never appended to ``markers``.

    An instance belongs to exactly one buffer — create a new one per scan.
    """

    active_content: bool = False
    embedded_resource: bool = False
    form: bool = False
    other_dangerous: bool = False
    encryption: bool = False
    markers: list[str] = field(default_factory=list)

    _ATTRS = {
        MarkerCategory.ACTIVE_CONTENT: "active_content",
        MarkerCategory.EMBEDDED_RESOURCE: "embedded_resource",
        MarkerCategory.FORM: "form",
        MarkerCategory.OTHER_DANGEROUS: "other_dangerous",
        MarkerCategory.ENCRYPTION: "encryption",
    }

    def flag(self, category: MarkerCategory) -> None:
        """Mark ``category`` as present."""
        setattr(self, self._ATTRS[category], True)

    def record(self, category: MarkerCategory, token: str) -> None:
        """Flag ``category`` and append the matched ``token``."""
        self.flag(category)
        self.markers.append(token)

    def has(self, category: MarkerCategory) -> bool:
        return bool(getattr(self, self._ATTRS[category]))

    @property
    def flagged_categories(self) -> list[MarkerCategory]:
        """Categories whose flag is set, in enum order."""
        return [c for c in MarkerCategory if self.has(c)]


class Action(str, Enum):
    """Scan gate decision."""

    ALLOW = "ALLOW"
    REJECT = "REJECT"


class RejectReason(str, Enum):
    """Why a buffer was rejected. Values are the wire-level reason strings."""

    INVALID_FORMAT = "invalid-format"
    HIGH_RISK = "high-risk"
    MEDIUM_RISK = "medium-risk"


# Client-facing messages per reason.
REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.INVALID_FORMAT: "Invalid PDF format",
    RejectReason.HIGH_RISK: "PDF security check failed: High-risk content detected",
    RejectReason.MEDIUM_RISK: "PDF security check failed: Medium-risk content detected",
}


@dataclass(frozen=True)
class Verdict:
    """Terminal output of one scan.

    Fields:
        action:  ALLOW or REJECT.
        reason:  None for ALLOW; the RejectReason for REJECT.
        markers: Matched catalogue tokens in scan order. Diagnostic only —
                 the safety decision is fully captured by ``action``/``reason``.
    """

    action: Action
    reason: Optional[RejectReason] = None
    markers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if (self.action == Action.ALLOW) != (self.reason is None):
            raise ValueError(
                f"Verdict action {self.action.value} is inconsistent with reason {self.reason!r}"
            )

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(action=Action.ALLOW)

    @classmethod
    def reject(cls, reason: RejectReason, markers: tuple[str, ...] = ()) -> "Verdict":
        return cls(action=Action.REJECT, reason=reason, markers=tuple(markers))

    @property
    def allowed(self) -> bool:
        return self.action == Action.ALLOW

    @property
    def label(self) -> str:
        """``"allowed"`` or the reject reason value — used for logs and counters."""
        return "allowed" if self.reason is None else self.reason.value

    @property
    def message(self) -> Optional[str]:
        """Human-readable rejection message, or None when allowed."""
        if self.reason is None:
            return None
        return REJECT_MESSAGES[self.reason]
