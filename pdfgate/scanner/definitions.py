"""Marker catalogue for the PDF risk scanner.

The catalogue is static, declarative configuration: a read-only mapping from
category to an ordered tuple of PDF name tokens. Tokens are matched as raw
byte substrings of the upload, so each entry is also pre-encoded once at
module load time. Nothing here is compiled or built per request.

Matching is format-naive. A token inside a comment, a content stream or a
longer name still counts (``/JS`` matches inside ``/JavaScript``, ``/EF``
inside ``/EFOO``). This is a known false-positive source, accepted in
exchange for a single linear scan with no parser state.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from pdfgate.models.scan import MarkerCategory

# Every accepted upload must start with these five bytes.
PDF_SIGNATURE: bytes = b"%PDF-"


@dataclass(frozen=True)
class MarkerToken:
    """A single catalogue token.

    Fields:
        text:     The token as reported in findings (e.g. ``"/JavaScript"``).
        raw:      ``text`` encoded as ASCII — the needle for the byte search.
        category: Category this token flags when found.
    """

    text: str
    raw: bytes
    category: MarkerCategory


def _tokens(category: MarkerCategory, *names: str) -> tuple[MarkerToken, ...]:
    return tuple(MarkerToken(text=n, raw=n.encode("ascii"), category=category) for n in names)


# ===========================================================================
# CATALOGUE — evaluated in this order, category by category
# ===========================================================================

MARKER_CATALOGUE: Mapping[MarkerCategory, tuple[MarkerToken, ...]] = MappingProxyType(
    {
        # Automatic actions and script
        MarkerCategory.ACTIVE_CONTENT: _tokens(
            MarkerCategory.ACTIVE_CONTENT, "/JS", "/JavaScript", "/AA", "/OpenAction"
        ),
        # Files carried inside the document
        MarkerCategory.EMBEDDED_RESOURCE: _tokens(
            MarkerCategory.EMBEDDED_RESOURCE, "/EmbeddedFiles", "/EF"
        ),
        # Interactive forms
        MarkerCategory.FORM: _tokens(MarkerCategory.FORM, "/AcroForm"),
        # Launch/import/submit actions, rich media, XFA forms
        MarkerCategory.OTHER_DANGEROUS: _tokens(
            MarkerCategory.OTHER_DANGEROUS,
            "/Launch",
            "/SubmitForm",
            "/ImportData",
            "/RichMedia",
            "/XFA",
        ),
    }
)

# Evaluated once, separately from the category loop. Sets the encryption flag
# but is never appended to the marker list.
ENCRYPTION_MARKER: MarkerToken = MarkerToken(
    text="/Encrypt", raw=b"/Encrypt", category=MarkerCategory.ENCRYPTION
)


def catalogue_tokens() -> list[MarkerToken]:
    """All category tokens flattened in evaluation order."""
    return [token for tokens in MARKER_CATALOGUE.values() for token in tokens]


def describe_catalogue() -> dict[str, list[str]]:
    """JSON-friendly view of the catalogue, including the encryption marker."""
    view = {category.value: [t.text for t in tokens] for category, tokens in MARKER_CATALOGUE.items()}
    view[MarkerCategory.ENCRYPTION.value] = [ENCRYPTION_MARKER.text]
    return view
