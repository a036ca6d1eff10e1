"""PDF signature check — the fail-fast gate in front of the marker scan."""

from __future__ import annotations

from typing import Union

from pdfgate.scanner.definitions import PDF_SIGNATURE

BufferLike = Union[bytes, bytearray, memoryview]


def has_pdf_signature(buffer: BufferLike) -> bool:
    """Return True iff ``buffer`` starts with ``%PDF-``.

    Only the first five bytes are read. Shorter buffers (including empty ones)
    simply compare unequal.
    """
    return bytes(buffer[: len(PDF_SIGNATURE)]) == PDF_SIGNATURE
