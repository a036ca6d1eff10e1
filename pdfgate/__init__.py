"""PdfGate — PDF upload screening proxy.

Accepts a PDF upload, runs a structural risk scan over its raw bytes and
relays approved files to a downstream CMS upload API.
"""

__version__ = "1.0.0"
