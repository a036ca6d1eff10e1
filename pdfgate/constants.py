"""Shared constants for PdfGate.

All size limits and numeric caps used across modules are defined here.
No magic numbers in other modules — import from here.
"""

# ─── Upload Size Limits ───────────────────────────────────────────────────────

# Maximum size of the uploaded PDF itself (the file part, not the whole body).
# HTTP 413 is returned for files exceeding this limit, BEFORE any scan or
# downstream forwarding.
MAX_UPLOAD_FILE_BYTES: int = 5 * 1024 * 1024  # 5 MB = 5,242,880 bytes

# Allowance for multipart framing (boundaries, part headers, form fields).
# The raw request body cap is MAX_UPLOAD_FILE_BYTES + this allowance; the exact
# per-file limit is enforced after multipart parsing.
MULTIPART_OVERHEAD_BYTES: int = 64 * 1024  # 64 KB

# ─── Upload Form Defaults ─────────────────────────────────────────────────────

# Multipart field carrying the file — the downstream CMS upload API expects
# the same field name, so it is reused when forwarding.
DEFAULT_UPLOAD_FIELD: str = "files"

# The only content type accepted on the upload part (and sent downstream).
PDF_MEDIA_TYPE: str = "application/pdf"

# Per-client upload rate limit (slowapi limit string).
DEFAULT_UPLOAD_RATE_LIMIT: str = "60/minute"

# ─── Downstream ───────────────────────────────────────────────────────────────

DEFAULT_DOWNSTREAM_UPLOAD_PATH: str = "/api/upload"
DEFAULT_DOWNSTREAM_TIMEOUT_S: float = 30.0

# ─── Server ───────────────────────────────────────────────────────────────────

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 3005
