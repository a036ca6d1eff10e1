"""Shared rate limiter for the upload endpoint.

Uses slowapi (Starlette-compatible rate limiting), keyed by client address.

The Limiter instance is created here and shared between:
  - pdfgate/proxy/engine.py  (route decorator)
  - pdfgate/main.py          (app.state.limiter + SlowAPIMiddleware registration)

The effective limit comes from ``upload.rate_limit`` in the config; the
lifespan pushes it in via ``set_upload_rate_limit()`` before the app is ready.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from pdfgate.constants import DEFAULT_UPLOAD_RATE_LIMIT

# Module-level limiter — imported by main.py and proxy/engine.py
limiter = Limiter(key_func=get_remote_address)

_upload_rate_limit: str = DEFAULT_UPLOAD_RATE_LIMIT


def set_upload_rate_limit(limit: str) -> None:
    """Set the per-client upload limit (slowapi limit string, e.g. ``"60/minute"``)."""
    global _upload_rate_limit
    _upload_rate_limit = limit


def upload_rate_limit() -> str:
    """Current upload limit — passed to ``limiter.limit()`` as a callable."""
    return _upload_rate_limit
