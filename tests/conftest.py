"""Root test configuration for PdfGate.

Isolates every test from the developer's environment (config path, CMS URL,
port and CORS overrides) and resets the shared rate limiter between tests.
"""

import pytest


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Clear PdfGate env overrides and run from an empty working directory.

    The working directory switch keeps a developer's ``.pdfgate/config.yaml``
    from leaking into load_config() searches.
    """
    for name in ("PDFGATE_CONFIG", "PDFGATE_PORT", "CMS_URL", "PDFGATE_ALLOWED_ORIGINS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests.

    Prevents test-to-test rate limit bleed when several tests upload within
    the same minute.
    """
    from pdfgate.proxy.limiter import limiter
    try:
        limiter._storage.reset()
    except Exception:
        pass  # Storage may not support reset in all backends — safe to ignore
