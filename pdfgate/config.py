"""Config loading for PdfGate.

Reads `.pdfgate/config.yaml` (or `~/.pdfgate/config.yaml`).
Raises SystemExit on parse errors, missing `version` field or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. PDFGATE_CONFIG environment variable (if set)
  3. `.pdfgate/config.yaml` (working directory — for development)
  4. `~/.pdfgate/config.yaml` (home directory — for production deployments)

Environment variable overrides (applied after the file):
  PDFGATE_PORT            — overrides server.port
  CMS_URL                 — overrides downstream.base_url
  PDFGATE_ALLOWED_ORIGINS — comma-separated list, overrides cors.allow_origins
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml
from limits import parse_many

from pdfgate.constants import (
    DEFAULT_DOWNSTREAM_TIMEOUT_S,
    DEFAULT_DOWNSTREAM_UPLOAD_PATH,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_UPLOAD_FIELD,
    DEFAULT_UPLOAD_RATE_LIMIT,
    MAX_UPLOAD_FILE_BYTES,
    PDF_MEDIA_TYPE,
)
from pdfgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (PDFGATE_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".pdfgate/config.yaml",
    "~/.pdfgate/config.yaml",
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """Listen address."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class CorsConfig:
    """CORS policy applied to the upload endpoint.

    Defaults allow a single local frontend to POST with Content-Type and
    Authorization headers, without credentials.
    """

    allow_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    allow_methods: list[str] = field(default_factory=lambda: ["POST"])
    allow_headers: list[str] = field(default_factory=lambda: ["Content-Type", "Authorization"])
    allow_credentials: bool = False


@dataclass
class DownstreamConfig:
    """Downstream CMS upload API.

    base_url:    e.g. "https://cms.example.com" — uploads are POSTed to
                 ``base_url + upload_path``. None until configured; uploads
                 then fail with a configuration error.
    upload_path: Path of the CMS upload endpoint.
    timeout_s:   Total timeout for one forwarded upload.
    """

    base_url: Optional[str] = None
    upload_path: str = DEFAULT_DOWNSTREAM_UPLOAD_PATH
    timeout_s: float = DEFAULT_DOWNSTREAM_TIMEOUT_S

    @property
    def upload_url(self) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url.rstrip('/')}/{self.upload_path.lstrip('/')}"


@dataclass
class UploadConfig:
    """Ingress limits for the upload endpoint."""

    field_name: str = DEFAULT_UPLOAD_FIELD
    max_file_bytes: int = MAX_UPLOAD_FILE_BYTES
    allowed_mime_types: list[str] = field(default_factory=lambda: [PDF_MEDIA_TYPE])
    rate_limit: str = DEFAULT_UPLOAD_RATE_LIMIT


@dataclass
class Config:
    """Root configuration object populated from .pdfgate/config.yaml.

    All fields have safe defaults — PdfGate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    downstream: DownstreamConfig = field(default_factory=DownstreamConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Args:
            raw:  Parsed YAML dict (must already be validated for version field).
            path: Path to the config file.

        Raises:
            SystemExit(1): On an out-of-range server.port, a non-boolean
                           cors.allow_credentials, a non-positive
                           upload.max_file_bytes or downstream.timeout_s, an
                           unparseable upload.rate_limit, or a non-list list field.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = _section(raw, "server")
        port = server_raw.get("port", DEFAULT_PORT)
        if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
            _fail(f"Invalid server.port: '{port}'. Must be an integer between 1 and 65535.")
        server = ServerConfig(
            host=server_raw.get("host", DEFAULT_HOST),
            port=port,
        )

        # ── CORS ──────────────────────────────────────────────────────────────
        cors_raw = _section(raw, "cors")
        cors_defaults = CorsConfig()
        allow_credentials = cors_raw.get("allow_credentials", False)
        if not isinstance(allow_credentials, bool):
            _fail(
                f"Invalid cors.allow_credentials: '{allow_credentials}'. "
                "Must be true or false (unquoted)."
            )
        cors = CorsConfig(
            allow_origins=_string_list(cors_raw, "cors.allow_origins", cors_defaults.allow_origins),
            allow_methods=_string_list(cors_raw, "cors.allow_methods", cors_defaults.allow_methods),
            allow_headers=_string_list(cors_raw, "cors.allow_headers", cors_defaults.allow_headers),
            allow_credentials=allow_credentials,
        )

        # ── Downstream ────────────────────────────────────────────────────────
        downstream_raw = _section(raw, "downstream")
        timeout_s = downstream_raw.get("timeout_s", DEFAULT_DOWNSTREAM_TIMEOUT_S)
        if not isinstance(timeout_s, (int, float)) or timeout_s <= 0:
            _fail(f"Invalid downstream.timeout_s: '{timeout_s}'. Must be a positive number.")
        downstream = DownstreamConfig(
            base_url=downstream_raw.get("base_url"),
            upload_path=downstream_raw.get("upload_path", DEFAULT_DOWNSTREAM_UPLOAD_PATH),
            timeout_s=float(timeout_s),
        )

        # ── Upload ────────────────────────────────────────────────────────────
        upload_raw = _section(raw, "upload")
        max_file_bytes = upload_raw.get("max_file_bytes", MAX_UPLOAD_FILE_BYTES)
        if not isinstance(max_file_bytes, int) or isinstance(max_file_bytes, bool) or max_file_bytes <= 0:
            _fail(f"Invalid upload.max_file_bytes: '{max_file_bytes}'. Must be a positive integer.")
        upload = UploadConfig(
            field_name=upload_raw.get("field_name", DEFAULT_UPLOAD_FIELD),
            max_file_bytes=max_file_bytes,
            allowed_mime_types=_string_list(
                upload_raw, "upload.allowed_mime_types", [PDF_MEDIA_TYPE]
            ),
            rate_limit=_rate_limit(upload_raw.get("rate_limit", DEFAULT_UPLOAD_RATE_LIMIT)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            cors=cors,
            downstream=downstream,
            upload=upload,
            path=path,
        )


def _fail(message: str) -> NoReturn:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _fail(f"'{name}' must be a mapping.")
    return value


def _rate_limit(value: Any) -> str:
    """Validate a slowapi limit string such as ``"60/minute"``.

    slowapi silently disables a limit it cannot parse, so a typo must stop
    startup instead.
    """
    if not isinstance(value, str):
        _fail(f"Invalid upload.rate_limit: '{value}'. Expected e.g. '60/minute'.")
    try:
        parse_many(value)
    except ValueError:
        _fail(f"Invalid upload.rate_limit: '{value}'. Expected e.g. '60/minute'.")
    return value


def _string_list(section: dict, dotted: str, default: list[str]) -> list[str]:
    key = dotted.rsplit(".", 1)[-1]
    value: Any = section.get(key, default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        _fail(f"'{dotted}' must be a list of strings.")
    return list(value)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate PdfGate configuration.

    Search order:
      1. ``config_path`` argument (if provided)
      2. ``PDFGATE_CONFIG`` environment variable (if set)
      3. ``.pdfgate/config.yaml``
      4. ``~/.pdfgate/config.yaml``

    If no file is found at any of these paths, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    Environment overrides (``PDFGATE_PORT``, ``CMS_URL``,
    ``PDFGATE_ALLOWED_ORIGINS``) are applied whether or not a file was found.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid field values, or invalid ``PDFGATE_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("PDFGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        _warn_on_risky_settings(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"Failed to parse {found_path}: {exc}\n"
            "PdfGate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)
    _warn_on_risky_settings(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        downstream=config.downstream.base_url,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If PDFGATE_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("PDFGATE_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(f"PDFGATE_PORT environment variable is not a valid integer: '{env_port}'")

    env_cms_url = os.environ.get("CMS_URL")
    if env_cms_url:
        config.downstream.base_url = env_cms_url

    env_origins = os.environ.get("PDFGATE_ALLOWED_ORIGINS")
    if env_origins:
        config.cors.allow_origins = [o.strip() for o in env_origins.split(",") if o.strip()]


def _warn_on_risky_settings(config: Config) -> None:
    if config.server.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: PdfGate is configured to bind on 0.0.0.0 (all interfaces). "
            "Recommended: put it behind a reverse proxy or bind to 127.0.0.1."
        )
    if "*" in config.cors.allow_origins:
        logger.warning("CORS allows any origin ('*') — uploads accepted from every site")
    if not config.downstream.base_url:
        logger.warning(
            "No downstream CMS configured (downstream.base_url / CMS_URL) — "
            "approved uploads will fail with a configuration error"
        )
