"""Structured logging for PdfGate.

structlog renders every event; the scanner core logs through stdlib
``logging`` and is routed to the same stream at the same level.

The scan ID of the upload being handled is carried in structlog's
contextvars, so every event emitted while handling one upload includes
``scan_id`` without passing it around:

    bind_scan_id(scan_id)
    try:
        ...
    finally:
        unbind_scan_id()
"""

import logging
import sys
import time
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SCAN_ID_KEY = "scan_id"


def _add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level:   DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: JSON lines when True (production), colored console otherwise.
    """
    level = getattr(logging, log_level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=True),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(stream=sys.stdout, level=level, format="%(levelname)s %(name)s %(message)s")
    logging.getLogger("pdfgate").setLevel(level)


def get_logger(name: str = "pdfgate") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_scan_id(scan_id: str) -> None:
    """Attach ``scan_id`` to every structlog event in the current context."""
    structlog.contextvars.bind_contextvars(**{SCAN_ID_KEY: scan_id})


def unbind_scan_id() -> None:
    structlog.contextvars.unbind_contextvars(SCAN_ID_KEY)


class PerformanceLogger:
    """Time a block and log how long it took.

    Slow runs (above ``warn_after_ms``) log at WARNING, others at DEBUG; a
    block that raises logs at ERROR and the exception propagates.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        warn_after_ms: float = 250.0,
    ) -> None:
        self.operation = operation
        self.logger = logger or get_logger()
        self.warn_after_ms = warn_after_ms
        self._start: float = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        duration_ms = (time.perf_counter() - self._start) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation}_failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
            )
            return

        log = self.logger.warning if duration_ms > self.warn_after_ms else self.logger.debug
        log(f"{self.operation}_completed", operation=self.operation, duration_ms=duration_ms)


# Defaults until pdfgate.main reconfigures from LOG_LEVEL / JSON_LOGS.
configure_logging()
