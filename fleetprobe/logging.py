"""
Structured logging configuration.

Call ``setup_logging()`` once at startup (CLI or API).  Every record gets
``correlation_id`` and ``endpoint_id`` from the current run's context, so
interleaved output from a fan-out can be split back per endpoint.
"""

from __future__ import annotations

import logging
import sys

from pythonjsonlogger import jsonlogger

from fleetprobe.config import LOG_FORMAT, LOG_LEVEL, SERVICE_NAME
from fleetprobe.correlation import get_correlation_id, get_endpoint_id

JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(endpoint_id)s %(correlation_id)s %(message)s"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s {%(endpoint_id)s} (%(correlation_id)s) %(message)s"

# No run in progress (API requests, startup).
NO_ENDPOINT = "-"


class RunContextFilter(logging.Filter):
    """Tag each record with the run's correlation id and endpoint id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()  # type: ignore[attr-defined]
        record.endpoint_id = get_endpoint_id() or NO_ENDPOINT  # type: ignore[attr-defined]
        return True


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return jsonlogger.JsonFormatter(
            fmt=JSON_FORMAT,
            rename_fields={"asctime": "timestamp", "levelname": "level", "endpoint_id": "endpoint"},
        )
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(service_name: str = SERVICE_NAME, log_format: str = LOG_FORMAT) -> None:
    root = logging.getLogger()
    root.setLevel(LOG_LEVEL.upper())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(log_format))
    handler.addFilter(RunContextFilter())

    root.handlers.clear()
    root.addHandler(handler)

    # httpx logs every request at INFO; a fan-out would drown the run logs.
    for noisy in ("uvicorn.access", "httpx", "httpcore", "PIL"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(service_name).info("Logging initialised", extra={"service": service_name})
