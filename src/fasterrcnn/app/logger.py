"""JSON logging for the detection service.

Each record is one JSON object. Request-level context (endpoint, image
source, status, latency) sits at the top level; what the pipeline did
with the image (back-end, session mode, detection count and per-stage
timing) is grouped under ``pipeline`` so a log query can select on either.

Author: Matthew Hong
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, TextIO

# Set per request by the detect endpoints
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REQUEST_FIELDS: tuple[str, ...] = ("endpoint", "source", "status_code", "latency_ms", "port")
PIPELINE_FIELDS: tuple[str, ...] = ("backend", "session_mode", "detections")

# uvicorn installs its own handlers; these are routed through the root logger
SERVER_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _rounded_timing(timing: dict[str, float]) -> dict[str, float]:
    return {stage: round(ms, 2) for stage, ms in timing.items() if stage != "total_ms"}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON.

    Records passed ``extra={"timing": result.timing}`` get the stage
    breakdown under ``pipeline.stages``; ``total_ms`` is left to
    ``latency_ms``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        for key in REQUEST_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        pipeline = {key: getattr(record, key) for key in PIPELINE_FIELDS if hasattr(record, key)}
        timing = getattr(record, "timing", None)
        if timing:
            pipeline["stages"] = _rounded_timing(timing)
        if pipeline:
            log_data["pipeline"] = pipeline

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = "INFO", stream: TextIO | None = None) -> None:
    """Install the JSON handler on the root logger.

    Server loggers lose their own handlers and propagate to the root, so
    uvicorn's startup and access lines come out in the same format as
    the service's.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        stream: Output stream, stdout by default

    Raises:
        ValueError: If ``log_level`` is not a logging level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
