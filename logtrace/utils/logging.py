"""
LogTrace - Structured Logging
=============================

JSON logging for the parsing and locating pipelines. Every record emitted
while an analysis runs carries that analysis' id, so the lines produced by
one parse/locate request can be grouped together.

Usage:
    from logtrace.utils.logging import get_logger, setup_logging

    setup_logging(service_name="logtrace", log_level="INFO")
    logger = get_logger(__name__)

    logger.info("Indexed project", extra={"total_files": 42})
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional
from contextvars import ContextVar

# Id of the analysis currently running in this context
analysis_id_var: ContextVar[Optional[str]] = ContextVar("analysis_id", default=None)

_STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
})


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders each record as one JSON object.

    Fields: timestamp, level, service, logger, message, analysis_id (when
    set), exception (when present) and every extra field passed by the
    caller.
    """

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        analysis_id = getattr(record, "analysis_id", None) or analysis_id_var.get()
        if analysis_id:
            log_entry["analysis_id"] = analysis_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_") and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that stamps records with the current analysis id."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})

        if "analysis_id" not in extra:
            analysis_id = analysis_id_var.get()
            if analysis_id:
                extra["analysis_id"] = analysis_id

        kwargs["extra"] = extra
        return msg, kwargs


_loggers: dict[str, ContextualLogger] = {}


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """
    Configure root logging once at startup.

    Args:
        service_name: Name stamped on every record
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, a readable single-line format otherwise
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)

    if json_output:
        handler.setFormatter(StructuredFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(
            f"%(asctime)s | {service_name} | %(levelname)s | %(name)s | %(message)s"
        ))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> ContextualLogger:
    """
    Get a contextual logger for the given module.

    Args:
        name: Logger name, typically __name__
    """
    if name not in _loggers:
        _loggers[name] = ContextualLogger(logging.getLogger(name), {})
    return _loggers[name]


def set_analysis_id(analysis_id: str) -> None:
    """Set the analysis id for the current context."""
    analysis_id_var.set(analysis_id)


def get_analysis_id() -> Optional[str]:
    """Get the analysis id of the current context, if any."""
    return analysis_id_var.get()
