"""Structured logging for the Tubely API.

An upload passes through several stages (staging, aspect-ratio detection,
fast-start remux, object storage, record update) and each one logs on its
own. Every record is stamped with the correlation ID of the HTTP request
that started the upload, so a single upload can be followed from the first
multipart byte to the stored object URL with one filter on that ID.

Records are emitted as one JSON object per line by default; set
``LOG_JSON=false`` for a plain text format during local development.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

# Correlation ID of the request being served in this task
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else was passed through ``extra``
_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName", "correlation_id"}

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "httpx")


def get_correlation_id() -> str:
    """Return the request's correlation ID.

    Code running outside a request (startup, background work, tests) gets a
    fresh ID on first use, which then sticks for the rest of that context.
    """
    cid = correlation_id_var.get()
    if cid is None:
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    """Bind ``correlation_id`` to the current request context."""
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """Render a record as a single-line JSON document.

    Upload context passed as ``extra`` (video ID, object key, byte counts)
    is collected under ``"extra"``; values JSON can't encode, such as UUIDs,
    are stringified.
    """

    def __init__(self, include_stack_trace: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info and self.include_stack_trace:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack_trace": traceback.format_exception(exc_type, exc_value, exc_tb)
                if exc_tb
                else None,
            }

        extra = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


class CorrelationIdFilter(logging.Filter):
    """Stamp ``correlation_id`` on records so text formats can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Route all logging to stdout, replacing any handlers already installed.

    Args:
        level: Root log level name, e.g. ``"INFO"`` or ``"DEBUG"``
        json_format: Emit JSON lines instead of the plain text format
        include_stack_trace: Attach formatted tracebacks to JSON records
    """
    log_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _log(logger: logging.Logger, level: int, message: str, exc_info=None, **extra: Any) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.log(level, message, exc_info=exc_info, extra=extra)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log a failed pipeline stage.

    The exception, when given, is attached with its traceback; keyword
    arguments become structured fields such as ``video_id`` or ``key``.
    """
    _log(logger, logging.ERROR, message, exc_info=exception, **extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.WARNING, message, **extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.INFO, message, **extra)
