"""Structured logging bound to the ingestion run.

Each run binds a correlation ID together with its post ID, and the pipeline
updates the current step (broker, upload, trigger, poll) as it advances.
Every record emitted inside the run carries all three, so one post's
descriptor request, uploads, trigger and polls can be joined in the logs.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from media_ingest.core.tracing import get_trace_id

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
post_id_var: ContextVar[Optional[str]] = ContextVar("post_id", default=None)
step_var: ContextVar[Optional[str]] = ContextVar("ingestion_step", default=None)

# Promoted to top-level JSON fields instead of "extra"
CONTEXT_FIELDS = ("correlation_id", "post_id", "step")

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def get_correlation_id() -> str:
    """Get the current correlation ID, generating one if none is bound.

    Inside a recording span the trace ID is used so logs and traces share
    one identifier.

    Returns:
        Correlation ID string
    """
    cid = correlation_id_var.get()
    if cid is None:
        trace_id = get_trace_id()
        if trace_id:
            return trace_id
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def new_correlation_id() -> str:
    """Bind and return a fresh correlation ID."""
    cid = str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def clear_correlation_id() -> None:
    """Forget the correlation ID and any bound ingestion."""
    correlation_id_var.set(None)
    post_id_var.set(None)
    step_var.set(None)


def bind_ingestion(post_id: str, correlation_id: Optional[str] = None) -> str:
    """Bind the current context to an ingestion run of ``post_id``.

    Args:
        post_id: Post whose media is being ingested
        correlation_id: ID of a run being resumed (a fresh one otherwise)

    Returns:
        The run's correlation ID
    """
    post_id_var.set(post_id)
    step_var.set(None)
    if correlation_id is None:
        return new_correlation_id()
    correlation_id_var.set(correlation_id)
    return correlation_id


def set_ingestion_step(step: Optional[str]) -> None:
    step_var.set(step)


def ingestion_context() -> dict[str, Optional[str]]:
    """Correlation ID, post ID and step of the current run."""
    return {
        "correlation_id": get_correlation_id(),
        "post_id": post_id_var.get(),
        "step": step_var.get(),
    }


class StructuredFormatter(logging.Formatter):
    """Renders records as one JSON object per line.

    Context fields come from the record when a helper or filter attached
    them, otherwise from the current run.
    """

    def __init__(
        self,
        include_stack_trace: bool = True,
        include_extra_fields: bool = True,
    ):
        super().__init__()
        self.include_stack_trace = include_stack_trace
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(self._context_fields(record))

        trace_id = get_trace_id()
        if trace_id:
            log_data["trace_id"] = trace_id

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and self.include_stack_trace:
            log_data["exception"] = self._exception_fields(record.exc_info)

        if self.include_extra_fields:
            extra_fields = self._extra_fields(record)
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    def _context_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        current = ingestion_context()
        fields = {}
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None) or current[name]
            if value is not None:
                fields[name] = value
        return fields

    def _exception_fields(self, exc_info) -> dict[str, Any]:
        exc_type, exc_value, tb = exc_info
        return {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stack_trace": traceback.format_exception(*exc_info) if tb else None,
        }

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in CONTEXT_FIELDS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                fields[key] = value
            except (TypeError, ValueError):
                fields[key] = str(value)
        return fields


class IngestionContextFilter(logging.Filter):
    """Attaches the run context to records for plain-text formatting.

    Unbound fields are rendered as "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in ingestion_context().items():
            if not getattr(record, name, None):
                setattr(record, name, value or "-")
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Send all logging to stdout.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging
        include_stack_trace: Include stack traces in error logs
    """
    log_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_format:
        formatter = StructuredFormatter(include_stack_trace=include_stack_trace)
    else:
        console_handler.addFilter(IngestionContextFilter())
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s "
            "[%(correlation_id)s post=%(post_id)s step=%(step)s] %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set log levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _log(
    logger: logging.Logger,
    level: int,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    for name, value in ingestion_context().items():
        if value is not None:
            extra.setdefault(name, value)
    logger.log(level, message, exc_info=exception, extra=extra)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with the run context and optional exception.

    Args:
        logger: Logger instance
        message: Error message
        exception: Optional exception to log
        **extra: Additional context fields
    """
    _log(logger, logging.ERROR, message, exception, **extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.WARNING, message, **extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.INFO, message, **extra)
