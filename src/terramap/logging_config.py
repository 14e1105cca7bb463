"""
Structured logging configuration for terramap.

Logs are emitted as one JSON object per line. Every entry carries the
generation run identifier so that all messages produced while mapping a
single batch can be grouped together.

Log Format:
    {
        "timestamp": "2025-11-14T10:30:00.123Z",
        "level": "WARNING",
        "logger": "terramap.generator",
        "run_id": "abc123...",
        "message": "No mapper registered for resource type",
        "aws_type": "AWS::SNS::Topic",
        "resource_id": "arn:aws:sns:...",
        ...additional context...
    }

Usage:
    from terramap.logging_config import setup_logging, get_logger, log_with_context

    setup_logging(log_level="INFO")
    logger = get_logger(__name__)

    log_with_context(
        logger,
        "info",
        "Mapped resource",
        aws_type=resource.resource_type,
        address=generated.address,
    )
"""

import json
import logging
import sys
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import UTC, datetime
from types import TracebackType
from typing import override

PACKAGE_LOGGER = "terramap"

# Run identifier shared by every log entry of one generation pass
_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)

_STANDARD_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders log records as JSON objects.

    Standard Fields:
        - timestamp: ISO 8601 timestamp in UTC
        - level: Log level name
        - logger: Logger name (usually module path)
        - run_id: Generation run identifier, or null outside a run
        - message: Human-readable log message
        - exc_info: Formatted traceback if present

    Extra fields passed through ``log_with_context`` become top-level keys.
    """

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "run_id": _run_id.get(),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging to stdout.

    Replaces any handlers already attached to the root logger. Call once
    from the embedding application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)


def set_package_log_level(log_level: str) -> None:
    """
    Set the level of every terramap logger.

    Handlers are left alone, so this is safe to call from library code that
    runs inside an application with its own logging setup.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get logger for a module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def generate_run_id() -> str:
    """Return a new random generation run identifier."""
    return str(uuid.uuid4())


def set_run_id(run_id: str) -> None:
    """Set the run identifier for the current context."""
    _ = _run_id.set(run_id)


def get_run_id() -> str | None:
    """Return the current run identifier, or None outside a run."""
    return _run_id.get()


def clear_run_id() -> None:
    """Clear the run identifier from the current context."""
    _ = _run_id.set(None)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """
    Log message with additional structured context.

    Context fields are added to the log entry as top-level JSON fields.
    ``exc_info`` is passed through to the logging call rather than being
    treated as a context field.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Human-readable log message
        **context: Additional context fields as keyword arguments

    Example:
        >>> log_with_context(
        ...     logger,
        ...     "warning",
        ...     "Mapper declined resource",
        ...     aws_type="AWS::S3::BucketPolicy",
        ...     resource_id="my-bucket",
        ... )
    """
    exc_info = context.pop("exc_info", None)
    log_func: Callable[..., None] = getattr(logger, level.lower())
    if exc_info:
        log_func(message, extra=dict(context), exc_info=exc_info)
    else:
        log_func(message, extra=dict(context))


class GenerationRunContext:
    """
    Context manager that scopes a run identifier to one generation pass.

    Example:
        >>> with GenerationRunContext() as run_id:
        ...     logger.info("Mapping batch")
    """

    def __init__(self, run_id: str | None = None) -> None:
        """
        Initialize run context.

        Args:
            run_id: Run identifier to use (generates a new one if None)
        """
        self.run_id: str = run_id or generate_run_id()

    def __enter__(self) -> str:
        set_run_id(self.run_id)
        return self.run_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        clear_run_id()
