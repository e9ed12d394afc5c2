"""Structured logging for the router.

Every record is stamped with the active correlation ID and with the
fields bound through ``LogContext``. Routing fields (request, provider,
task type, caller) are promoted to top-level JSON keys so log queries can
follow one request across selection, dispatch and fallback.
"""

import asyncio
import contextvars
import functools
import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, TypeVar
from uuid import uuid4

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)
_bound_fields: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)

F = TypeVar("F", bound=Callable[..., Any])

# Keys lifted out of "extra" into the top level of a JSON line
ROUTING_FIELDS = ("request_id", "provider", "task_type", "caller_id")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class LogContext:
    """Bind fields to every record logged inside a ``with`` block.

    Contexts nest; inner values shadow outer ones until the block exits.

    Usage:
        with LogContext(request_id=request.request_id, task_type="code"):
            logger.info("Dispatching")
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __enter__(self) -> "LogContext":
        self._token = _bound_fields.set({**_bound_fields.get(), **self.fields})
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            _bound_fields.reset(self._token)
            self._token = None

    @staticmethod
    def get_current() -> dict[str, Any]:
        """Fields bound in the current context."""
        return _bound_fields.get()


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Bound context fields overlaid with the record's own ``extra`` values."""
    fields = dict(_bound_fields.get())
    for key, value in record.__dict__.items():
        if key not in _RECORD_ATTRIBUTES:
            fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON-formatted log line.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = _correlation_id.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        fields = record_fields(record)
        for key in ROUTING_FIELDS:
            if key in fields:
                entry[key] = fields.pop(key)
        if fields:
            entry["extra"] = fields

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Colored single-line output for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        correlation_id = _correlation_id.get()
        prefix = f"[{correlation_id[:8]}] " if correlation_id else ""

        fields = record_fields(record)
        routing = " ".join(
            f"{key}={fields[key]}" for key in ROUTING_FIELDS if key in fields
        )
        suffix = f" ({routing})" if routing else ""

        line = (
            f"{color}{timestamp} | {record.levelname:8} | {prefix}{record.name} | "
            f"{record.getMessage()}{suffix}{self.RESET}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    format_type: str = "json",
    logger_name: str | None = None,
) -> None:
    """Install a stdout handler with the chosen formatter.

    Args:
        level: Log level name.
        format_type: ``json`` or ``text``.
        logger_name: Logger to configure; the root logger if None.
    """
    numeric_level = getattr(logging, level.upper())
    target = logging.getLogger(logger_name)
    target.setLevel(numeric_level)
    target.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if format_type.lower() == "json" else TextFormatter())
    target.addHandler(handler)

    if logger_name:
        target.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> contextvars.Token[str | None]:
    """Set the correlation ID for the current context.

    Returns:
        Token for ``reset_correlation_id``.
    """
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: contextvars.Token[str | None]) -> None:
    _correlation_id.reset(token)


@contextmanager
def with_correlation_id(correlation_id: str | None = None) -> Iterator[str]:
    """Scope a correlation ID to a block, generating one if not given."""
    token = set_correlation_id(correlation_id or str(uuid4()))
    try:
        yield _correlation_id.get()
    finally:
        reset_correlation_id(token)


def log_execution_time(
    logger: logging.Logger | None = None,
    level: int = logging.DEBUG,
    message: str = "Execution completed",
) -> Callable[[F], F]:
    """Decorator logging how long a coroutine took.

    Args:
        logger: Logger to use. Defaults to the function's module logger.
        level: Log level for the timing line.
        message: Prefix of the timing line.

    Raises:
        TypeError: If applied to a plain function.
    """

    def decorator(func: F) -> F:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"{func.__name__} is not a coroutine function")
        log = logger or get_logger(func.__module__)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            outcome = "failed after"
            try:
                result = await func(*args, **kwargs)
                outcome = "took"
                return result
            finally:
                elapsed_ms = (time.perf_counter() - started) * 1000
                log.log(level, f"{message}: {func.__name__} {outcome} {elapsed_ms:.2f}ms")

        return wrapper  # type: ignore[return-value]

    return decorator
