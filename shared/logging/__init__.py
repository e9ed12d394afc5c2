"""Structured logging shared by the router packages.

Provides:
- JSON formatted output for log aggregation
- Correlation ID tracking for request tracing
- Contextual fields bound with LogContext
- Timing decorator for coroutines
"""

from shared.logging.logger import (
    JSONFormatter,
    LogContext,
    TextFormatter,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_execution_time,
    reset_correlation_id,
    set_correlation_id,
    with_correlation_id,
)

__all__ = [
    "JSONFormatter",
    "TextFormatter",
    "get_logger",
    "configure_logging",
    "LogContext",
    "with_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "reset_correlation_id",
    "log_execution_time",
]
