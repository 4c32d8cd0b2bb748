"""
Structured logging configuration using structlog.

Events are snake_case names with keyword context. Per-request values
(method, path, requester) are bound once through contextvars and merged
into every event logged while the request is handled.
"""
import logging
import sys
from typing import Any

import structlog


def setup_logging(level: str = "INFO", environment: str = "production") -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: ``development`` renders colored console lines,
            anything else renders one JSON object per line
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # uvicorn and redis log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**values: Any) -> None:
    """Start a fresh logging context for the current request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def log_operation(
    operation: str,
    duration_ms: float,
    cached: bool,
    error: str | None = None,
    **extra: Any,
) -> None:
    """
    Log one domain read with its timing and cache outcome.

    Args:
        operation: Read operation name (e.g. "list_accounts")
        duration_ms: Execution time in milliseconds
        cached: Whether result was served from cache
        error: Error message if the read failed
        **extra: Additional context (owner, account_id, page, ...)

    Example:
        >>> log_operation("list_accounts", duration_ms=12.5, cached=True, owner="u1")
    """
    logger = get_logger("operation_execution")

    log_data = {
        "operation": operation,
        "duration_ms": round(duration_ms, 2),
        "cached": cached,
        **extra,
    }

    if error:
        logger.error("operation_execution_failed", error=error, **log_data)
    else:
        logger.info("operation_execution_success", **log_data)
