"""Logging helpers."""

from ledger_api.utils.logger import bind_request_context, get_logger, log_operation, setup_logging

__all__ = ["bind_request_context", "get_logger", "log_operation", "setup_logging"]
