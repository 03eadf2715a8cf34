"""
Structured logging module.

Provides JSON logging with identity/trace context propagation and token
redaction.
"""

from oauth_session.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from oauth_session.logging.formatters import ConsoleFormatter, JSONFormatter
from oauth_session.logging.setup import generate_trace_id, get_logger, setup_logging

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    "generate_trace_id",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
]
