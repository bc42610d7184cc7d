"""
nabudb structured logging.

JSON or text output with invocation context (tenant, user, model, operation)
injected into every record.
"""

from nabudb.logging.config import (
    LogFormat,
    LogLevel,
    NabuDBLogger,
    configure_development_logging,
    configure_logging,
    get_logger,
)
from nabudb.logging.context import (
    ContextFilter,
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
    with_log_context,
)
from nabudb.logging.formatters import JSONFormatter, TextFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "configure_development_logging",
    "get_logger",
    "NabuDBLogger",
    "LogLevel",
    "LogFormat",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    # Context
    "ContextFilter",
    "LogContext",
    "get_log_context",
    "set_log_context",
    "clear_log_context",
    "with_log_context",
]
