"""
Logger factory and handler setup for the ``nabudb`` logger tree.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import Enum
from typing import Any, TextIO

from nabudb.logging.context import ContextFilter
from nabudb.logging.formatters import JSONFormatter, TextFormatter

ROOT_LOGGER = "nabudb"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        return logging.getLevelName(self.value)


class LogFormat(str, Enum):
    JSON = "json"
    TEXT = "text"


class NabuDBLogger(logging.LoggerAdapter):
    """
    Logger that takes structured fields as keyword arguments.

    Keywords the standard library does not know about are moved into
    ``extra``, so formatters see them as record attributes.

    Example:
        logger = get_logger(__name__)
        logger.debug("Injected tenant filter", model="Note", tenant_id="t1")
    """

    _STDLIB_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def __init__(self, name: str) -> None:
        super().__init__(logging.getLogger(name), {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in self._STDLIB_KWARGS}
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {}), **fields}
        return msg, kwargs

    def is_enabled_for(self, level: int | LogLevel) -> bool:
        if isinstance(level, LogLevel):
            level = level.numeric
        return self.isEnabledFor(level)


def get_logger(name: str) -> NabuDBLogger:
    return NabuDBLogger(name)


def _build_handler(
    level: LogLevel,
    format: LogFormat,
    output: TextIO,
    include_context: bool,
    use_colors: bool,
) -> logging.Handler:
    handler = logging.StreamHandler(output)
    handler.setLevel(level.numeric)
    if format is LogFormat.JSON:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter(use_colors=use_colors))
    if include_context:
        handler.addFilter(ContextFilter())
    return handler


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    format: LogFormat | str = LogFormat.JSON,
    output: TextIO | None = None,
    include_context: bool = True,
    use_colors: bool = True,
) -> None:
    """
    Install a single handler on the ``nabudb`` logger.

    Call once at startup. Any handlers installed earlier are replaced and
    records stop propagating to the root logger.

    Args:
        level: Minimum level, by name or ``LogLevel``
        format: ``json`` for log pipelines, ``text`` for terminals
        output: Stream to write to, stderr by default
        include_context: Attach the invocation context fields to records
        use_colors: Colour level names in text output
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level
    format = LogFormat(format.lower()) if isinstance(format, str) else format

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.numeric)
    logger.handlers[:] = [
        _build_handler(level, format, output or sys.stderr, include_context, use_colors)
    ]
    logger.propagate = False


def configure_development_logging(level: LogLevel | str = LogLevel.DEBUG) -> None:
    configure_logging(level=level, format=LogFormat.TEXT)
