"""
Record formatters.

``JSONFormatter`` writes one object per line for log shipping and
``TextFormatter`` a compact line for terminals.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from nabudb.logging.context import CONTEXT_FIELDS

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Top-level keys are ``timestamp``, ``level``, ``logger`` and ``message``,
    followed by whichever invocation context fields are set. Exceptions go
    under ``exception`` and every other structured field under ``extra``;
    values JSON cannot encode are written as their ``str()``.
    """

    def __init__(self, include_extra: bool = True) -> None:
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(record),
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra = {
                key: _jsonable(value)
                for key, value in vars(record).items()
                if key not in _RECORD_ATTRS
                and key not in CONTEXT_FIELDS
                and not key.startswith("_")
            }
            if extra:
                entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """``<time> <LEVEL> <logger> [tenant_id=.., model=.., operation=..]: <message>``"""

    _COLOURS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }
    _SHOWN = ("tenant_id", "model", "operation")

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        colour = self._COLOURS.get(record.levelno)
        if self.use_colors and colour:
            level = f"\033[{colour}m{level}\033[0m"

        shown = [
            f"{name}={getattr(record, name)}"
            for name in self._SHOWN
            if getattr(record, name, None) is not None
        ]
        scope = f" [{', '.join(shown)}]" if shown else ""

        line = f"{self.formatTime(record, self.datefmt)} {level} {record.name}{scope}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
