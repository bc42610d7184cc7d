"""
Per-invocation logging context.

The interceptor chain opens a scope for every call, so records logged by the
interceptors and the storage adapter carry the tenant, actor and operation
they belong to.
"""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nabudb.core.types import Invocation

CONTEXT_FIELDS = ("tenant_id", "user_id", "request_id", "model", "operation")

_EMPTY: Mapping[str, Any] = MappingProxyType({})

_current: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "nabudb_log_context", default=_EMPTY
)


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record logged inside a scope."""

    tenant_id: str | None = None
    user_id: str | None = None
    request_id: str | None = None
    model: str | None = None
    operation: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_invocation(cls, invocation: Invocation) -> LogContext:
        # operation is the caller's action, not the rewritten storage operation
        return cls(
            tenant_id=invocation.actor.tenant_id,
            user_id=invocation.actor.user_id,
            request_id=invocation.request_id,
            model=invocation.model,
            operation=invocation.action,
        )

    def to_dict(self) -> dict[str, Any]:
        fields = {}
        for name in CONTEXT_FIELDS:
            value = getattr(self, name)
            if value is not None:
                fields[name] = value
        fields.update(self.extra)
        return fields


def _as_dict(context: LogContext | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(context, LogContext):
        return context.to_dict()
    return dict(context)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the fields in scope."""
    return dict(_current.get())


def set_log_context(context: LogContext | Mapping[str, Any]) -> None:
    _current.set(MappingProxyType(_as_dict(context)))


def clear_log_context() -> None:
    _current.set(_EMPTY)


@contextmanager
def with_log_context(
    context: LogContext | Mapping[str, Any] | None = None,
    **fields: Any,
) -> Iterator[None]:
    """
    Scope a logging context.

    A given ``context`` replaces the one in scope; without it the current
    fields are kept. Keyword fields are layered on top either way, and the
    previous context comes back when the block exits.

    Example:
        with with_log_context(tenant_id="t1", model="Note"):
            logger.debug("Injected tenant filter")
    """
    base = _as_dict(context) if context is not None else get_log_context()
    token = _current.set(MappingProxyType({**base, **fields}))
    try:
        yield
    finally:
        _current.reset(token)


class ContextFilter(logging.Filter):
    """Copies the fields in scope onto records that do not set them already."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in _current.get().items():
            record.__dict__.setdefault(name, value)
        return True
