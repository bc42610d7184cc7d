"""
Interceptor interface.

Every policy is an interceptor: it receives an invocation, may rewrite it,
and either answers the call itself or hands it on to the next stage.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from nabudb.core.types import Invocation
from nabudb.policy.models import PolicyConfig
from nabudb.policy.rewriter import MutationRewriter
from nabudb.schema.map import SchemaMap

NextHandler = Callable[[Invocation], Awaitable[Any]]

# (related model, current where) -> where for that relation, or None
IncludeScope = Callable[[str, dict[str, Any]], dict[str, Any] | None]


class Interceptor(ABC):
    """
    Base class for policy interceptors.

    Subclasses implement ``intercept`` and must call ``call_next`` exactly
    once unless they answer the call themselves.
    """

    name: str = "interceptor"

    def __init__(self, schema: SchemaMap, config: PolicyConfig | None = None) -> None:
        self.schema = schema
        self.config = config or PolicyConfig()
        self.rewriter = MutationRewriter(schema)

    @abstractmethod
    async def intercept(self, invocation: Invocation, call_next: NextHandler) -> Any:
        """Handle one invocation."""
        ...

    def scope_include(self, model: str, include: Any, scope: IncludeScope) -> Any:
        """
        Apply ``scope`` to every relation an ``include`` loads, at any depth.

        ``scope`` receives the related model and the where already on the
        relation, and returns the where to use or None to leave it alone.
        """
        if not isinstance(include, dict):
            return include
        entry = self.schema.get_model(model)
        scoped = {}
        for name, original in include.items():
            if not original or not entry.is_relation(name):
                scoped[name] = original
                continue
            target = entry.relation_target(name)
            spec = dict(original) if isinstance(original, dict) else {}
            if "include" in spec:
                spec["include"] = self.scope_include(target, spec["include"], scope)
            where = scope(target, dict(spec.get("where") or {}))
            if where is not None:
                spec["where"] = where
            scoped[name] = spec or original
        return scoped

    def has_column(self, model: str, column: str) -> bool:
        """Whether a model has a given scalar column."""
        return column in self.schema.get_model(model).scalar_fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
