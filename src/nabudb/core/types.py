"""
Shared type definitions for nabudb.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from nabudb.core.context import ActorContext
from nabudb.core.errors import UnsupportedOperationError


class Operation(str, Enum):
    """Operations exposed per model by both the raw and the policy client."""

    FIND = "find"
    FIND_MANY = "findMany"
    COUNT = "count"
    GROUP_BY = "groupBy"
    CREATE = "create"
    CREATE_MANY = "createMany"
    UPDATE = "update"
    UPDATE_MANY = "updateMany"
    DELETE = "delete"
    DELETE_MANY = "deleteMany"

    @classmethod
    def parse(cls, value: Operation | str, model: str | None = None) -> Operation:
        """Coerce a string into an Operation, failing on unknown names."""
        if isinstance(value, Operation):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedOperationError(str(value), model) from None

    @property
    def is_read(self) -> bool:
        return self in READ_OPERATIONS

    @property
    def is_write(self) -> bool:
        """Create and update operations; deletes are tracked separately."""
        return self in WRITE_OPERATIONS

    @property
    def is_delete(self) -> bool:
        return self in (Operation.DELETE, Operation.DELETE_MANY)

    @property
    def is_mutation(self) -> bool:
        return self.is_write or self.is_delete

    @property
    def is_bulk(self) -> bool:
        return self in (Operation.CREATE_MANY, Operation.UPDATE_MANY, Operation.DELETE_MANY)


READ_OPERATIONS = frozenset(
    {Operation.FIND, Operation.FIND_MANY, Operation.COUNT, Operation.GROUP_BY}
)
WRITE_OPERATIONS = frozenset(
    {Operation.CREATE, Operation.CREATE_MANY, Operation.UPDATE, Operation.UPDATE_MANY}
)


@dataclass(frozen=True)
class Invocation:
    """
    A single operation travelling through the interceptor chain.

    Interceptors never mutate an invocation; they derive a new one with
    ``evolve`` and pass it on.
    """

    model: str
    operation: Operation
    args: dict[str, Any]
    actor: ActorContext = field(default_factory=ActorContext.anonymous)

    # Logical action the caller asked for; survives operation rewrites
    # (a soft delete keeps action="delete" while operation becomes "update")
    action: str = ""

    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str = field(default_factory=lambda: str(uuid4()))

    # Tenant chosen by the tenant stage for writes
    tenant_id: str | None = None

    # Policy decisions made along the chain
    decisions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.action:
            object.__setattr__(self, "action", self.operation.value)

    def evolve(self, **changes: Any) -> Invocation:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def with_decision(self, decision: str, **changes: Any) -> Invocation:
        """Return a copy with a policy decision appended."""
        return self.evolve(decisions=self.decisions + (decision,), **changes)

    @property
    def where(self) -> dict[str, Any]:
        where = self.args.get("where")
        return where if isinstance(where, dict) else {}

    @property
    def data(self) -> Any:
        return self.args.get("data")
