"""
Testing utilities for nabudb.

Provides a recording storage client and multi-tenant fixtures for testing
policy behaviour without (or in front of) a real database.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from nabudb.adapters.base import StorageClient
from nabudb.core.context import ActorContext
from nabudb.core.types import Operation


@dataclass
class StorageCall:
    """One call that reached the storage client."""

    model: str
    operation: Operation
    args: dict[str, Any]

    @property
    def where(self) -> dict[str, Any]:
        return self.args.get("where") or {}

    @property
    def data(self) -> Any:
        return self.args.get("data")


class RecordingStorageClient(StorageClient):
    """
    Storage client that records every call.

    Wraps a real client when given one; otherwise answers with canned or
    synthesised results, which is enough for exercising the policy chain.

    Usage:
        storage = RecordingStorageClient()
        client = PolicyClient(storage, schema).with_actor(actor)
        await client.model("Note").delete(where={"id": "n1"})
        assert storage.calls[0].operation == Operation.UPDATE
    """

    def __init__(self, inner: StorageClient | None = None) -> None:
        self.inner = inner
        self.calls: list[StorageCall] = []
        self.commits = 0
        self.rollbacks = 0
        self._results: dict[tuple[str, Operation], Any] = {}
        self._failures: dict[tuple[str, Operation], Exception] = {}

    def set_result(self, model: str, operation: Operation | str, result: Any) -> None:
        """Answer every ``operation`` on ``model`` with ``result``."""
        self._results[(model, Operation.parse(operation))] = result

    def fail_on(self, model: str, operation: Operation | str, error: Exception) -> None:
        """Raise ``error`` for every ``operation`` on ``model``."""
        self._failures[(model, Operation.parse(operation))] = error

    def calls_for(
        self,
        model: str | None = None,
        operation: Operation | str | None = None,
    ) -> list[StorageCall]:
        """Recorded calls, optionally filtered by model and operation."""
        op = Operation.parse(operation) if operation is not None else None
        return [
            c
            for c in self.calls
            if (model is None or c.model == model) and (op is None or c.operation == op)
        ]

    def clear(self) -> None:
        self.calls.clear()

    async def execute(
        self,
        model: str,
        operation: Operation | str,
        args: dict[str, Any] | None = None,
    ) -> Any:
        operation = Operation.parse(operation, model)
        args = args or {}
        self.calls.append(StorageCall(model, operation, copy.deepcopy(args)))

        key = (model, operation)
        if key in self._failures:
            raise self._failures[key]
        if self.inner is not None:
            return await self.inner.execute(model, operation, args)
        if key in self._results:
            return copy.deepcopy(self._results[key])
        return _synthesise(operation, args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[RecordingStorageClient]:
        if self.inner is not None:
            try:
                async with self.inner.transaction():
                    yield self
            except BaseException:
                self.rollbacks += 1
                raise
            self.commits += 1
            return

        try:
            yield self
        except BaseException:
            self.rollbacks += 1
            raise
        self.commits += 1


def _synthesise(operation: Operation, args: dict[str, Any]) -> Any:
    data = args.get("data")
    where = args.get("where") or {}
    match operation:
        case Operation.FIND:
            return None
        case Operation.FIND_MANY | Operation.GROUP_BY:
            return []
        case Operation.COUNT:
            return 0
        case Operation.CREATE:
            row = _scalars(data)
            row.setdefault("id", str(uuid4()))
            return row
        case Operation.CREATE_MANY:
            return {"count": len(data) if isinstance(data, list) else 1}
        case Operation.UPDATE:
            return {**_scalars(where), **_scalars(data)}
        case Operation.DELETE:
            return _scalars(where)
        case _:
            return {"count": 0}


def _scalars(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    return {k: v for k, v in data.items() if not isinstance(v, dict | list)}


@dataclass
class MockTenant:
    """Mock tenant configuration for testing."""

    tenant_id: str
    name: str = ""
    users: list[str] = field(default_factory=list)


class MultiTenantFixture:
    """
    Fixture for testing multi-tenant data isolation.

    Usage:
        fixture = MultiTenantFixture()
        fixture.add_tenant("t1", users=["u1"])
        fixture.add_tenant("t2", users=["u2"])

        rows = await client.with_actor(fixture.actor_for("u1")).model("Note").find_many()
        assert fixture.verify_isolation(rows, "t1")
    """

    def __init__(self, tenant_field: str = "tenant_id") -> None:
        self.tenant_field = tenant_field
        self._tenants: dict[str, MockTenant] = {}
        self._user_tenants: dict[str, str] = {}

    def add_tenant(
        self,
        tenant_id: str,
        name: str | None = None,
        users: list[str] | None = None,
    ) -> MockTenant:
        """Add a test tenant and its users."""
        tenant = MockTenant(tenant_id=tenant_id, name=name or f"Tenant {tenant_id}")
        self._tenants[tenant_id] = tenant
        for user_id in users or []:
            self.add_user(user_id, tenant_id)
        return tenant

    def add_user(self, user_id: str, tenant_id: str) -> None:
        if tenant_id not in self._tenants:
            raise ValueError(f"Unknown tenant: {tenant_id}")
        self._tenants[tenant_id].users.append(user_id)
        self._user_tenants[user_id] = tenant_id

    @property
    def tenant_ids(self) -> list[str]:
        return list(self._tenants)

    def actor_for(self, user_id: str) -> ActorContext:
        """Actor context for a registered user."""
        if user_id not in self._user_tenants:
            raise ValueError(f"Unknown user: {user_id}")
        return ActorContext(user_id=user_id, tenant_id=self._user_tenants[user_id])

    def verify_isolation(self, rows: list[dict[str, Any]], tenant_id: str) -> bool:
        """Whether every row belongs to ``tenant_id``."""
        return all(row.get(self.tenant_field) == tenant_id for row in rows)
