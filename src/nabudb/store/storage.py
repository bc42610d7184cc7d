"""
Audit store backed by the raw storage client.

Audit rows are written to the audit log model through the unscoped client,
so they never re-enter the policy chain and share the caller's transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from nabudb.core.types import Operation
from nabudb.store.base import AuditStore
from nabudb.store.models import AuditRecord

if TYPE_CHECKING:
    from nabudb.adapters.base import StorageClient


class StorageAuditStore(AuditStore):
    """
    Writes audit records as rows of the audit log model.

    Usage:
        store = StorageAuditStore(storage, model="AuditLog")
        await store.store(record)
    """

    transactional = True

    def __init__(self, storage: StorageClient, model: str = "AuditLog") -> None:
        self.storage = storage
        self.model = model

    async def store(self, record: AuditRecord) -> None:
        await self.storage.execute(self.model, Operation.CREATE, {"data": record.to_row()})

    async def get(self, record_id: str) -> AuditRecord | None:
        row = await self.storage.execute(
            self.model, Operation.FIND, {"where": {"id": record_id}}
        )
        return AuditRecord.model_validate(row) if row else None

    async def query(
        self,
        *,
        tenant_id: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditRecord]:
        where: dict[str, Any] = {}
        if tenant_id is not None:
            where["tenant_id"] = tenant_id
        if entity_type is not None:
            where["entity_type"] = entity_type
        if entity_id is not None:
            where["entity_id"] = entity_id
        if action is not None:
            where["action"] = action
        created_at: dict[str, Any] = {}
        if start_time is not None:
            created_at["gte"] = start_time
        if end_time is not None:
            created_at["lte"] = end_time
        if created_at:
            where["created_at"] = created_at

        rows = await self.storage.execute(
            self.model,
            Operation.FIND_MANY,
            {
                "where": where,
                "orderBy": {"created_at": "asc"},
                "take": limit,
                "skip": offset,
            },
        )
        return [AuditRecord.model_validate(row) for row in rows]
