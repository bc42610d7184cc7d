"""
Audit interceptor.

Appends one audit record per successful mutating call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic_core import to_jsonable_python

from nabudb.core.errors import AuditWriteError
from nabudb.core.types import Invocation, Operation
from nabudb.logging import get_logger
from nabudb.policy.base import Interceptor, NextHandler
from nabudb.policy.models import AuditFailureMode, PolicyConfig
from nabudb.schema.map import SchemaMap
from nabudb.store.base import AuditStore
from nabudb.store.models import BULK_CREATE_ENTITY_ID, BULK_UPDATE_ENTITY_ID, AuditRecord
from nabudb.store.storage import StorageAuditStore

if TYPE_CHECKING:
    from nabudb.adapters.base import StorageClient

logger = get_logger(__name__)


class AuditInterceptor(Interceptor):
    """
    Records mutations after they succeed.

    With ``AuditFailureMode.FAIL_CLOSED`` the primary write and the audit
    write share one storage transaction, so a failed audit write rolls the
    primary write back and raises AuditWriteError. With
    ``AuditFailureMode.BEST_EFFORT`` the failure is logged and the primary
    write stands.
    """

    name = "audit"

    def __init__(
        self,
        schema: SchemaMap,
        storage: StorageClient,
        store: AuditStore | None = None,
        config: PolicyConfig | None = None,
    ) -> None:
        """
        Initialize the interceptor.

        Args:
            schema: Schema relationship map
            storage: Raw storage client (transactions, old-data reads)
            store: Where records go; defaults to audit log rows via ``storage``
            config: Policy configuration
        """
        super().__init__(schema, config)
        self.storage = storage
        self.store = store or StorageAuditStore(storage, model=self.config.audit_model)

    async def intercept(self, invocation: Invocation, call_next: NextHandler) -> Any:
        if not invocation.operation.is_mutation:
            return await call_next(invocation)
        if self.config.exemptions.is_audit_exempt(invocation.model):
            return await call_next(invocation)

        if self.config.audit_failure_mode == AuditFailureMode.BEST_EFFORT:
            return await self._best_effort(invocation, call_next)
        return await self._fail_closed(invocation, call_next)

    async def _fail_closed(self, invocation: Invocation, call_next: NextHandler) -> Any:
        async with self.storage.transaction():
            old_data = await self._capture_old_data(invocation)
            result = await call_next(invocation)
            record = self.build_record(invocation, result, old_data)
            try:
                await self.store.store(record)
            except Exception as e:
                raise AuditWriteError(invocation.model, invocation.action) from e
        return result

    async def _best_effort(self, invocation: Invocation, call_next: NextHandler) -> Any:
        old_data = await self._capture_old_data(invocation)
        result = await call_next(invocation)
        record = self.build_record(invocation, result, old_data)
        try:
            if self.store.transactional:
                async with self.storage.transaction():
                    await self.store.store(record)
            else:
                await self.store.store(record)
        except Exception:
            logger.exception(
                f"Audit write failed for {invocation.action} on {invocation.model}",
                model=invocation.model,
                action=invocation.action,
            )
        return result

    async def _capture_old_data(self, invocation: Invocation) -> Any:
        if not self.config.capture_old_data:
            return None
        if invocation.operation not in (Operation.UPDATE, Operation.DELETE):
            return None
        return await self.storage.execute(
            invocation.model, Operation.FIND, {"where": invocation.where}
        )

    def build_record(self, invocation: Invocation, result: Any, old_data: Any = None) -> AuditRecord:
        """Build the audit record for a completed mutation."""
        fields = self.config.fields
        actor = invocation.actor
        operation = invocation.operation
        tenant_id = invocation.tenant_id or actor.tenant_id

        match operation:
            case Operation.CREATE:
                entity_id = _row_value(result, fields.id)
                new_data = invocation.data
                if invocation.model == self.config.tenant_model:
                    tenant_id = entity_id
            case Operation.CREATE_MANY:
                entity_id = BULK_CREATE_ENTITY_ID
                data = invocation.data
                new_data = {"data": data if isinstance(data, list) else [data]}
            case Operation.UPDATE_MANY | Operation.DELETE_MANY:
                entity_id = BULK_UPDATE_ENTITY_ID
                new_data = {**(invocation.data or {}), "where_condition": invocation.where}
            case _:
                where_id = invocation.where.get(fields.id)
                if where_id is None or isinstance(where_id, dict):
                    where_id = _row_value(result, fields.id)
                entity_id = where_id
                new_data = invocation.data

        return AuditRecord(
            entity_type=invocation.model,
            entity_id="" if entity_id is None else str(entity_id),
            action=invocation.action,
            old_data=to_jsonable_python(old_data),
            new_data=to_jsonable_python(new_data),
            created_by=actor.user_id,
            tenant_id=None if tenant_id is None else str(tenant_id),
            created_at=invocation.now,
        )


def _row_value(row: Any, key: str) -> Any:
    if isinstance(row, dict):
        return row.get(key)
    return getattr(row, key, None)
