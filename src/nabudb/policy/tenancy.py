"""
Tenant interceptor.

Confines reads to the acting tenant and stamps the tenant onto every row a
write creates or updates, nested rows included.
"""

from typing import Any

from nabudb.core.errors import InvalidPayloadError, TenantOverrideNotAllowedError
from nabudb.core.types import Invocation, Operation
from nabudb.logging import get_logger
from nabudb.policy.base import Interceptor, NextHandler
from nabudb.policy.models import TenantOverridePolicy
from nabudb.policy.payload import Reference, WriteData
from nabudb.policy.rewriter import Injection, Stamps

logger = get_logger(__name__)

# Marks "no tenant named in the payload", as opposed to an explicit None
_UNSET = object()


class TenantInterceptor(Interceptor):
    """
    Enforces tenant isolation.

    Reads: ``where.tenant_id`` is overwritten with the actor's tenant. An
    actor without a tenant only matches rows whose tenant is NULL. Relations
    loaded through ``include`` are confined the same way.

    Writes: the tenant is the one named in the payload when the override
    policy allows it, otherwise the actor's. Updates, and deletes that reach
    this stage, are additionally filtered to the actor's tenant so rows of
    other tenants cannot be touched by id.
    """

    name = "tenant"

    async def intercept(self, invocation: Invocation, call_next: NextHandler) -> Any:
        # Included relations are scoped even when the parent model is exempt
        invocation = self._scope_include(invocation)
        if not self._is_scoped(invocation.model):
            return await call_next(invocation)

        operation = invocation.operation
        if operation.is_read:
            return await call_next(self._scope_read(invocation))
        if operation.is_write:
            return await call_next(self._stamp_write(invocation))
        if operation.is_delete:
            return await call_next(self._scope_where(invocation))
        return await call_next(invocation)

    def _is_scoped(self, model: str) -> bool:
        if self.config.exemptions.is_tenant_exempt(model):
            return False
        return self.has_column(model, self.config.fields.tenant_id)

    def _scope_read(self, invocation: Invocation) -> Invocation:
        tenant_field = self.config.fields.tenant_id
        requested = invocation.where.get(tenant_field, _UNSET)
        where = {**invocation.where, tenant_field: invocation.actor.tenant_id}

        if requested is not _UNSET and requested != invocation.actor.tenant_id:
            logger.debug(
                "Replaced caller tenant filter with actor tenant",
                model=invocation.model,
            )
        return invocation.with_decision(
            f"tenant: reads scoped to {invocation.actor.tenant_id!r}",
            args={**invocation.args, "where": where},
        )

    def _scope_include(self, invocation: Invocation) -> Invocation:
        include = invocation.args.get("include")
        if not include:
            return invocation
        tenant_field = self.config.fields.tenant_id
        tenant_id = invocation.actor.tenant_id

        def confine(target: str, where: dict[str, Any]) -> dict[str, Any] | None:
            if not self._is_scoped(target):
                return None
            return {**where, tenant_field: tenant_id}

        return invocation.with_decision(
            f"tenant: included relations scoped to {tenant_id!r}",
            args={**invocation.args, "include": self.scope_include(invocation.model, include, confine)},
        )

    def _scope_where(self, invocation: Invocation) -> Invocation:
        actor = invocation.actor
        if actor.is_system and actor.tenant_id is None:
            return invocation
        where = {**invocation.where, self.config.fields.tenant_id: actor.tenant_id}
        return invocation.with_decision(
            f"tenant: writes filtered to {actor.tenant_id!r}",
            args={**invocation.args, "where": where},
        )

    def _stamp_write(self, invocation: Invocation) -> Invocation:
        tenant_id = self.resolve_tenant(invocation)
        is_update = invocation.operation in (Operation.UPDATE, Operation.UPDATE_MANY)

        if is_update:
            invocation = self._scope_where(invocation)

        # Updates never detach rows from their tenant
        if is_update and tenant_id is None:
            return invocation.evolve(tenant_id=tenant_id)

        stamps = self._stamps(tenant_id)
        injection = Injection(create=stamps, update=stamps)
        data = self.rewriter.rewrite(
            invocation.model,
            invocation.operation,
            invocation.data,
            injection,
        )
        return invocation.with_decision(
            f"tenant: writes stamped with {tenant_id!r}",
            args={**invocation.args, "data": data},
            tenant_id=tenant_id,
        )

    def _stamps(self, tenant_id: str | None) -> Stamps:
        fields = self.config.fields
        if tenant_id is None:
            return Stamps(scalar={fields.tenant_id: None})
        return Stamps(
            scalar={fields.tenant_id: tenant_id},
            relational={fields.tenant: {"connect": {fields.id: tenant_id}}},
        )

    def resolve_tenant(self, invocation: Invocation) -> str | None:
        """
        Choose the tenant a write is stamped with.

        Every row of the payload counts, nested rows included, so a tenant
        cannot be smuggled in below the top level.

        Raises:
            TenantOverrideNotAllowedError: a regular actor named another tenant
                under the system-only override policy
            InvalidPayloadError: the payload names more than one tenant
        """
        actor = invocation.actor
        explicit = self.explicit_tenant(invocation)
        if explicit is _UNSET:
            return actor.tenant_id

        if self.config.tenant_override == TenantOverridePolicy.PAYLOAD or actor.is_system:
            if explicit != actor.tenant_id:
                logger.info(
                    "Honouring tenant named in payload",
                    model=invocation.model,
                    payload_tenant=explicit,
                )
            return explicit

        if explicit != actor.tenant_id:
            raise TenantOverrideNotAllowedError(invocation.model, explicit, actor.tenant_id)
        return explicit

    def explicit_tenant(self, invocation: Invocation) -> Any:
        """
        Tenant named anywhere in the payload, or ``_UNSET``.

        Recognises the ``tenant_id`` column and ``tenant: {connect: {id}}`` on
        every tenant-scoped row the write creates or updates.
        """
        found = set()
        for row in self.rewriter.rows(invocation.model, invocation.operation, invocation.data):
            if self._is_scoped(row.model):
                found.add(self._row_tenant(row))
        found.discard(_UNSET)

        if len(found) > 1:
            raise InvalidPayloadError(
                "payload rows name different tenants",
                model=invocation.model,
                path="data",
            )
        return found.pop() if found else _UNSET

    def _row_tenant(self, row: WriteData) -> Any:
        fields = self.config.fields
        if fields.tenant_id in row.scalars:
            return row.scalars[fields.tenant_id]
        relation = row.relations.get(fields.tenant)
        if relation is None:
            return _UNSET
        for op in relation.ops:
            if isinstance(op, Reference) and op.kind == "connect" and isinstance(op.value, dict):
                if fields.id in op.value:
                    return op.value[fields.id]
        # Anything else could point the row at a tenant that cannot be checked
        raise InvalidPayloadError(
            f"'{fields.tenant}' may only connect by {fields.id}",
            model=row.model,
            path=f"data.{fields.tenant}",
        )
