"""
Soft-delete interceptor.

Deletes become updates that set the deletion marker, and reads skip rows
that carry one.
"""

from typing import Any

from nabudb.core.errors import PolicyConfigurationError
from nabudb.core.types import Invocation, Operation
from nabudb.logging import get_logger
from nabudb.policy.base import Interceptor, NextHandler
from nabudb.policy.rewriter import Injection, NestedDeleteRule

logger = get_logger(__name__)


class SoftDeleteInterceptor(Interceptor):
    """
    Rewrites deletes into marker updates and filters marked rows from reads.

    - delete/deleteMany become update/updateMany with
      ``{deleted_at: now, updated_by: user}``; ``action`` keeps the delete name
    - reads get ``deleted_at: None`` unless the caller filtered on it
    - nested deletes inside create/update payloads get the same treatment
    - relations loaded through ``include`` skip deleted rows too

    Soft-deleting an already deleted row simply re-stamps it.
    """

    name = "soft_delete"

    async def intercept(self, invocation: Invocation, call_next: NextHandler) -> Any:
        invocation = self._scope_include(invocation)
        operation = invocation.operation

        if operation.is_delete:
            if self.config.exemptions.is_soft_delete_exempt(invocation.model):
                return await call_next(invocation)
            return await call_next(self._rewrite_delete(invocation))

        if operation.is_read:
            return await call_next(self._scope_read(invocation))

        if operation.is_write and invocation.data is not None:
            data = self.rewriter.rewrite(
                invocation.model,
                operation,
                invocation.data,
                Injection(nested_delete=self.nested_delete_rule(invocation)),
            )
            return await call_next(invocation.evolve(args={**invocation.args, "data": data}))

        return await call_next(invocation)

    def deletion_marker(self, model: str, invocation: Invocation) -> dict[str, Any]:
        """Update data that marks rows of ``model`` as deleted."""
        fields = self.config.fields
        if not self.has_column(model, fields.deleted_at):
            raise PolicyConfigurationError(
                model,
                f"delete requires a '{fields.deleted_at}' column; the model is not "
                f"exempt from soft delete and would be physically deleted",
            )
        marker: dict[str, Any] = {fields.deleted_at: invocation.now}
        if invocation.actor.user_id is not None and self.has_column(model, fields.updated_by):
            marker[fields.updated_by] = invocation.actor.user_id
        return marker

    def nested_delete_rule(self, invocation: Invocation) -> NestedDeleteRule:
        """Rule handed to the rewriter for deletes nested in a write payload."""

        def rule(target: str) -> dict[str, Any] | None:
            if self.config.exemptions.is_soft_delete_exempt(target):
                return None
            return self.deletion_marker(target, invocation)

        return rule

    def _rewrite_delete(self, invocation: Invocation) -> Invocation:
        marker = self.deletion_marker(invocation.model, invocation)
        operation = (
            Operation.UPDATE if invocation.operation == Operation.DELETE else Operation.UPDATE_MANY
        )
        args = {**invocation.args, "where": dict(invocation.where), "data": marker}

        logger.debug(
            f"Rewrote {invocation.operation.value} on {invocation.model} as {operation.value}",
            model=invocation.model,
        )
        return invocation.with_decision(
            f"soft_delete: {invocation.operation.value} rewritten as {operation.value}",
            operation=operation,
            args=args,
        )

    def _scope_read(self, invocation: Invocation) -> Invocation:
        deleted_at = self.config.fields.deleted_at
        if self.config.exemptions.is_soft_delete_exempt(invocation.model):
            return invocation
        if not self.has_column(invocation.model, deleted_at):
            return invocation
        if deleted_at in invocation.where:
            return invocation.with_decision("soft_delete: caller filter on deletion marker kept")

        where = {**invocation.where, deleted_at: None}
        return invocation.with_decision(
            "soft_delete: excluded deleted rows",
            args={**invocation.args, "where": where},
        )

    def _scope_include(self, invocation: Invocation) -> Invocation:
        include = invocation.args.get("include")
        if not include:
            return invocation
        deleted_at = self.config.fields.deleted_at

        def hide_deleted(target: str, where: dict[str, Any]) -> dict[str, Any] | None:
            if self.config.exemptions.is_soft_delete_exempt(target):
                return None
            if not self.has_column(target, deleted_at) or deleted_at in where:
                return None
            return {**where, deleted_at: None}

        return invocation.with_decision(
            "soft_delete: included relations exclude deleted rows",
            args={**invocation.args, "include": self.scope_include(invocation.model, include, hide_deleted)},
        )
