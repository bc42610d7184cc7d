"""
Interceptor chain.

Runs interceptors in a fixed order and ends at the raw storage client.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any

from nabudb.core.types import Invocation
from nabudb.logging import LogContext, get_logger, with_log_context
from nabudb.policy.auditing import AuditInterceptor
from nabudb.policy.base import Interceptor
from nabudb.policy.models import PolicyConfig
from nabudb.policy.soft_delete import SoftDeleteInterceptor
from nabudb.policy.stamping import ActorStampInterceptor
from nabudb.policy.tenancy import TenantInterceptor
from nabudb.schema.map import SchemaMap
from nabudb.store.base import AuditStore

if TYPE_CHECKING:
    from nabudb.adapters.base import StorageClient

logger = get_logger(__name__)


class InterceptorChain:
    """
    Ordered list of interceptors in front of a storage client.

    The order is part of the contract: soft delete runs before audit so the
    audit stage sees the rewritten update, and tenant runs before audit so
    the recorded tenant is the one that was written.
    """

    def __init__(self, interceptors: list[Interceptor], storage: StorageClient) -> None:
        self.interceptors = list(interceptors)
        self.storage = storage

    @classmethod
    def default(
        cls,
        schema: SchemaMap,
        storage: StorageClient,
        config: PolicyConfig | None = None,
        audit_store: AuditStore | None = None,
    ) -> InterceptorChain:
        """Soft delete, tenant, actor stamp, audit."""
        config = config or PolicyConfig()
        return cls(
            [
                SoftDeleteInterceptor(schema, config),
                TenantInterceptor(schema, config),
                ActorStampInterceptor(schema, config),
                AuditInterceptor(schema, storage, audit_store, config),
            ],
            storage,
        )

    async def invoke(self, invocation: Invocation) -> Any:
        """Run an invocation through every interceptor and the storage client."""
        with with_log_context(LogContext.from_invocation(invocation)):
            return await self._dispatch(0, invocation)

    async def _dispatch(self, index: int, invocation: Invocation) -> Any:
        if index == len(self.interceptors):
            if invocation.decisions:
                logger.debug(
                    f"{invocation.action} on {invocation.model} executes as "
                    f"{invocation.operation.value}",
                    decisions=list(invocation.decisions),
                )
            return await self.storage.execute(
                invocation.model, invocation.operation, invocation.args
            )
        interceptor = self.interceptors[index]
        return await interceptor.intercept(invocation, partial(self._dispatch, index + 1))

    def __iter__(self):
        return iter(self.interceptors)

    def __len__(self) -> int:
        return len(self.interceptors)
