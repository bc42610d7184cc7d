"""
Policy-enforcing client.

Exposes the same per-model surface as the raw storage client, with every
call routed through the interceptor chain.
"""

from __future__ import annotations

import copy
from typing import Any

from nabudb.adapters.base import StorageClient
from nabudb.core.context import ActorContext, ActorResolver, SessionActorResolver, StaticActorResolver
from nabudb.core.surface import OperationSurface
from nabudb.core.types import Invocation, Operation
from nabudb.policy.chain import InterceptorChain
from nabudb.policy.models import PolicyConfig
from nabudb.schema.map import SchemaMap
from nabudb.store.base import AuditStore
from nabudb.utils.defaults import DEFAULT_STRICT, DefaultsProfile


class PolicyClient(OperationSurface):
    """
    Drop-in replacement for a raw storage client.

    Usage:
        client = PolicyClient(storage, schema, resolver=SessionActorResolver())
        with actor_session(ActorContext(user_id="u1", tenant_id="t1")):
            notes = await client.model("Note").find_many(where={"folder_id": "f1"})
    """

    def __init__(
        self,
        storage: StorageClient,
        schema: SchemaMap,
        resolver: ActorResolver | None = None,
        config: PolicyConfig | None = None,
        audit_store: AuditStore | None = None,
        chain: InterceptorChain | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            storage: Raw storage client the chain ends at
            schema: Schema relationship map
            resolver: Where the acting identity comes from (default: ambient session)
            config: Policy configuration
            audit_store: Audit sink (default: audit log rows via ``storage``)
            chain: Pre-built chain, for custom interceptor stacks
        """
        self.storage = storage
        self.schema = schema
        self.resolver = resolver or SessionActorResolver()
        self.config = config or PolicyConfig()
        self.audit_store = audit_store
        self.chain = chain or InterceptorChain.default(
            schema, storage, self.config, audit_store
        )

    @property
    def raw(self) -> StorageClient:
        """The unscoped storage client. Bypasses every policy."""
        return self.storage

    async def execute(
        self,
        model: str,
        operation: Operation | str,
        args: dict[str, Any] | None = None,
    ) -> Any:
        """
        Execute one operation with all policies applied.

        Raises:
            UnknownModelError: the model is not in the schema map
            UnsupportedOperationError: the operation name is unknown
        """
        self.schema.get_model(model)
        operation = Operation.parse(operation, model)
        actor = await self.resolver.resolve()

        invocation = Invocation(
            model=model,
            operation=operation,
            args=copy.deepcopy(args) if args else {},
            actor=actor,
        )
        return await self.chain.invoke(invocation)

    def with_actor(self, actor: ActorContext) -> PolicyClient:
        """Return a client that always acts as ``actor``."""
        return PolicyClient(
            self.storage,
            self.schema,
            resolver=StaticActorResolver(actor),
            config=self.config,
            audit_store=self.audit_store,
            chain=self.chain,
        )

    def as_system(self, tenant_id: str | None = None, user_id: str | None = None) -> PolicyClient:
        """
        Return a client acting as the system actor.

        The system actor is the only one whose payload-named tenant is
        trusted under the default override policy (webhooks, background jobs).
        """
        return self.with_actor(ActorContext.system(tenant_id=tenant_id, user_id=user_id))


def create_policy_client(
    storage: StorageClient,
    schema: SchemaMap,
    resolver: ActorResolver | None = None,
    profile: DefaultsProfile = DEFAULT_STRICT,
    audit_store: AuditStore | None = None,
    **config_overrides: Any,
) -> PolicyClient:
    """
    Build a policy client from a defaults profile.

    Example:
        client = create_policy_client(storage, schema, profile=DEFAULT_COMPAT)
    """
    config = profile.to_policy_config(**config_overrides)
    return PolicyClient(
        storage,
        schema,
        resolver=resolver,
        config=config,
        audit_store=audit_store,
    )
