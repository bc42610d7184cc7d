"""
Actor context and resolvers.

The actor is the identity (user + tenant) an operation is attributed to.
Resolvers are the single point where the engine learns who is acting; the
chain resolves once per call and passes the result along explicitly.
"""

from __future__ import annotations

import contextvars
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

_session_actor: contextvars.ContextVar[ActorContext | None] = contextvars.ContextVar(
    "nabudb_session_actor",
    default=None,
)


@dataclass(frozen=True)
class ActorContext:
    """
    The identity an operation is attributed to.

    Both fields are optional: background jobs and unauthenticated paths run
    with the anonymous actor. Only the system actor may write into a tenant
    named in the payload.
    """

    user_id: str | None = None
    tenant_id: str | None = None
    is_system: bool = False

    @classmethod
    def anonymous(cls) -> ActorContext:
        """Actor used when no session is active."""
        return cls()

    @classmethod
    def system(
        cls,
        tenant_id: str | None = None,
        user_id: str | None = None,
    ) -> ActorContext:
        """Actor for trusted, system-initiated paths such as ingestion."""
        return cls(user_id=user_id, tenant_id=tenant_id, is_system=True)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ActorContext:
        """
        Build an actor from a session-like mapping.

        Accepts both ``user_id``/``tenant_id`` and the ``userId``/``tenantId``
        spelling used by identity providers.
        """
        if not data:
            return cls.anonymous()
        return cls(
            user_id=data.get("user_id", data.get("userId")),
            tenant_id=data.get("tenant_id", data.get("tenantId")),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class ActorResolver(ABC):
    """Resolves the acting identity for an in-flight operation."""

    @abstractmethod
    async def resolve(self) -> ActorContext:
        """
        Return the current actor.

        Must return the anonymous actor rather than raise when no session
        is active.
        """
        ...


class StaticActorResolver(ActorResolver):
    """Always resolves to the same actor."""

    def __init__(self, actor: ActorContext | None = None) -> None:
        self.actor = actor or ActorContext.anonymous()

    async def resolve(self) -> ActorContext:
        return self.actor


class SessionActorResolver(ActorResolver):
    """Resolves the actor bound by the innermost ``actor_session()`` block."""

    async def resolve(self) -> ActorContext:
        return _session_actor.get() or ActorContext.anonymous()


class CallableActorResolver(ActorResolver):
    """
    Adapts a session lookup function into a resolver.

    The function may be sync or async and may return an ActorContext, a
    mapping with user/tenant ids, or None.
    """

    def __init__(
        self,
        fn: Callable[[], ActorContext | Mapping[str, Any] | None]
        | Callable[[], Awaitable[ActorContext | Mapping[str, Any] | None]],
    ) -> None:
        self.fn = fn

    async def resolve(self) -> ActorContext:
        value = self.fn()
        if inspect.isawaitable(value):
            value = await value
        if isinstance(value, ActorContext):
            return value
        return ActorContext.from_mapping(value)


def current_session_actor() -> ActorContext | None:
    """Get the actor bound to the current session, if any."""
    return _session_actor.get()


@contextmanager
def actor_session(actor: ActorContext) -> Iterator[ActorContext]:
    """
    Bind an actor to the current task for the duration of the block.

    Example:
        with actor_session(ActorContext(user_id="u1", tenant_id="t1")):
            await client.model("Note").find_many()
    """
    token = _session_actor.set(actor)
    try:
        yield actor
    finally:
        _session_actor.reset(token)
