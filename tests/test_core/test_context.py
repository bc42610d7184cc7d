"""
Tests for the context module.
"""

import asyncio

import pytest

from nabudb.core.context import (
    ActorContext,
    CallableActorResolver,
    SessionActorResolver,
    StaticActorResolver,
    actor_session,
    current_session_actor,
)


class TestActorContext:
    def test_anonymous_actor(self):
        actor = ActorContext.anonymous()
        assert actor.user_id is None
        assert actor.tenant_id is None
        assert not actor.is_system
        assert not actor.is_authenticated

    def test_system_actor(self):
        actor = ActorContext.system(tenant_id="t1")
        assert actor.is_system
        assert actor.tenant_id == "t1"
        assert actor.user_id is None

    def test_from_mapping_snake_case(self):
        actor = ActorContext.from_mapping({"user_id": "u1", "tenant_id": "t1"})
        assert actor == ActorContext(user_id="u1", tenant_id="t1")

    def test_from_mapping_camel_case(self):
        actor = ActorContext.from_mapping({"userId": "u1", "tenantId": "t1"})
        assert actor.user_id == "u1"
        assert actor.tenant_id == "t1"

    def test_from_empty_mapping(self):
        assert ActorContext.from_mapping(None) == ActorContext.anonymous()
        assert ActorContext.from_mapping({}) == ActorContext.anonymous()

    def test_actor_is_immutable(self):
        actor = ActorContext(user_id="u1")
        with pytest.raises(AttributeError):
            actor.user_id = "u2"


class TestResolvers:
    @pytest.mark.asyncio
    async def test_static_resolver(self):
        actor = ActorContext(user_id="u1", tenant_id="t1")
        assert await StaticActorResolver(actor).resolve() == actor

    @pytest.mark.asyncio
    async def test_static_resolver_defaults_to_anonymous(self):
        assert await StaticActorResolver().resolve() == ActorContext.anonymous()

    @pytest.mark.asyncio
    async def test_session_resolver_without_session(self):
        assert await SessionActorResolver().resolve() == ActorContext.anonymous()

    @pytest.mark.asyncio
    async def test_session_resolver_inside_session(self):
        actor = ActorContext(user_id="u1", tenant_id="t1")
        with actor_session(actor):
            assert await SessionActorResolver().resolve() == actor
        assert await SessionActorResolver().resolve() == ActorContext.anonymous()

    @pytest.mark.asyncio
    async def test_nested_sessions_restore_outer_actor(self):
        outer = ActorContext(user_id="u1", tenant_id="t1")
        inner = ActorContext(user_id="u2", tenant_id="t2")
        with actor_session(outer):
            with actor_session(inner):
                assert current_session_actor() == inner
            assert current_session_actor() == outer
        assert current_session_actor() is None

    @pytest.mark.asyncio
    async def test_sessions_are_task_local(self):
        async def resolve_in(actor):
            with actor_session(actor):
                await asyncio.sleep(0)
                return await SessionActorResolver().resolve()

        a = ActorContext(user_id="a", tenant_id="ta")
        b = ActorContext(user_id="b", tenant_id="tb")
        results = await asyncio.gather(resolve_in(a), resolve_in(b))
        assert results == [a, b]

    @pytest.mark.asyncio
    async def test_callable_resolver_sync_mapping(self):
        resolver = CallableActorResolver(lambda: {"userId": "u1", "tenantId": "t1"})
        assert await resolver.resolve() == ActorContext(user_id="u1", tenant_id="t1")

    @pytest.mark.asyncio
    async def test_callable_resolver_async(self):
        async def lookup():
            return ActorContext(user_id="u9", tenant_id="t9")

        actor = await CallableActorResolver(lookup).resolve()
        assert actor.user_id == "u9"

    @pytest.mark.asyncio
    async def test_callable_resolver_none_is_anonymous(self):
        assert await CallableActorResolver(lambda: None).resolve() == ActorContext.anonymous()
