"""
Tests for the interceptor chain.
"""

import pytest

from nabudb.core.context import ActorContext
from nabudb.core.types import Invocation, Operation
from nabudb.logging import get_log_context
from nabudb.policy import (
    ActorStampInterceptor,
    AuditInterceptor,
    Interceptor,
    InterceptorChain,
    SoftDeleteInterceptor,
    TenantInterceptor,
)
from nabudb.utils.testing import RecordingStorageClient


class Tracer(Interceptor):
    def __init__(self, schema, label, trail):
        super().__init__(schema)
        self.label = label
        self.trail = trail

    async def intercept(self, invocation, call_next):
        self.trail.append(f"{self.label}:before")
        result = await call_next(invocation)
        self.trail.append(f"{self.label}:after")
        return result


class ShortCircuit(Interceptor):
    async def intercept(self, invocation, call_next):
        return "cached"


class ContextRecordingStorage(RecordingStorageClient):
    def __init__(self):
        super().__init__()
        self.contexts = []

    async def execute(self, model, operation, args=None):
        self.contexts.append(get_log_context())
        return await super().execute(model, operation, args)


def invocation(operation="findMany", args=None):
    return Invocation(
        model="Note",
        operation=Operation.parse(operation),
        args=args or {},
        actor=ActorContext(user_id="u1", tenant_id="t1"),
    )


class TestInterceptorChain:
    def test_default_order(self, schema, recorder):
        chain = InterceptorChain.default(schema, recorder)
        assert [type(i) for i in chain] == [
            SoftDeleteInterceptor,
            TenantInterceptor,
            ActorStampInterceptor,
            AuditInterceptor,
        ]
        assert len(chain) == 4

    def test_default_shares_config(self, schema, recorder):
        chain = InterceptorChain.default(schema, recorder)
        configs = {id(i.config) for i in chain}
        assert len(configs) == 1

    @pytest.mark.asyncio
    async def test_interceptors_nest_in_order(self, schema, recorder):
        trail = []
        chain = InterceptorChain(
            [Tracer(schema, "a", trail), Tracer(schema, "b", trail)], recorder
        )
        await chain.invoke(invocation())
        assert trail == ["a:before", "b:before", "b:after", "a:after"]
        assert len(recorder.calls) == 1

    @pytest.mark.asyncio
    async def test_interceptor_can_answer_itself(self, schema, recorder):
        chain = InterceptorChain([ShortCircuit(schema)], recorder)
        assert await chain.invoke(invocation()) == "cached"
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_empty_chain_reaches_storage(self, recorder):
        recorder.set_result("Note", "findMany", [{"id": "n1"}])
        chain = InterceptorChain([], recorder)
        assert await chain.invoke(invocation()) == [{"id": "n1"}]

    @pytest.mark.asyncio
    async def test_log_context_is_set_during_call(self, schema):
        storage = ContextRecordingStorage()
        chain = InterceptorChain([], storage)
        inv = invocation("delete", {"where": {"id": "n1"}})

        await chain.invoke(inv)

        (context,) = storage.contexts
        assert context["tenant_id"] == "t1"
        assert context["user_id"] == "u1"
        assert context["model"] == "Note"
        assert context["operation"] == "delete"
        assert context["request_id"] == inv.request_id
        assert get_log_context() == {}

    @pytest.mark.asyncio
    async def test_full_chain_delete(self, schema, recorder):
        chain = InterceptorChain.default(schema, recorder)
        await chain.invoke(invocation("delete", {"where": {"id": "n1"}}))

        (note_call,) = recorder.calls_for("Note")
        assert note_call.operation == Operation.UPDATE
        (audit_call,) = recorder.calls_for("AuditLog")
        assert audit_call.data["action"] == "delete"
