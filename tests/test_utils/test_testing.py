"""
Tests for testing utilities.
"""

import pytest

from nabudb.core.types import Operation
from nabudb.utils.testing import MultiTenantFixture, RecordingStorageClient


class TestRecordingStorageClient:
    @pytest.mark.asyncio
    async def test_records_calls(self, recorder):
        args = {"where": {"id": "n1"}}
        await recorder.execute("Note", "find", args)
        args["where"]["id"] = "changed"

        (call,) = recorder.calls
        assert call.model == "Note"
        assert call.operation == Operation.FIND
        assert call.where == {"id": "n1"}

    @pytest.mark.asyncio
    async def test_synthesised_results(self, recorder):
        created = await recorder.execute("Note", "create", {"data": {"title": "x", "note_tags": {}}})
        assert created["title"] == "x"
        assert created["id"]
        assert "note_tags" not in created

        assert await recorder.execute("Note", "createMany", {"data": [{}, {}]}) == {"count": 2}
        assert await recorder.execute("Note", "update", {"where": {"id": "n1"}, "data": {"title": "y"}}) == {
            "id": "n1",
            "title": "y",
        }
        assert await recorder.execute("Note", "delete", {"where": {"id": "n1"}}) == {"id": "n1"}
        assert await recorder.execute("Note", "updateMany", {}) == {"count": 0}
        assert await recorder.execute("Note", "find") is None
        assert await recorder.execute("Note", "findMany") == []
        assert await recorder.execute("Note", "count") == 0

    @pytest.mark.asyncio
    async def test_canned_results_and_failures(self, recorder):
        recorder.set_result("Note", "findMany", [{"id": "n1"}])
        recorder.fail_on("Tag", Operation.CREATE, RuntimeError("boom"))

        assert await recorder.execute("Note", "findMany") == [{"id": "n1"}]
        with pytest.raises(RuntimeError):
            await recorder.execute("Tag", "create", {"data": {}})
        assert len(recorder.calls_for(operation="create")) == 1

    @pytest.mark.asyncio
    async def test_transaction_counters(self, recorder):
        async with recorder.transaction():
            pass
        with pytest.raises(ValueError):
            async with recorder.transaction():
                raise ValueError
        assert (recorder.commits, recorder.rollbacks) == (1, 1)

    @pytest.mark.asyncio
    async def test_wraps_real_client(self, seeded):
        recorder = RecordingStorageClient(seeded)
        async with recorder.transaction():
            await recorder.model("Tag").create(data={"id": "g3", "name": "x"})

        assert recorder.calls_for("Tag")[0].data == {"id": "g3", "name": "x"}
        assert await seeded.model("Tag").count() == 3
        assert recorder.commits == 1

        recorder.clear()
        assert recorder.calls == []


class TestMultiTenantFixture:
    def test_actors(self):
        fixture = MultiTenantFixture()
        fixture.add_tenant("t1", users=["u1"])
        fixture.add_tenant("t2", name="Second")
        fixture.add_user("u2", "t2")

        assert fixture.tenant_ids == ["t1", "t2"]
        actor = fixture.actor_for("u2")
        assert (actor.user_id, actor.tenant_id) == ("u2", "t2")

    def test_unknown_ids(self):
        fixture = MultiTenantFixture()
        with pytest.raises(ValueError):
            fixture.add_user("u1", "t1")
        with pytest.raises(ValueError):
            fixture.actor_for("u1")

    def test_verify_isolation(self):
        fixture = MultiTenantFixture()
        rows = [{"tenant_id": "t1"}, {"tenant_id": "t1"}]
        assert fixture.verify_isolation(rows, "t1")
        assert not fixture.verify_isolation(rows + [{"tenant_id": "t2"}], "t1")
        assert fixture.verify_isolation([], "t1")
