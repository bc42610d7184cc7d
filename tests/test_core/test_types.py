"""
Tests for operation types, invocations and errors.
"""

from datetime import datetime

import pytest

from nabudb.core.context import ActorContext
from nabudb.core.errors import (
    NabuDBError,
    RecordNotFoundError,
    TenantOverrideNotAllowedError,
    UnknownModelError,
    UnsupportedOperationError,
)
from nabudb.core.types import READ_OPERATIONS, WRITE_OPERATIONS, Invocation, Operation


class TestOperation:
    def test_parse_string(self):
        assert Operation.parse("findMany") is Operation.FIND_MANY
        assert Operation.parse("deleteMany") is Operation.DELETE_MANY

    def test_parse_passthrough(self):
        assert Operation.parse(Operation.UPDATE) is Operation.UPDATE

    def test_parse_unknown(self):
        with pytest.raises(UnsupportedOperationError) as exc:
            Operation.parse("upsert", "Note")
        assert exc.value.details["operation"] == "upsert"
        assert exc.value.details["model"] == "Note"

    def test_classification(self):
        assert Operation.FIND.is_read
        assert Operation.GROUP_BY.is_read
        assert Operation.CREATE_MANY.is_write
        assert not Operation.DELETE.is_write
        assert Operation.DELETE.is_delete
        assert Operation.DELETE_MANY.is_mutation
        assert not Operation.COUNT.is_mutation
        assert Operation.UPDATE_MANY.is_bulk
        assert not Operation.UPDATE.is_bulk

    def test_operation_sets_are_disjoint(self):
        assert not READ_OPERATIONS & WRITE_OPERATIONS
        assert len(READ_OPERATIONS | WRITE_OPERATIONS) == 8


class TestInvocation:
    def test_action_defaults_to_operation(self):
        inv = Invocation(model="Note", operation=Operation.DELETE, args={})
        assert inv.action == "delete"

    def test_evolve_keeps_action(self):
        inv = Invocation(model="Note", operation=Operation.DELETE, args={"where": {"id": "n1"}})
        evolved = inv.evolve(operation=Operation.UPDATE)
        assert evolved.operation is Operation.UPDATE
        assert evolved.action == "delete"
        assert inv.operation is Operation.DELETE

    def test_with_decision_appends(self):
        inv = Invocation(model="Note", operation=Operation.FIND, args={})
        inv = inv.with_decision("first").with_decision("second")
        assert inv.decisions == ("first", "second")

    def test_defaults(self):
        inv = Invocation(model="Note", operation=Operation.FIND, args={})
        assert inv.actor == ActorContext.anonymous()
        assert isinstance(inv.now, datetime)
        assert inv.now.tzinfo is not None
        assert inv.request_id
        assert inv.tenant_id is None

    def test_where_and_data_accessors(self):
        inv = Invocation(
            model="Note",
            operation=Operation.UPDATE,
            args={"where": {"id": "n1"}, "data": {"title": "x"}},
        )
        assert inv.where == {"id": "n1"}
        assert inv.data == {"title": "x"}
        assert Invocation(model="Note", operation=Operation.FIND, args={}).where == {}

    def test_is_frozen(self):
        inv = Invocation(model="Note", operation=Operation.FIND, args={})
        with pytest.raises(AttributeError):
            inv.model = "Tag"


class TestErrors:
    def test_base_to_dict(self):
        err = NabuDBError("boom", retry_hints=["try again"], details={"a": 1})
        assert err.to_dict() == {
            "code": "NABUDB_ERROR",
            "message": "boom",
            "retry_hints": ["try again"],
            "details": {"a": 1},
        }

    def test_unknown_model_lists_known_models(self):
        err = UnknownModelError("Nope", known_models=["Note", "Tag"])
        assert err.code == "UNKNOWN_MODEL"
        assert "Note" in err.retry_hints[0]
        assert err.details == {"model": "Nope"}

    def test_tenant_override_details(self):
        err = TenantOverrideNotAllowedError("Note", "t2", "t1")
        assert err.details["requested_tenant"] == "t2"
        assert err.details["actor_tenant"] == "t1"

    def test_not_found_details(self):
        err = RecordNotFoundError("Note", {"id": "n1"})
        assert err.code == "NOT_FOUND"
        assert err.details["where"] == {"id": "n1"}
        assert isinstance(err, NabuDBError)
