"""
Recursive mutation rewriter.

Walks a (possibly nested) write payload and injects policy stamps at every
row that will be created or updated. Each policy describes what to inject
with an Injection; the rewriter decides where and in which form.

Scalar vs relational form: a row whose payload writes a relation backed by a
local foreign key (``folder: {connect: ...}``) cannot also carry raw foreign
key columns, so stamps for such a row are written through relations
(``tenant: {connect: {id: t}}``) and the matching column is dropped. Every
other row gets bare columns (``tenant_id: t``). createMany rows only accept
columns. Either way a caller-written relation that is backed by a stamped
column is removed, so it cannot redirect the row.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any

from nabudb.core.errors import PolicyConfigurationError, UnsupportedOperationError
from nabudb.core.types import Operation
from nabudb.policy.payload import (
    REFERENCE_KINDS,
    ConnectOrCreate,
    Create,
    CreateMany,
    Delete,
    DeleteMany,
    NestedOp,
    Reference,
    RelationWrite,
    Update,
    UpdateEntry,
    UpdateMany,
    Upsert,
    WriteData,
    parse_data,
    parse_data_list,
    render_data,
    render_data_list,
)
from nabudb.schema.map import SchemaMap, SchemaModelEntry

# Given a target model, returns the update data that replaces a delete of its
# rows, or None to keep the delete as-is
NestedDeleteRule = Callable[[str], dict[str, Any] | None]


@dataclass(frozen=True)
class Stamps:
    """Values to merge into a row, in scalar and relational form."""

    scalar: dict[str, Any] = field(default_factory=dict)

    # Relation name -> reference block (e.g. {"connect": {"id": ...}}) or a
    # plain column value; None means "same as scalar"
    relational: dict[str, Any] | None = None

    def relational_view(self) -> dict[str, Any]:
        return self.scalar if self.relational is None else self.relational


@dataclass(frozen=True)
class Injection:
    """
    What a policy injects into a write.

    Attributes:
        create: Stamps for rows being created
        update: Stamps for rows being updated
        nested_delete: Rule applied to nested delete/deleteMany operations
    """

    create: Stamps | None = None
    update: Stamps | None = None
    nested_delete: NestedDeleteRule | None = None


class MutationRewriter:
    """
    Schema-aware rewriter for write payloads.

    Recursion only follows keys the current model declares as relations, so
    self-referencing models cannot make it loop: depth is bounded by the
    payload itself.
    """

    def __init__(self, schema: SchemaMap) -> None:
        self.schema = schema

    def rewrite(
        self,
        model: str,
        operation: Operation | str,
        data: Any,
        injection: Injection,
    ) -> Any:
        """
        Return a rewritten copy of ``data`` for the given write operation.

        The input payload is not modified.
        """
        operation = Operation.parse(operation, model)
        match operation:
            case Operation.CREATE:
                node = parse_data(self.schema, model, data if data is not None else {})
                return render_data(self._rewrite_row(node, "create", False, injection))
            case Operation.CREATE_MANY:
                items, many = parse_data_list(self.schema, model, data if data is not None else [])
                rewritten = tuple(self._rewrite_row(i, "create", True, injection) for i in items)
                return render_data_list(rewritten, many)
            case Operation.UPDATE:
                node = parse_data(self.schema, model, data if data is not None else {})
                return render_data(self._rewrite_row(node, "update", False, injection))
            case Operation.UPDATE_MANY:
                node = parse_data(self.schema, model, data if data is not None else {})
                return render_data(self._rewrite_row(node, "update", True, injection))
            case _:
                raise UnsupportedOperationError(operation.value, model)

    def rows(self, model: str, operation: Operation | str, data: Any) -> Iterator[WriteData]:
        """Yield every row a write creates or updates, nested rows included."""
        operation = Operation.parse(operation, model)
        match operation:
            case Operation.CREATE_MANY:
                items, _ = parse_data_list(self.schema, model, data if data is not None else [])
            case Operation.CREATE | Operation.UPDATE | Operation.UPDATE_MANY:
                items = (parse_data(self.schema, model, data if data is not None else {}),)
            case _:
                raise UnsupportedOperationError(operation.value, model)
        for item in items:
            yield from _walk(item)

    def uses_relational_form(self, node: WriteData, bulk: bool = False) -> bool:
        """Whether stamps for this row must be written through relations."""
        if bulk:
            return False
        entry = self.schema.get_model(node.model)
        return any(entry.foreign_key_for(name) is not None for name in node.relations)

    # =========================================================================
    # ROWS
    # =========================================================================

    def _rewrite_row(
        self,
        node: WriteData,
        mode: str,
        bulk: bool,
        injection: Injection,
    ) -> WriteData:
        relations = {
            name: self._rewrite_relation(relation, injection)
            for name, relation in node.relations.items()
        }
        node = replace(node, relations=relations)
        stamps = injection.create if mode == "create" else injection.update
        if stamps is None:
            return node
        return self._apply_stamps(node, stamps, bulk)

    def _apply_stamps(self, node: WriteData, stamps: Stamps, bulk: bool) -> WriteData:
        entry = self.schema.get_model(node.model)
        scalars = dict(node.scalars)
        relations = dict(node.relations)
        stamped_relations: set[str] = set()

        if self.uses_relational_form(node, bulk):
            replaced: set[str] = set()
            for key, value in stamps.relational_view().items():
                if entry.is_relation(key):
                    relations[key] = _reference_write(entry, key, value)
                    stamped_relations.add(key)
                    fk = entry.foreign_key_for(key)
                    if fk is not None:
                        scalars.pop(fk, None)
                        replaced.add(fk)
                elif key in entry.scalar_fields:
                    scalars[key] = value
                    replaced.add(key)
            # Models without the stamp relation still get the bare column
            for key, value in stamps.scalar.items():
                if key in entry.scalar_fields and key not in replaced:
                    scalars[key] = value
        else:
            for key, value in stamps.scalar.items():
                if key in entry.scalar_fields:
                    scalars[key] = value

        # A caller's relation write backed by a stamped column would overwrite the stamp
        for name in list(relations):
            if name not in stamped_relations and entry.foreign_key_for(name) in stamps.scalar:
                del relations[name]

        return replace(node, scalars=scalars, relations=relations)

    # =========================================================================
    # NESTED OPERATIONS
    # =========================================================================

    def _rewrite_relation(self, relation: RelationWrite, injection: Injection) -> RelationWrite:
        ops = tuple(self._rewrite_op(relation, op, injection) for op in relation.ops)
        return replace(relation, ops=ops)

    def _rewrite_op(self, relation: RelationWrite, op: NestedOp, injection: Injection) -> NestedOp:
        match op:
            case Create(items=items):
                return replace(
                    op, items=tuple(self._rewrite_row(i, "create", False, injection) for i in items)
                )
            case CreateMany(items=items):
                return replace(
                    op, items=tuple(self._rewrite_row(i, "create", True, injection) for i in items)
                )
            case Reference():
                return op
            case ConnectOrCreate(entries=entries):
                return replace(
                    op,
                    entries=tuple(
                        replace(e, create=self._rewrite_row(e.create, "create", False, injection))
                        for e in entries
                    ),
                )
            case Update(entries=entries):
                return replace(
                    op,
                    entries=tuple(
                        replace(e, data=self._rewrite_row(e.data, "update", False, injection))
                        for e in entries
                    ),
                )
            case UpdateMany(entries=entries):
                return replace(
                    op,
                    entries=tuple(
                        replace(e, data=self._rewrite_row(e.data, "update", True, injection))
                        for e in entries
                    ),
                )
            case Upsert(entries=entries):
                return replace(
                    op,
                    entries=tuple(
                        replace(
                            e,
                            create=self._rewrite_row(e.create, "create", False, injection),
                            update=self._rewrite_row(e.update, "update", False, injection),
                        )
                        for e in entries
                    ),
                )
            case Delete() | DeleteMany():
                return self._rewrite_delete(relation, op, injection)
            case _:
                raise TypeError(f"Unhandled nested operation: {op!r}")

    def _rewrite_delete(
        self,
        relation: RelationWrite,
        op: Delete | DeleteMany,
        injection: Injection,
    ) -> NestedOp:
        if injection.nested_delete is None:
            return op
        data = injection.nested_delete(relation.target)
        if data is None:
            return op

        def row() -> WriteData:
            return WriteData(model=relation.target, scalars=dict(data))

        if isinstance(op, Delete):
            if op.value is True:
                return Update(entries=(UpdateEntry(where=None, data=row(), wrapped=False),))
            wheres = op.value if isinstance(op.value, list) else [op.value]
            return Update(
                entries=tuple(UpdateEntry(where=w, data=row()) for w in wheres),
                many=isinstance(op.value, list),
            )

        if op.value is True or op.value is None:
            filters = [{}]
        elif isinstance(op.value, list):
            filters = op.value
        else:
            filters = [op.value]
        return UpdateMany(
            entries=tuple(UpdateEntry(where=f, data=row()) for f in filters),
            many=isinstance(op.value, list),
        )


def _walk(node: WriteData) -> Iterator[WriteData]:
    yield node
    for relation in node.relations.values():
        for op in relation.ops:
            for row in _op_rows(op):
                yield from _walk(row)


def _op_rows(op: NestedOp) -> tuple[WriteData, ...]:
    match op:
        case Create(items=items) | CreateMany(items=items):
            return items
        case ConnectOrCreate(entries=entries):
            return tuple(e.create for e in entries)
        case Update(entries=entries) | UpdateMany(entries=entries):
            return tuple(e.data for e in entries)
        case Upsert(entries=entries):
            return tuple(row for e in entries for row in (e.create, e.update))
        case _:
            return ()


def _reference_write(entry: SchemaModelEntry, name: str, value: Any) -> RelationWrite:
    if not isinstance(value, dict) or not set(value) <= set(REFERENCE_KINDS):
        raise PolicyConfigurationError(
            entry.name,
            f"relational stamp for '{name}' must be a connect/set/disconnect block",
        )
    return RelationWrite(
        name=name,
        target=entry.relation_target(name),
        ops=tuple(Reference(kind=kind, value=v) for kind, v in value.items()),
    )
