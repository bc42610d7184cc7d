"""
Typed representation of nested write payloads.

A raw ``data`` dict is parsed once, against the schema map, into a tree of
WriteData nodes (one per row to be written) whose relation keys hold nested
operations. Policies rewrite the tree and ``render_data`` turns it back into
plain dicts with the caller's original shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeAlias

from nabudb.core.errors import InvalidPayloadError
from nabudb.schema.map import SchemaMap, SchemaModelEntry

REFERENCE_KINDS = ("connect", "set", "disconnect")


@dataclass(frozen=True)
class WriteData:
    """Column values and nested relation writes for one row."""

    model: str
    scalars: dict[str, Any] = field(default_factory=dict)
    relations: dict[str, RelationWrite] = field(default_factory=dict)


@dataclass(frozen=True)
class RelationWrite:
    """Operations applied through one relation key of a row."""

    name: str
    target: str
    ops: tuple[NestedOp, ...] = ()


@dataclass(frozen=True)
class Create:
    items: tuple[WriteData, ...]
    many: bool = False


@dataclass(frozen=True)
class CreateMany:
    items: tuple[WriteData, ...]
    options: dict[str, Any] = field(default_factory=dict)
    many: bool = True


@dataclass(frozen=True)
class Reference:
    """connect / set / disconnect: points at existing rows, never stamped."""

    kind: str
    value: Any


@dataclass(frozen=True)
class ConnectOrCreateEntry:
    where: Any
    create: WriteData


@dataclass(frozen=True)
class ConnectOrCreate:
    entries: tuple[ConnectOrCreateEntry, ...]
    many: bool = False


@dataclass(frozen=True)
class UpdateEntry:
    where: Any
    data: WriteData
    # {where, data} form, as opposed to the bare to-one form
    wrapped: bool = True


@dataclass(frozen=True)
class Update:
    entries: tuple[UpdateEntry, ...]
    many: bool = False


@dataclass(frozen=True)
class UpdateMany:
    entries: tuple[UpdateEntry, ...]
    many: bool = False


@dataclass(frozen=True)
class UpsertEntry:
    where: Any
    create: WriteData
    update: WriteData


@dataclass(frozen=True)
class Upsert:
    entries: tuple[UpsertEntry, ...]
    many: bool = False


@dataclass(frozen=True)
class Delete:
    # True for to-one relations, a unique where (or a list of them) otherwise
    value: Any


@dataclass(frozen=True)
class DeleteMany:
    # A filter, a list of filters, or True for "all related rows"
    value: Any


NestedOp: TypeAlias = (
    Create
    | CreateMany
    | Reference
    | ConnectOrCreate
    | Update
    | UpdateMany
    | Upsert
    | Delete
    | DeleteMany
)


# =========================================================================
# PARSING
# =========================================================================


def parse_data(schema: SchemaMap, model: str, payload: Any, path: str = "data") -> WriteData:
    """Parse one row payload of ``model``."""
    if not isinstance(payload, dict):
        raise InvalidPayloadError(
            f"Expected an object at '{path}', got {type(payload).__name__}",
            model=model,
            path=path,
        )
    entry = schema.get_model(model)
    scalars: dict[str, Any] = {}
    relations: dict[str, RelationWrite] = {}
    for key, value in payload.items():
        if entry.is_relation(key):
            relations[key] = _parse_relation(schema, entry, key, value, f"{path}.{key}")
        else:
            scalars[key] = value
    return WriteData(model=model, scalars=scalars, relations=relations)


def parse_data_list(
    schema: SchemaMap, model: str, payload: Any, path: str = "data"
) -> tuple[tuple[WriteData, ...], bool]:
    """Parse a single row or a list of rows; returns (rows, was_list)."""
    if isinstance(payload, list):
        return (
            tuple(parse_data(schema, model, item, f"{path}[{i}]") for i, item in enumerate(payload)),
            True,
        )
    return (parse_data(schema, model, payload, path),), False


def _parse_relation(
    schema: SchemaMap,
    entry: SchemaModelEntry,
    name: str,
    value: Any,
    path: str,
) -> RelationWrite:
    if not isinstance(value, dict):
        raise InvalidPayloadError(
            f"Relation '{name}' must be written through a nested operation object",
            model=entry.name,
            path=path,
        )
    target = entry.relation_target(name)
    ops = tuple(
        _parse_op(schema, target, op_key, op_value, f"{path}.{op_key}")
        for op_key, op_value in value.items()
    )
    return RelationWrite(name=name, target=target, ops=ops)


def _parse_op(schema: SchemaMap, target: str, key: str, value: Any, path: str) -> NestedOp:
    match key:
        case "create":
            items, many = parse_data_list(schema, target, value, path)
            return Create(items=items, many=many)
        case "createMany":
            if not isinstance(value, dict) or "data" not in value:
                raise InvalidPayloadError(
                    "createMany requires a 'data' key", model=target, path=path
                )
            items, many = parse_data_list(schema, target, value["data"], f"{path}.data")
            options = {k: v for k, v in value.items() if k != "data"}
            return CreateMany(items=items, options=options, many=many)
        case "connect" | "set" | "disconnect":
            return Reference(kind=key, value=value)
        case "connectOrCreate":
            entries = tuple(
                ConnectOrCreateEntry(
                    where=_require(item, "where", target, p),
                    create=parse_data(schema, target, _require(item, "create", target, p), f"{p}.create"),
                )
                for item, p in _each(value, path)
            )
            return ConnectOrCreate(entries=entries, many=isinstance(value, list))
        case "update":
            if isinstance(value, list):
                entries = tuple(
                    _parse_wrapped_update(schema, target, item, p) for item, p in _each(value, path)
                )
                return Update(entries=entries, many=True)
            if _is_wrapped_update(value):
                return Update(entries=(_parse_wrapped_update(schema, target, value, path),))
            return Update(
                entries=(UpdateEntry(where=None, data=parse_data(schema, target, value, path), wrapped=False),)
            )
        case "updateMany":
            entries = tuple(
                _parse_wrapped_update(schema, target, item, p) for item, p in _each(value, path)
            )
            return UpdateMany(entries=entries, many=isinstance(value, list))
        case "upsert":
            entries = tuple(
                UpsertEntry(
                    where=item.get("where") if isinstance(item, dict) else None,
                    create=parse_data(schema, target, _require(item, "create", target, p), f"{p}.create"),
                    update=parse_data(schema, target, _require(item, "update", target, p), f"{p}.update"),
                )
                for item, p in _each(value, path)
            )
            return Upsert(entries=entries, many=isinstance(value, list))
        case "delete":
            return Delete(value=value)
        case "deleteMany":
            return DeleteMany(value=value)
        case _:
            raise InvalidPayloadError(
                f"Unknown nested write operation '{key}'", model=target, path=path
            )


def _each(value: Any, path: str) -> list[tuple[Any, str]]:
    if isinstance(value, list):
        return [(item, f"{path}[{i}]") for i, item in enumerate(value)]
    return [(value, path)]


def _require(item: Any, key: str, model: str, path: str) -> Any:
    if not isinstance(item, dict) or key not in item:
        raise InvalidPayloadError(f"Missing '{key}' in nested write", model=model, path=path)
    return item[key]


def _is_wrapped_update(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("data"), dict)
        and set(value) <= {"where", "data"}
    )


def _parse_wrapped_update(schema: SchemaMap, target: str, item: Any, path: str) -> UpdateEntry:
    data = _require(item, "data", target, path)
    return UpdateEntry(
        where=item.get("where"),
        data=parse_data(schema, target, data, f"{path}.data"),
        wrapped=True,
    )


# =========================================================================
# RENDERING
# =========================================================================


def render_data(node: WriteData) -> dict[str, Any]:
    """Turn a WriteData tree back into a plain payload dict."""
    result: dict[str, Any] = dict(node.scalars)
    for name, relation in node.relations.items():
        result[name] = render_relation(relation)
    return result


def render_data_list(items: tuple[WriteData, ...], many: bool) -> Any:
    rendered = [render_data(item) for item in items]
    return rendered if many else rendered[0]


def render_relation(relation: RelationWrite) -> dict[str, Any]:
    """Render a relation's operations, merging operations that share a key."""
    result: dict[str, Any] = {}
    for op in relation.ops:
        key, value = _render_op(op)
        if key in result:
            existing = result[key]
            merged = existing if isinstance(existing, list) else [existing]
            merged = merged + (value if isinstance(value, list) else [value])
            result[key] = merged
        else:
            result[key] = value
    return result


def _render_update_entry(entry: UpdateEntry) -> Any:
    data = render_data(entry.data)
    if not entry.wrapped:
        return data
    if entry.where is None:
        return {"data": data}
    return {"where": entry.where, "data": data}


def _shape(values: list[Any], many: bool) -> Any:
    return values if many or len(values) != 1 else values[0]


def _render_op(op: NestedOp) -> tuple[str, Any]:
    match op:
        case Create(items=items, many=many):
            return "create", render_data_list(items, many)
        case CreateMany(items=items, options=options, many=many):
            return "createMany", {"data": render_data_list(items, many), **options}
        case Reference(kind=kind, value=value):
            return kind, value
        case ConnectOrCreate(entries=entries, many=many):
            values = [{"where": e.where, "create": render_data(e.create)} for e in entries]
            return "connectOrCreate", _shape(values, many)
        case Update(entries=entries, many=many):
            return "update", _shape([_render_update_entry(e) for e in entries], many)
        case UpdateMany(entries=entries, many=many):
            return "updateMany", _shape([_render_update_entry(e) for e in entries], many)
        case Upsert(entries=entries, many=many):
            values = []
            for e in entries:
                value = {"create": render_data(e.create), "update": render_data(e.update)}
                if e.where is not None:
                    value = {"where": e.where, **value}
                values.append(value)
            return "upsert", _shape(values, many)
        case Delete(value=value):
            return "delete", value
        case DeleteMany(value=value):
            return "deleteMany", value
        case _:
            raise TypeError(f"Unhandled nested operation: {op!r}")
