"""
Nested write execution for the SQLAlchemy backend.

Applies create/update payloads, including nested relation operations
(create, createMany, connect, connectOrCreate, set, disconnect, update,
updateMany, upsert, delete, deleteMany), to ORM instances.
"""

from typing import Any

from sqlalchemy import inspect, select
from sqlalchemy.orm import RelationshipProperty, Session

from nabudb.adapters.sqlalchemy.compiler import SQLAlchemyCompiler
from nabudb.core.errors import RecordNotFoundError, ValidationError


class MutationExecutor:
    """
    Writes payloads onto ORM instances.

    All methods are synchronous and take the Session to operate on; the
    client runs them through ``AsyncSession.run_sync`` for async sessions.
    Autoflush is disabled while a payload is applied so that half-built
    children are never flushed before they are attached to their parent.
    """

    def __init__(self, compiler: SQLAlchemyCompiler) -> None:
        self.compiler = compiler

    def create(self, session: Session, model_class: type, data: dict[str, Any]) -> Any:
        """Create and flush a new instance from a payload."""
        with session.no_autoflush:
            instance = model_class()
            self.apply(session, instance, data, add=True)
        self._flush(session, instance, data)
        return instance

    def update(self, session: Session, instance: Any, data: dict[str, Any]) -> Any:
        """Apply a payload to an existing instance and flush."""
        with session.no_autoflush:
            self.apply(session, instance, data)
        self._flush(session, instance, data)
        return instance

    def _flush(self, session: Session, instance: Any, data: dict[str, Any]) -> None:
        session.flush()
        # Nested deletes and updates bypass the loaded collections
        touched = [k for k in data if k in inspect(type(instance)).relationships]
        if touched:
            session.expire(instance, touched)

    def apply(
        self,
        session: Session,
        instance: Any,
        data: dict[str, Any],
        add: bool = False,
    ) -> None:
        """
        Apply a payload to an instance.

        Columns are assigned first, then the instance is added to the session
        (when ``add`` is set), then relation operations run.
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Write data must be an object, got {type(data).__name__}")

        mapper = inspect(type(instance))
        relations: list[tuple[RelationshipProperty, Any]] = []

        for key, value in data.items():
            if key in mapper.relationships:
                relations.append((mapper.relationships[key], value))
            elif key in mapper.column_attrs:
                setattr(instance, key, value)
            else:
                raise ValidationError(
                    f"Field '{key}' does not exist on model '{type(instance).__name__}'",
                    field=key,
                )

        if add:
            session.add(instance)

        for rel, ops in relations:
            self._apply_relation(session, instance, rel, ops)

    def _apply_relation(
        self,
        session: Session,
        instance: Any,
        rel: RelationshipProperty,
        ops: Any,
    ) -> None:
        if not isinstance(ops, dict):
            raise ValidationError(f"Relation '{rel.key}' expects an operation object", field=rel.key)

        target = rel.mapper.class_
        for op, payload in ops.items():
            match op:
                case "create":
                    for item in _as_list(payload):
                        self._attach(instance, rel, self._build(session, target, item))
                case "createMany":
                    for item in _as_list(payload.get("data", [])):
                        self._attach(instance, rel, self._build(session, target, item))
                case "connect":
                    for where in _as_list(payload):
                        self._attach(instance, rel, self._find_unique(session, target, where))
                case "connectOrCreate":
                    for entry in _as_list(payload):
                        found = self._find_first(session, target, entry["where"])
                        if found is None:
                            found = self._build(session, target, entry["create"])
                        self._attach(instance, rel, found)
                case "set":
                    if not rel.uselist:
                        raise ValidationError("'set' requires a collection relation", field=rel.key)
                    setattr(
                        instance,
                        rel.key,
                        [self._find_unique(session, target, w) for w in _as_list(payload)],
                    )
                case "disconnect":
                    self._disconnect(session, instance, rel, payload)
                case "update":
                    self._update_related(session, instance, rel, payload)
                case "updateMany":
                    for entry in _as_list(payload):
                        for child in self._related(session, instance, rel, entry.get("where")):
                            self.apply(session, child, entry["data"])
                case "upsert":
                    self._upsert_related(session, instance, rel, payload)
                case "delete":
                    self._delete_related(session, instance, rel, payload)
                case "deleteMany":
                    filters = [{}] if payload is True or payload is None else _as_list(payload)
                    for where in filters:
                        for child in self._related(session, instance, rel, where):
                            session.delete(child)
                case _:
                    raise ValidationError(f"Unsupported nested operation: {op}", field=rel.key)

    def _build(self, session: Session, target: type, data: dict[str, Any]) -> Any:
        # Added to the session by cascade once attached to its parent
        child = target()
        self.apply(session, child, data)
        return child

    def _attach(self, instance: Any, rel: RelationshipProperty, child: Any) -> None:
        if rel.uselist:
            collection = getattr(instance, rel.key)
            if child not in collection:
                collection.append(child)
        else:
            setattr(instance, rel.key, child)

    def _disconnect(
        self, session: Session, instance: Any, rel: RelationshipProperty, payload: Any
    ) -> None:
        if not rel.uselist:
            if payload:
                setattr(instance, rel.key, None)
            return
        collection = getattr(instance, rel.key)
        for where in _as_list(payload):
            child = self._find_unique(session, rel.mapper.class_, where)
            if child in collection:
                collection.remove(child)

    def _update_related(
        self, session: Session, instance: Any, rel: RelationshipProperty, payload: Any
    ) -> None:
        if not rel.uselist:
            child = getattr(instance, rel.key)
            if child is None:
                raise RecordNotFoundError(rel.mapper.class_.__name__)
            data = payload["data"] if _is_wrapped(payload) else payload
            self.apply(session, child, data)
            return
        for entry in _as_list(payload):
            matches = self._related(session, instance, rel, entry.get("where"))
            if not matches:
                raise RecordNotFoundError(rel.mapper.class_.__name__, entry.get("where"))
            self.apply(session, matches[0], entry["data"])

    def _upsert_related(
        self, session: Session, instance: Any, rel: RelationshipProperty, payload: Any
    ) -> None:
        target = rel.mapper.class_
        for entry in _as_list(payload):
            if rel.uselist:
                matches = self._related(session, instance, rel, entry.get("where"))
                existing = matches[0] if matches else None
            else:
                existing = getattr(instance, rel.key)
            if existing is not None:
                self.apply(session, existing, entry["update"])
            else:
                self._attach(instance, rel, self._build(session, target, entry["create"]))

    def _delete_related(
        self, session: Session, instance: Any, rel: RelationshipProperty, payload: Any
    ) -> None:
        if not rel.uselist:
            if payload:
                child = getattr(instance, rel.key)
                if child is None:
                    raise RecordNotFoundError(rel.mapper.class_.__name__)
                session.delete(child)
            return
        for where in _as_list(payload):
            matches = self._related(session, instance, rel, where)
            if not matches:
                raise RecordNotFoundError(rel.mapper.class_.__name__, where)
            session.delete(matches[0])

    def _related(
        self,
        session: Session,
        instance: Any,
        rel: RelationshipProperty,
        where: dict[str, Any] | None,
    ) -> list[Any]:
        """Rows of a collection relation that belong to ``instance`` and match ``where``."""
        if rel.secondary is not None:
            raise ValidationError(
                f"Filtered nested writes on many-to-many relation '{rel.key}' are not supported",
                field=rel.key,
            )
        session.flush()

        target = rel.mapper.class_
        parent_mapper = inspect(type(instance))
        stmt = select(target).where(self.compiler.build_where(target, where))
        for local, remote in rel.local_remote_pairs:
            value = getattr(instance, parent_mapper.get_property_by_column(local).key)
            stmt = stmt.where(remote == value)
        return list(session.scalars(stmt).all())

    def _find_first(self, session: Session, target: type, where: dict[str, Any]) -> Any:
        stmt = select(target).where(self.compiler.build_where(target, where)).limit(1)
        return session.scalars(stmt).first()

    def _find_unique(self, session: Session, target: type, where: dict[str, Any]) -> Any:
        found = self._find_first(session, target, where)
        if found is None:
            raise RecordNotFoundError(target.__name__, where)
        return found


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else [value]


def _is_wrapped(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("data"), dict)
        and set(value) <= {"where", "data"}
    )
