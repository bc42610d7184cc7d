"""
SQLAlchemy storage client.

Executes the ten operations against SQLAlchemy models, on either a sync
Session or an AsyncSession.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, with_parent

from nabudb.adapters.base import StorageClient
from nabudb.adapters.sqlalchemy.compiler import SQLAlchemyCompiler
from nabudb.adapters.sqlalchemy.mutations import MutationExecutor
from nabudb.core.errors import RecordNotFoundError, ValidationError
from nabudb.core.types import Operation
from nabudb.logging import get_logger

logger = get_logger(__name__)


class SQLAlchemyStorageClient(StorageClient):
    """
    Raw storage client backed by a SQLAlchemy session.

    Outside of ``transaction()`` every call commits on success and rolls
    back on failure. Inside, the outermost block owns the commit and inner
    blocks run as savepoints.

    Usage:
        with Session(engine) as session:
            storage = SQLAlchemyStorageClient(session, [Tenant, Note])
            note = await storage.model("Note").create(data={...})
    """

    def __init__(self, session: Session | AsyncSession, models: list[type]) -> None:
        """
        Initialize the client.

        Args:
            session: SQLAlchemy Session or AsyncSession (owned by the caller)
            models: List of SQLAlchemy model classes to expose
        """
        self.session = session
        self.is_async = isinstance(session, AsyncSession)
        self.models = models
        self.model_map: dict[str, type] = {m.__name__: m for m in models}
        self.compiler = SQLAlchemyCompiler(self.model_map)
        self.mutations = MutationExecutor(self.compiler)
        self._depth = 0

        self._handlers: dict[Operation, Callable[..., Any]] = {
            Operation.FIND: self._find,
            Operation.FIND_MANY: self._find_many,
            Operation.COUNT: self._count,
            Operation.GROUP_BY: self._group_by,
            Operation.CREATE: self._create,
            Operation.CREATE_MANY: self._create_many,
            Operation.UPDATE: self._update,
            Operation.UPDATE_MANY: self._update_many,
            Operation.DELETE: self._delete,
            Operation.DELETE_MANY: self._delete_many,
        }

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    async def execute(
        self,
        model: str,
        operation: Operation | str,
        args: dict[str, Any] | None = None,
    ) -> Any:
        operation = Operation.parse(operation, model)
        model_class = self.compiler.model_class(model)
        handler = self._handlers[operation]

        logger.debug(
            f"storage {operation.value} on {model}",
            model=model,
            operation=operation.value,
        )

        try:
            result = await self._run(handler, model_class, args or {})
            if not self.in_transaction:
                await self._commit()
            return result
        except Exception:
            if not self.in_transaction:
                await self._rollback()
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLAlchemyStorageClient"]:
        """
        Run a block of operations atomically.

        Nested blocks create savepoints, so an inner failure can be rolled
        back without abandoning the outer transaction.
        """
        if not self.in_transaction:
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                await self._rollback()
                raise
            self._depth -= 1
            await self._commit()
            return

        savepoint = await self._begin_nested()
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            await self._finish(savepoint.rollback)
            raise
        self._depth -= 1
        await self._finish(savepoint.commit)

    # =========================================================================
    # SESSION PLUMBING
    # =========================================================================

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self.is_async:
            return await self.session.run_sync(fn, *args)  # type: ignore
        return fn(self.session, *args)

    async def _commit(self) -> None:
        await self._finish(self.session.commit)

    async def _rollback(self) -> None:
        await self._finish(self.session.rollback)

    async def _begin_nested(self) -> Any:
        if self.is_async:
            return await self.session.begin_nested()  # type: ignore
        return self.session.begin_nested()

    async def _finish(self, fn: Callable[[], Any]) -> None:
        result = fn()
        if self.is_async:
            await result

    # =========================================================================
    # OPERATION HANDLERS (sync, run inside the session)
    # =========================================================================

    def _find(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        stmt = self.compiler.build_select(model_class, args).limit(1)
        instance = session.scalars(stmt).first()
        if instance is None:
            return None
        return self._to_dict(session, instance, args.get("include"))

    def _find_many(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        stmt = self.compiler.build_select(model_class, args)
        include = args.get("include")
        return [self._to_dict(session, i, include) for i in session.scalars(stmt).all()]

    def _count(self, session: Session, model_class: type, args: dict[str, Any]) -> int:
        stmt = (
            select(func.count())
            .select_from(model_class)
            .where(self.compiler.build_where(model_class, args.get("where")))
        )
        return session.scalar(stmt) or 0

    def _group_by(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        by = args.get("by")
        if not by:
            raise ValidationError("groupBy requires at least one field in 'by'", field="by")
        by = by if isinstance(by, list) else [by]
        columns = [self.compiler.column(model_class, name) for name in by]

        stmt = (
            select(*columns, func.count())
            .where(self.compiler.build_where(model_class, args.get("where")))
            .group_by(*columns)
        )
        if args.get("orderBy"):
            stmt = self.compiler.apply_ordering(stmt, model_class, args["orderBy"])

        return [
            {**dict(zip(by, row[:-1], strict=True)), "_count": row[-1]}
            for row in session.execute(stmt).all()
        ]

    def _create(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        instance = self.mutations.create(session, model_class, args.get("data") or {})
        return self._to_dict(session, instance, args.get("include"))

    def _create_many(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        items = args.get("data") or []
        items = items if isinstance(items, list) else [items]
        for item in items:
            self.mutations.create(session, model_class, item)
        return {"count": len(items)}

    def _update(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        instance = self._first_or_raise(session, model_class, args.get("where"))
        self.mutations.update(session, instance, args.get("data") or {})
        return self._to_dict(session, instance, args.get("include"))

    def _update_many(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        data = args.get("data") or {}
        mapper = inspect(model_class)
        for key in data:
            if key not in mapper.column_attrs:
                raise ValidationError(
                    f"updateMany only accepts columns; '{key}' is not a column of "
                    f"'{model_class.__name__}'",
                    field=key,
                )

        instances = self._all_matching(session, model_class, args.get("where"))
        for instance in instances:
            for key, value in data.items():
                setattr(instance, key, value)
        session.flush()
        return {"count": len(instances)}

    def _delete(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        instance = self._first_or_raise(session, model_class, args.get("where"))
        row = self._to_dict(session, instance, args.get("include"))
        session.delete(instance)
        session.flush()
        return row

    def _delete_many(self, session: Session, model_class: type, args: dict[str, Any]) -> Any:
        instances = self._all_matching(session, model_class, args.get("where"))
        for instance in instances:
            session.delete(instance)
        session.flush()
        return {"count": len(instances)}

    def _all_matching(
        self, session: Session, model_class: type, where: dict[str, Any] | None
    ) -> list[Any]:
        stmt = select(model_class).where(self.compiler.build_where(model_class, where))
        return list(session.scalars(stmt).all())

    def _first_or_raise(
        self, session: Session, model_class: type, where: dict[str, Any] | None
    ) -> Any:
        stmt = self.compiler.build_select(model_class, {"where": where}).limit(1)
        instance = session.scalars(stmt).first()
        if instance is None:
            raise RecordNotFoundError(model_class.__name__, where)
        return instance

    def _to_dict(
        self,
        session: Session,
        instance: Any,
        include: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Convert an instance to a dict of columns plus included relations.

        An include spec may carry a ``where``; only related rows matching it
        are returned.
        """
        mapper = inspect(type(instance))
        row = {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}

        for name, spec in (include or {}).items():
            if not spec:
                continue
            if name not in mapper.relationships:
                raise ValidationError(
                    f"Relation '{name}' does not exist on model '{type(instance).__name__}'",
                    field=name,
                )
            relationship = mapper.relationships[name]
            nested = spec.get("include") if isinstance(spec, dict) else None
            where = spec.get("where") if isinstance(spec, dict) else None

            if where is None:
                value = getattr(instance, name)
                related = list(value) if relationship.uselist else [value] if value is not None else []
            else:
                target = relationship.mapper.class_
                stmt = select(target).where(
                    with_parent(instance, getattr(type(instance), name)),
                    self.compiler.build_where(target, where),
                )
                related = list(session.scalars(stmt).all())

            if relationship.uselist:
                row[name] = [self._to_dict(session, child, nested) for child in related]
            else:
                row[name] = self._to_dict(session, related[0], nested) if related else None

        return row
