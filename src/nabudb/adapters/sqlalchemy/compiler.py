"""
SQLAlchemy query compiler.

Compiles where-clauses, ordering and pagination from operation args into
SQLAlchemy statements.
"""

from typing import Any

from sqlalchemy import Select, and_, inspect, not_, or_, select, true

from nabudb.core.errors import UnknownModelError, ValidationError


class SQLAlchemyCompiler:
    """
    Compiles operation args into SQLAlchemy statements.

    Where-clause grammar:
        {"field": value}                 equality (None means IS NULL)
        {"field": {"op": value, ...}}    equals, not, in, notIn, lt, lte, gt,
                                         gte, contains, startsWith, endsWith
        {"AND": [...], "OR": [...], "NOT": {...}}
    """

    def __init__(self, model_map: dict[str, type]) -> None:
        """
        Initialize the compiler.

        Args:
            model_map: Mapping of model names to SQLAlchemy model classes
        """
        self.model_map = model_map

    def model_class(self, name: str) -> type:
        """Get the mapped class for a model name."""
        model_class = self.model_map.get(name)
        if model_class is None:
            raise UnknownModelError(name, known_models=list(self.model_map))
        return model_class

    def build_select(self, model_class: type, args: dict[str, Any]) -> Select:
        """Build a SELECT for find/findMany from operation args."""
        stmt = select(model_class).where(self.build_where(model_class, args.get("where")))

        if args.get("orderBy"):
            stmt = self.apply_ordering(stmt, model_class, args["orderBy"])
        if args.get("skip"):
            stmt = stmt.offset(args["skip"])
        if args.get("take") is not None:
            stmt = stmt.limit(args["take"])

        return stmt

    def build_where(self, model_class: type, where: dict[str, Any] | None) -> Any:
        """Build a single boolean condition from a where-clause."""
        if not where:
            return true()
        return _all(self._build_conditions(model_class, where))

    def column(self, model_class: type, name: str) -> Any:
        """Get a column attribute, failing on relations and unknown names."""
        mapper = inspect(model_class)
        if name in mapper.column_attrs:
            return getattr(model_class, name)
        if name in mapper.relationships:
            raise ValidationError(
                f"Filtering on relation '{name}' of '{model_class.__name__}' is not supported",
                field=name,
            )
        raise ValidationError(
            f"Field '{name}' does not exist on model '{model_class.__name__}'",
            field=name,
        )

    def _build_conditions(self, model_class: type, where: dict[str, Any]) -> list[Any]:
        if not isinstance(where, dict):
            raise ValidationError(f"Where-clause must be an object, got {type(where).__name__}")

        conditions = []
        for key, value in where.items():
            match key:
                case "AND":
                    clauses = value if isinstance(value, list) else [value]
                    conditions.append(
                        _all([self.build_where(model_class, c) for c in clauses])
                    )
                case "OR":
                    clauses = value if isinstance(value, list) else [value]
                    conditions.append(
                        or_(*[self.build_where(model_class, c) for c in clauses])
                    )
                case "NOT":
                    clauses = value if isinstance(value, list) else [value]
                    conditions.append(
                        _all([not_(self.build_where(model_class, c)) for c in clauses])
                    )
                case _:
                    column = self.column(model_class, key)
                    if isinstance(value, dict):
                        conditions.extend(self._build_operator_conditions(column, value))
                    elif value is None:
                        conditions.append(column.is_(None))
                    else:
                        conditions.append(column == value)
        return conditions

    def _build_operator_conditions(self, column: Any, ops: dict[str, Any]) -> list[Any]:
        conditions = []
        for op, value in ops.items():
            match op:
                case "equals":
                    conditions.append(column.is_(None) if value is None else column == value)
                case "not":
                    if value is None:
                        conditions.append(column.is_not(None))
                    elif isinstance(value, dict):
                        conditions.append(not_(_all(self._build_operator_conditions(column, value))))
                    else:
                        conditions.append(column != value)
                case "in":
                    conditions.append(column.in_(value))
                case "notIn":
                    conditions.append(column.not_in(value))
                case "lt":
                    conditions.append(column < value)
                case "lte":
                    conditions.append(column <= value)
                case "gt":
                    conditions.append(column > value)
                case "gte":
                    conditions.append(column >= value)
                case "contains":
                    conditions.append(column.contains(value, autoescape=True))
                case "startsWith":
                    conditions.append(column.startswith(value, autoescape=True))
                case "endsWith":
                    conditions.append(column.endswith(value, autoescape=True))
                case _:
                    raise ValidationError(f"Unsupported filter operator: {op}", field=str(column.key))
        return conditions

    def apply_ordering(self, stmt: Select, model_class: type, order_by: Any) -> Select:
        """Apply orderBy ({field: "asc"|"desc"} or a list of those)."""
        clauses = order_by if isinstance(order_by, list) else [order_by]
        for clause in clauses:
            for name, direction in clause.items():
                column = self.column(model_class, name)
                if str(direction).lower() == "desc":
                    stmt = stmt.order_by(column.desc())
                else:
                    stmt = stmt.order_by(column.asc())
        return stmt


def _all(conditions: list[Any]) -> Any:
    if not conditions:
        return true()
    if len(conditions) == 1:
        return conditions[0]
    return and_(*conditions)
