"""
SQLAlchemy schema introspection.

Builds the schema relationship map from SQLAlchemy declarative models.
"""

from pathlib import Path
from typing import Any

from sqlalchemy import Enum as SAEnum
from sqlalchemy import inspect
from sqlalchemy.orm import MANYTOONE, RelationshipProperty
from sqlalchemy.sql.sqltypes import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    Time,
    Uuid,
)

from nabudb.schema.map import SchemaMap, SchemaModelEntry


class SQLAlchemyIntrospector:
    """
    Introspects SQLAlchemy models to extract the schema relationship map.
    """

    def __init__(self, models: list[type]) -> None:
        """
        Initialize with a list of SQLAlchemy model classes.

        Args:
            models: List of SQLAlchemy declarative model classes
        """
        self.models = models
        self._model_map: dict[str, type] = {m.__name__: m for m in models}

    def build_schema_map(self) -> SchemaMap:
        """
        Introspect all registered models and return the schema map.
        """
        entries: list[SchemaModelEntry] = []
        enums: dict[str, list[str]] = {}

        for model in self.models:
            entries.append(self._introspect_model(model, enums))

        return SchemaMap.from_entries(entries, enums)

    def generate(self, path: str | Path) -> Path:
        """Introspect and write the map to a JSON file."""
        return self.build_schema_map().dump(path)

    def _introspect_model(self, model: type, enums: dict[str, list[str]]) -> SchemaModelEntry:
        mapper = inspect(model)

        scalar_fields: dict[str, str] = {}
        enum_fields: dict[str, str] = {}
        for attr in mapper.column_attrs:
            column = attr.columns[0]
            if isinstance(column.type, SAEnum):
                enum_name = self._enum_name(column.type)
                enums[enum_name] = list(column.type.enums)
                enum_fields[attr.key] = enum_name
                scalar_fields[attr.key] = enum_name
            else:
                scalar_fields[attr.key] = self._get_field_type(column.type)

        relation_fields: dict[str, str] = {}
        relation_to_foreign_key: dict[str, str] = {}
        child_relations: set[str] = set()
        for rel in mapper.relationships:
            relation_fields[rel.key] = rel.mapper.class_.__name__
            foreign_key = self._owned_foreign_key(mapper, rel)
            if foreign_key is not None:
                relation_to_foreign_key[rel.key] = foreign_key
            else:
                child_relations.add(rel.key)

        primary_key = mapper.get_property_by_column(mapper.primary_key[0]).key

        return SchemaModelEntry(
            name=model.__name__,
            scalar_fields=scalar_fields,
            enum_fields=enum_fields,
            relation_fields=relation_fields,
            relation_to_foreign_key=relation_to_foreign_key,
            child_relations=frozenset(child_relations),
            primary_key=primary_key,
        )

    def _owned_foreign_key(self, mapper: Any, rel: RelationshipProperty) -> str | None:
        """Local foreign key attribute for many-to-one relations, else None."""
        if rel.direction is not MANYTOONE:
            return None
        local_columns = list(rel.local_columns)
        if not local_columns:
            return None
        return mapper.get_property_by_column(local_columns[0]).key

    def _enum_name(self, sa_type: SAEnum) -> str:
        if sa_type.name:
            return sa_type.name
        if sa_type.enum_class is not None:
            return sa_type.enum_class.__name__
        return "enum"

    def _get_field_type(self, sa_type: Any) -> str:
        """Map a SQLAlchemy type to a type name."""
        type_mapping = {
            Boolean: "boolean",
            String: "string",
            Text: "string",
            Integer: "integer",
            Float: "float",
            Numeric: "decimal",
            DateTime: "datetime",
            Date: "date",
            Time: "time",
            LargeBinary: "binary",
            Uuid: "uuid",
            JSON: "json",
        }

        for sa_class, field_type in type_mapping.items():
            if isinstance(sa_type, sa_class):
                return field_type

        return "unknown"

    def get_model_class(self, name: str) -> type | None:
        """Get the model class by name."""
        return self._model_map.get(name)
