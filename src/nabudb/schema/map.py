"""
Schema relationship map.

Describes, per model, which keys of a write payload are plain columns and
which are relations, and for each relation whether the parent holds the
foreign key or the relation is a child collection. The map is built once
(introspected from the ORM or loaded from a generated file) and never changes
afterwards.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from nabudb.core.errors import SchemaVersionError, UnknownModelError

SCHEMA_MAP_VERSION = 1


class SchemaModelEntry(BaseModel):
    """Field and relation layout of a single model."""

    name: str

    # Column name -> type name (enums included)
    scalar_fields: dict[str, str] = Field(default_factory=dict)

    # Column name -> enum name, for the enum-typed subset of scalar_fields
    enum_fields: dict[str, str] = Field(default_factory=dict)

    # Relation name -> target model name
    relation_fields: dict[str, str] = Field(default_factory=dict)

    # Relation name -> local foreign key column, for relations the model owns
    relation_to_foreign_key: dict[str, str] = Field(default_factory=dict)

    # Relations referenced from the other side (no local foreign key)
    child_relations: frozenset[str] = Field(default_factory=frozenset)

    primary_key: str = "id"

    model_config = {"frozen": True}

    def has_field(self, name: str) -> bool:
        """Check whether a payload key is a column or a relation of this model."""
        return name in self.scalar_fields or name in self.relation_fields

    def is_relation(self, name: str) -> bool:
        return name in self.relation_fields

    def relation_target(self, name: str) -> str:
        return self.relation_fields[name]

    def foreign_key_for(self, relation: str) -> str | None:
        """Local foreign key column backing a relation, if the model owns it."""
        return self.relation_to_foreign_key.get(relation)


class SchemaMap(BaseModel):
    """
    Immutable description of every model in the schema.

    Safe to share between concurrent requests.
    """

    version: int = SCHEMA_MAP_VERSION
    models: dict[str, SchemaModelEntry] = Field(default_factory=dict)
    enums: dict[str, list[str]] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def get_model(self, name: str) -> SchemaModelEntry:
        """
        Get the entry for a model.

        Raises UnknownModelError for names that are not in the schema; all
        policy decisions depend on this lookup, so it never returns a default.
        """
        entry = self.models.get(name)
        if entry is None:
            raise UnknownModelError(name, known_models=self.list_models())
        return entry

    def has_model(self, name: str) -> bool:
        return name in self.models

    def list_models(self) -> list[str]:
        """List all model names."""
        return list(self.models.keys())

    def get_enum_values(self, name: str) -> list[str]:
        """Get the allowed values of an enum, or an empty list if unknown."""
        return list(self.enums.get(name, []))

    @classmethod
    def from_entries(
        cls,
        entries: list[SchemaModelEntry],
        enums: dict[str, list[str]] | None = None,
    ) -> SchemaMap:
        """Build a map from a list of model entries."""
        return cls(models={e.name: e for e in entries}, enums=enums or {})

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        # Stable ordering keeps generated files diffable
        for entry in data["models"].values():
            entry["child_relations"] = sorted(entry["child_relations"])
        return data

    def dump(self, path: str | Path) -> Path:
        """Write the map to a versioned JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n")
        return path

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaMap:
        """Validate a map from its dict form, checking the format version."""
        version = data.get("version")
        if version != SCHEMA_MAP_VERSION:
            raise SchemaVersionError(version, SCHEMA_MAP_VERSION)
        return cls.model_validate(data)

    @classmethod
    def load(cls, path: str | Path) -> SchemaMap:
        """Load a map previously written with ``dump``."""
        with open(path) as f:
            return cls.from_dict(json.load(f))
