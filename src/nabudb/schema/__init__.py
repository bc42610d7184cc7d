"""
nabudb Schema Module.

The schema relationship map that drives schema-aware payload rewriting.
"""

from nabudb.schema.map import SCHEMA_MAP_VERSION, SchemaMap, SchemaModelEntry

__all__ = [
    "SCHEMA_MAP_VERSION",
    "SchemaMap",
    "SchemaModelEntry",
]
