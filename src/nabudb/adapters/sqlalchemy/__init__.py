"""
SQLAlchemy backend for nabudb.

Provides a raw storage client over SQLAlchemy 2.0+ for both sync and async
sessions, and schema map introspection from declarative models.
"""

from nabudb.adapters.sqlalchemy.client import SQLAlchemyStorageClient
from nabudb.adapters.sqlalchemy.compiler import SQLAlchemyCompiler
from nabudb.adapters.sqlalchemy.introspection import SQLAlchemyIntrospector
from nabudb.adapters.sqlalchemy.mutations import MutationExecutor
from nabudb.adapters.sqlalchemy.session import SessionManager

__all__ = [
    "SQLAlchemyStorageClient",
    "SQLAlchemyIntrospector",
    "SQLAlchemyCompiler",
    "MutationExecutor",
    "SessionManager",
]
