"""
nabudb Adapters Module.

Contains the abstract raw storage client and its backends.
"""

from nabudb.adapters.base import StorageClient

__all__ = [
    "StorageClient",
]


# Lazy import so the core does not require SQLAlchemy to be importable
def get_sqlalchemy_client():
    """Get the SQLAlchemy storage client class."""
    from nabudb.adapters.sqlalchemy import SQLAlchemyStorageClient
    return SQLAlchemyStorageClient
