"""
nabudb Audit Store Module.

Audit record model and the stores records can be written to.
"""

from nabudb.store.base import AuditStore
from nabudb.store.jsonl import JsonlAuditStore
from nabudb.store.models import BULK_CREATE_ENTITY_ID, BULK_UPDATE_ENTITY_ID, AuditRecord
from nabudb.store.storage import StorageAuditStore

__all__ = [
    "AuditRecord",
    "AuditStore",
    "JsonlAuditStore",
    "StorageAuditStore",
    "BULK_CREATE_ENTITY_ID",
    "BULK_UPDATE_ENTITY_ID",
]
