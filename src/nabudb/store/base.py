"""
Abstract audit store interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from nabudb.store.models import AuditRecord


class AuditStore(ABC):
    """
    Abstract base class for audit log storage.

    ``transactional`` tells the audit stage whether records written here
    take part in the storage client's transaction; only then can a failed
    audit write roll the primary write back.
    """

    transactional: bool = False

    @abstractmethod
    async def store(self, record: AuditRecord) -> None:
        """Append an audit record."""
        ...

    @abstractmethod
    async def get(self, record_id: str) -> AuditRecord | None:
        """Retrieve an audit record by ID."""
        ...

    @abstractmethod
    async def query(
        self,
        *,
        tenant_id: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditRecord]:
        """Query audit records with filters, oldest first."""
        ...
