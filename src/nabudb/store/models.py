"""
Audit record models.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

# entity_id used when one record stands for a whole bulk operation
BULK_UPDATE_ENTITY_ID = "bulk_update"
BULK_CREATE_ENTITY_ID = "bulk_create"


class AuditRecord(BaseModel):
    """
    Immutable record of one mutation.

    One record is written per mutating call; bulk calls write a single record
    whose payload embeds the filter instead of one record per row.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))

    # What changed
    entity_type: str
    entity_id: str
    action: str
    event_status: str = "success"

    # Payload snapshots (JSON-safe)
    old_data: Any = None
    new_data: Any = None

    # Who and where
    created_by: str | None = None
    tenant_id: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @property
    def is_bulk(self) -> bool:
        return self.entity_id in (BULK_UPDATE_ENTITY_ID, BULK_CREATE_ENTITY_ID)

    def to_row(self) -> dict[str, Any]:
        """Column values for the audit log table."""
        return self.model_dump()

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to a dict suitable for logging or JSON storage."""
        return self.model_dump(mode="json")
