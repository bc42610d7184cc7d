"""
JSONL file-based audit store.

A simple file-based implementation for development and testing. Writes are
not part of any storage transaction.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from nabudb.store.base import AuditStore
from nabudb.store.models import AuditRecord


class JsonlAuditStore(AuditStore):
    """
    Audit store that appends records to a JSONL file.

    Each line in the file is one JSON-encoded audit record.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def store(self, record: AuditRecord) -> None:
        """Append a record to the JSONL file."""
        line = json.dumps(record.to_log_dict(), default=str) + "\n"
        with open(self.path, "a") as f:
            f.write(line)

    async def get(self, record_id: str) -> AuditRecord | None:
        for data in self._iter_lines():
            if data.get("id") == record_id:
                return AuditRecord.model_validate(data)
        return None

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
        results: list[AuditRecord] = []
        skipped = 0

        for data in self._iter_lines():
            if tenant_id and data.get("tenant_id") != tenant_id:
                continue
            if entity_type and data.get("entity_type") != entity_type:
                continue
            if entity_id and data.get("entity_id") != entity_id:
                continue
            if action and data.get("action") != action:
                continue

            record = AuditRecord.model_validate(data)
            if start_time and record.created_at < start_time:
                continue
            if end_time and record.created_at > end_time:
                continue

            if skipped < offset:
                skipped += 1
                continue

            results.append(record)
            if len(results) >= limit:
                break

        return results

    def _iter_lines(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            return [json.loads(line) for line in f if line.strip()]

    def clear(self) -> None:
        """Remove all records (for testing)."""
        if self.path.exists():
            self.path.unlink()
