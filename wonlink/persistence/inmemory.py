"""In-memory implementation of the workflow state store."""

from __future__ import annotations

from typing import Dict, Optional

from ..constants import DEFAULT_HISTORY_LIMIT
from ..models import WorkflowRecord, WorkflowStats
from .repository import WorkflowStateStore


class InMemoryWorkflowStore(WorkflowStateStore):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._records: Dict[str, WorkflowRecord] = {}

    async def upsert(self, record: WorkflowRecord) -> None:
        self._records[record.correlation_id] = record.model_copy(deep=True)

    async def load_by_correlation_id(self, correlation_id: str) -> Optional[WorkflowRecord]:
        record = self._records.get(correlation_id)
        return record.model_copy(deep=True) if record else None

    async def list_by_organization(
        self, organization_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowRecord]:
        records = [
            r for r in self._records.values() if r.organization_id == organization_id
        ]
        records.sort(key=lambda r: r.started_at, reverse=True)
        return [r.model_copy(deep=True) for r in records[:limit]]

    async def aggregate_stats(self, organization_id: str) -> WorkflowStats:
        return WorkflowStats.from_records(
            [r for r in self._records.values() if r.organization_id == organization_id]
        )
