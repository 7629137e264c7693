"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from ..constants import DEFAULT_HISTORY_LIMIT
from ..models import WorkflowRecord, WorkflowStats


class WorkflowStateStore(Protocol):
    """Protocol for workflow state persistence backends.

    Writes are idempotent upserts keyed by ``correlation_id``: storing the
    same record twice leaves the store exactly as storing it once.
    """

    async def upsert(self, record: WorkflowRecord) -> None:
        """Insert or replace the snapshot for ``record.correlation_id``."""

    async def load_by_correlation_id(self, correlation_id: str) -> Optional[WorkflowRecord]:
        """Retrieve the workflow record by id."""

    async def list_by_organization(
        self, organization_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowRecord]:
        """Return an organization's workflows, most recently started first."""

    async def aggregate_stats(self, organization_id: str) -> WorkflowStats:
        """Summarise an organization's workflows."""
