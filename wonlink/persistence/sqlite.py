"""SQLite implementation of the workflow state store."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional

from ..constants import DEFAULT_HISTORY_LIMIT
from ..errors import PersistenceFailure
from ..models import WorkflowRecord, WorkflowStats
from .repository import WorkflowStateStore

UPSERT_SQL = """
INSERT INTO workflow_states (
    correlation_id, organization_id, status, current_capability,
    estimated_cost, actual_cost, started_at, record
) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(correlation_id) DO UPDATE SET
    status = excluded.status,
    current_capability = excluded.current_capability,
    estimated_cost = excluded.estimated_cost,
    actual_cost = excluded.actual_cost,
    record = excluded.record
"""


class SQLiteWorkflowStore(WorkflowStateStore):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_states (
                correlation_id TEXT PRIMARY KEY,
                organization_id TEXT NOT NULL,
                status TEXT NOT NULL,
                current_capability TEXT NOT NULL,
                estimated_cost REAL NOT NULL DEFAULT 0,
                actual_cost REAL NOT NULL DEFAULT 0,
                started_at TEXT NOT NULL,
                record TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_workflow_states_org_started
            ON workflow_states (organization_id, started_at)
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Store API
    async def upsert(self, record: WorkflowRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            UPSERT_SQL,
            record.correlation_id,
            record.organization_id,
            record.status.value,
            record.current_capability.value,
            record.estimated_cost,
            record.actual_cost,
            record.started_at.isoformat(),
            record.model_dump_json(),
        )

    async def load_by_correlation_id(self, correlation_id: str) -> Optional[WorkflowRecord]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT record FROM workflow_states WHERE correlation_id = ?",
            correlation_id,
        )
        if not row:
            return None
        return WorkflowRecord.model_validate_json(row["record"])

    async def list_by_organization(
        self, organization_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            """
            SELECT record FROM workflow_states
            WHERE organization_id = ?
            ORDER BY started_at DESC
            LIMIT ?
            """,
            organization_id,
            limit,
        )
        return [WorkflowRecord.model_validate_json(row["record"]) for row in rows]

    async def aggregate_stats(self, organization_id: str) -> WorkflowStats:
        totals = await asyncio.to_thread(
            self._fetchone,
            """
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) AS failed,
                COALESCE(SUM(estimated_cost), 0) AS estimated,
                COALESCE(SUM(actual_cost), 0) AS actual
            FROM workflow_states
            WHERE organization_id = ?
            """,
            organization_id,
        )
        usage = await asyncio.to_thread(
            self._fetchall,
            """
            SELECT current_capability, COUNT(*) AS uses
            FROM workflow_states
            WHERE organization_id = ?
            GROUP BY current_capability
            """,
            organization_id,
        )
        return WorkflowStats(
            total_workflows=totals["total"] or 0,
            completed_count=totals["completed"] or 0,
            failed_count=totals["failed"] or 0,
            total_estimated_cost=totals["estimated"] or 0.0,
            total_actual_cost=totals["actual"] or 0.0,
            capability_usage_counts={
                row["current_capability"]: row["uses"] for row in usage
            },
        )
