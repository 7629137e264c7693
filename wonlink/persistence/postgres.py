"""PostgreSQL implementation of the workflow state store."""

from __future__ import annotations

from typing import Optional

import asyncpg

from ..constants import DEFAULT_HISTORY_LIMIT
from ..errors import PersistenceFailure
from ..models import WorkflowRecord, WorkflowStats
from .repository import WorkflowStateStore


class PostgresWorkflowStore(WorkflowStateStore):
    """Persist workflow state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
            if not self._initialized:
                await self._ensure_schema(conn)
                self._initialized = True
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(str(e)) from e
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_states (
                correlation_id TEXT PRIMARY KEY,
                organization_id TEXT NOT NULL,
                status TEXT NOT NULL,
                current_capability TEXT NOT NULL,
                estimated_cost DOUBLE PRECISION NOT NULL DEFAULT 0,
                actual_cost DOUBLE PRECISION NOT NULL DEFAULT 0,
                started_at TIMESTAMPTZ NOT NULL,
                record JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_workflow_states_org_started
            ON workflow_states (organization_id, started_at DESC)
            """
        )

    # ------------------------------------------------------------------
    async def upsert(self, record: WorkflowRecord) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflow_states (
                    correlation_id, organization_id, status, current_capability,
                    estimated_cost, actual_cost, started_at, record
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb)
                ON CONFLICT (correlation_id) DO UPDATE SET
                    status = EXCLUDED.status,
                    current_capability = EXCLUDED.current_capability,
                    estimated_cost = EXCLUDED.estimated_cost,
                    actual_cost = EXCLUDED.actual_cost,
                    record = EXCLUDED.record
                """,
                record.correlation_id,
                record.organization_id,
                record.status.value,
                record.current_capability.value,
                record.estimated_cost,
                record.actual_cost,
                record.started_at,
                record.model_dump_json(),
            )
        except asyncpg.PostgresError as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            await conn.close()

    async def load_by_correlation_id(self, correlation_id: str) -> Optional[WorkflowRecord]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT record FROM workflow_states WHERE correlation_id = $1",
                correlation_id,
            )
        except asyncpg.PostgresError as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            await conn.close()
        if not row:
            return None
        return WorkflowRecord.model_validate_json(row["record"])

    async def list_by_organization(
        self, organization_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                """
                SELECT record FROM workflow_states
                WHERE organization_id = $1
                ORDER BY started_at DESC
                LIMIT $2
                """,
                organization_id,
                limit,
            )
        except asyncpg.PostgresError as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            await conn.close()
        return [WorkflowRecord.model_validate_json(r["record"]) for r in rows]

    async def aggregate_stats(self, organization_id: str) -> WorkflowStats:
        conn = await self._connect()
        try:
            totals = await conn.fetchrow(
                """
                SELECT
                    COUNT(*) AS total,
                    COUNT(*) FILTER (WHERE status = 'completed') AS completed,
                    COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                    COALESCE(SUM(estimated_cost), 0) AS estimated,
                    COALESCE(SUM(actual_cost), 0) AS actual
                FROM workflow_states
                WHERE organization_id = $1
                """,
                organization_id,
            )
            usage = await conn.fetch(
                """
                SELECT current_capability, COUNT(*) AS uses
                FROM workflow_states
                WHERE organization_id = $1
                GROUP BY current_capability
                """,
                organization_id,
            )
        except asyncpg.PostgresError as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            await conn.close()
        return WorkflowStats(
            total_workflows=totals["total"],
            completed_count=totals["completed"],
            failed_count=totals["failed"],
            total_estimated_cost=float(totals["estimated"]),
            total_actual_cost=float(totals["actual"]),
            capability_usage_counts={r["current_capability"]: r["uses"] for r in usage},
        )
