"""Workflow state models shared by every orchestrator component."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Intent(str, Enum):
    """Closed set of request categories recognised by the classifier."""

    BUSINESS_PLAN = "business_plan"
    GRANT_APPLICATION = "grant_application"
    PRODUCT_SOURCING = "product_sourcing"
    SEO_OPTIMIZATION = "seo_optimization"
    PROPOSAL_WRITING = "proposal_writing"
    DOCUMENT_CONVERSION = "document_conversion"
    BOOKKEEPING = "bookkeeping"
    SAFETY_COMPLIANCE = "safety_compliance"
    CRM_AUTOMATION = "crm_automation"
    STARTUP_PROGRAMS = "startup_programs"
    UNKNOWN = "unknown"


class Capability(str, Enum):
    """Closed set of executors the dispatcher can target."""

    NAVIGATOR = "navigator"
    BIZPLAN_MASTER = "bizplan_master"
    GRANT_SCOUT = "grant_scout"
    CHINA_SOURCE = "china_source"
    NAVER_SEO = "naver_seo"
    PROPOSAL_GEN = "proposal_gen"
    HWP_CONVERTER = "hwp_converter"
    BOOKKEEPING = "bookkeeping"
    SAFETY_GUARDIAN = "safety_guardian"
    KAKAO_CRM = "kakao_crm"


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    COST_CHECK = "cost_check"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        """Position in the forward-only status sequence."""
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED)


_STATUS_RANK = {
    WorkflowStatus.PENDING: 0,
    WorkflowStatus.COST_CHECK: 1,
    WorkflowStatus.AWAITING_APPROVAL: 2,
    WorkflowStatus.EXECUTING: 3,
    WorkflowStatus.COMPLETED: 4,
    WorkflowStatus.FAILED: 4,
}


class WorkflowRecord(BaseModel):
    """State of a single orchestrated request.

    Nodes never mutate a record in place. They return a ``WorkflowPatch``
    which ``wonlink.state.apply_patch`` merges into a new record.
    """

    correlation_id: str
    organization_id: str
    session_id: Optional[str] = None
    user_query: str

    intent: Optional[Intent] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    current_capability: Capability = Capability.NAVIGATOR
    capability_history: List[Capability] = Field(default_factory=list)
    routing_reason: str = ""

    results: Dict[str, Any] = Field(default_factory=dict)
    final_output: Optional[str] = None

    estimated_cost: float = Field(default=0.0, ge=0.0)
    actual_cost: float = Field(default=0.0, ge=0.0)
    budget_approved: bool = False

    requires_approval: bool = False
    approved: bool = False
    approval_feedback: Optional[str] = None

    status: WorkflowStatus = WorkflowStatus.PENDING
    status_history: List[WorkflowStatus] = Field(
        default_factory=lambda: [WorkflowStatus.PENDING]
    )
    error: Optional[str] = None

    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_suspended(self) -> bool:
        """``True`` when the record waits for a reviewer decision."""
        return self.status == WorkflowStatus.AWAITING_APPROVAL and not self.approved


class WorkflowPatch(BaseModel):
    """Partial update returned by a graph node.

    Only the fields explicitly set on the patch take part in the merge.
    ``capability_history`` lists entries to append, not a replacement.
    """

    intent: Optional[Intent] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    current_capability: Optional[Capability] = None
    capability_history: Optional[List[Capability]] = None
    routing_reason: Optional[str] = None
    results: Optional[Dict[str, Any]] = None
    final_output: Optional[str] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0.0)
    actual_cost: Optional[float] = Field(default=None, ge=0.0)
    budget_approved: Optional[bool] = None
    requires_approval: Optional[bool] = None
    approved: Optional[bool] = None
    approval_feedback: Optional[str] = None
    status: Optional[WorkflowStatus] = None
    error: Optional[str] = None
    completed_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class WorkflowStats(BaseModel):
    """Per-organization aggregate over persisted workflows."""

    total_workflows: int = 0
    completed_count: int = 0
    failed_count: int = 0
    total_estimated_cost: float = 0.0
    total_actual_cost: float = 0.0
    capability_usage_counts: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_records(cls, records: List[WorkflowRecord]) -> "WorkflowStats":
        """Aggregate ``records`` in process.

        Capability usage counts the targeted capability of every record,
        whether or not the executor ran.
        """
        stats = cls()
        for record in records:
            stats.total_workflows += 1
            if record.status == WorkflowStatus.COMPLETED:
                stats.completed_count += 1
            elif record.status == WorkflowStatus.FAILED:
                stats.failed_count += 1
            stats.total_estimated_cost += record.estimated_cost
            stats.total_actual_cost += record.actual_cost
            key = record.current_capability.value
            stats.capability_usage_counts[key] = (
                stats.capability_usage_counts.get(key, 0) + 1
            )
        return stats
