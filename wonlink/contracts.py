"""Contracts exchanged between the orchestrator and its collaborators."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Capability, Intent, WorkflowRecord, WorkflowStatus, utcnow


class ClassificationResult(BaseModel):
    """Typed outcome of intent classification.

    This is also the output schema handed to the generative classifier, so
    anything the model returns is validated against it before use.
    """

    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = Field(description="Explanation of why this intent was chosen")
    suggested_capability: Optional[Capability] = Field(
        default=None, description="Capability that should handle the query"
    )
    extracted_params: Dict[str, Any] = Field(
        default_factory=dict, description="Parameters extracted from the query"
    )


class CostEstimate(BaseModel):
    estimated_cost: float = Field(ge=0.0)
    requires_approval: bool
    budget_approved: bool = True
    veto_reason: Optional[str] = None


class ApprovalDecision(BaseModel):
    """Reviewer verdict recorded by the approval gate."""

    approved: bool
    feedback: Optional[str] = None


class ExecutionRequest(BaseModel):
    """Bounded input handed to every capability executor."""

    user_query: str
    organization_id: str
    correlation_id: str
    intent: Intent = Intent.UNKNOWN
    extracted_params: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: WorkflowRecord) -> "ExecutionRequest":
        classification = record.metadata.get("classification") or {}
        return cls(
            user_query=record.user_query,
            organization_id=record.organization_id,
            correlation_id=record.correlation_id,
            intent=record.intent or Intent.UNKNOWN,
            extracted_params=dict(classification.get("extracted_params") or {}),
        )


class ExecutionResult(BaseModel):
    """Normalized executor outcome.

    Executors may attach capability specific identifiers (``plan_id``,
    ``task_id`` and so on) as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    output: str = ""
    agent_used: Optional[str] = None

    @classmethod
    def failure(cls, message: str, agent_used: Optional[str] = None) -> "ExecutionResult":
        return cls(
            success=False, output=f"Error: {message}", agent_used=agent_used, error=message
        )

    @property
    def error_message(self) -> str:
        """Plain failure reason, without the ``Error:`` prefix of ``output``."""
        extra = self.model_extra or {}
        return str(extra.get("error") or self.output or "Agent execution failed")


class OrchestratorRequest(BaseModel):
    user_query: str
    organization_id: str
    session_id: Optional[str] = None
    correlation_id: Optional[str] = None


class OrchestratorResponse(BaseModel):
    """Caller-facing summary of a finished (or suspended) workflow."""

    success: bool
    correlation_id: str
    record: WorkflowRecord
    output: str
    capability: Capability
    estimated_cost: float
    actual_cost: float
    error: Optional[str] = None

    @classmethod
    def from_record(cls, record: WorkflowRecord) -> "OrchestratorResponse":
        if record.is_suspended:
            output = "Awaiting reviewer approval"
        else:
            output = record.final_output or "No output generated"
        return cls(
            success=record.status == WorkflowStatus.COMPLETED,
            correlation_id=record.correlation_id,
            record=record,
            output=output,
            capability=record.current_capability,
            estimated_cost=record.estimated_cost,
            actual_cost=record.actual_cost,
            error=record.error,
        )

    @classmethod
    def from_error(
        cls, request: OrchestratorRequest, correlation_id: str, error: str
    ) -> "OrchestratorResponse":
        """Failed response for a request whose workflow raised."""
        now = utcnow()
        record = WorkflowRecord(
            correlation_id=correlation_id,
            organization_id=request.organization_id,
            session_id=request.session_id,
            user_query=request.user_query,
            routing_reason="Execution failed",
            status=WorkflowStatus.FAILED,
            status_history=[WorkflowStatus.PENDING, WorkflowStatus.FAILED],
            error=error,
            started_at=now,
            completed_at=now,
        )
        return cls(
            success=False,
            correlation_id=correlation_id,
            record=record,
            output="Failed to process query",
            capability=record.current_capability,
            estimated_cost=0.0,
            actual_cost=0.0,
            error=error,
        )
