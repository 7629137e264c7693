"""Wonlink: multi-agent workflow orchestration for capability routing."""

from .approval import AutoApprovalGate, CallbackApprovalGate, ManualApprovalGate
from .classifier import IntentClassifier, ModelClassificationService
from .contracts import (
    ApprovalDecision,
    ClassificationResult,
    ExecutionRequest,
    ExecutionResult,
    OrchestratorRequest,
    OrchestratorResponse,
)
from .dispatch import CapabilityDispatcher
from .estimator import CostCeilingBudget, CostEstimator, UnlimitedBudget
from .models import Capability, Intent, WorkflowRecord, WorkflowStatus
from .orchestrator import WorkflowOrchestrator, run_workflow
from .persistence import get_store
from .ratelimit import TokenBucketRateLimit, UnlimitedRate
from .registry import CATALOGUE

__version__ = "0.1.0"
__all__ = [
    "ApprovalDecision",
    "AutoApprovalGate",
    "CallbackApprovalGate",
    "Capability",
    "CapabilityDispatcher",
    "CATALOGUE",
    "ClassificationResult",
    "CostCeilingBudget",
    "CostEstimator",
    "ExecutionRequest",
    "ExecutionResult",
    "Intent",
    "IntentClassifier",
    "ManualApprovalGate",
    "ModelClassificationService",
    "OrchestratorRequest",
    "OrchestratorResponse",
    "TokenBucketRateLimit",
    "UnlimitedBudget",
    "UnlimitedRate",
    "WorkflowOrchestrator",
    "WorkflowRecord",
    "WorkflowStatus",
    "get_store",
    "run_workflow",
]
