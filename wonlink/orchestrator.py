"""Workflow orchestration engine for wonlink.

``WorkflowOrchestrator`` wires the classifier, cost estimator, approval
gate and dispatcher into the fixed workflow graph and persists the record
after every transition. Callers always get a well-formed record back:
classification, budget, approval, executor and persistence failures all
end up as workflow state or log entries. Programming errors such as an
unregistered capability propagate out of ``run_workflow``;
``process_request`` turns them into a failed response.
"""

from __future__ import annotations

import logging
import uuid
from typing import Mapping, Optional

from .approval import ApprovalGate, AutoApprovalGate, ManualApprovalGate
from .classifier import ClassificationService, IntentClassifier, ModelClassificationService
from .config import WonlinkConfig, load_config
from .constants import DEFAULT_FINAL_OUTPUT, DEFAULT_UPSERT_ATTEMPTS, MAX_QUERY_LENGTH
from .contracts import ApprovalDecision, OrchestratorRequest, OrchestratorResponse
from .dispatch import CapabilityDispatcher
from .errors import RateLimitExceeded, StateTransitionError, WorkflowNotFoundError
from .estimator import CostCeilingBudget, CostEstimator
from .executors import Executor, TaskBackend, build_default_executors, get_task_backend
from .graph import (
    COST_CHECK,
    EXECUTE,
    HITL_CHECKPOINT,
    ROUTING,
    build_workflow_graph,
    route_after_approval,
)
from .models import WorkflowPatch, WorkflowRecord, WorkflowStatus, utcnow
from .persistence import WorkflowStateStore, get_store
from .ratelimit import RateLimitPolicy, TokenBucketRateLimit, UnlimitedRate
from .registry import intent_to_capability
from .state import apply_patch
from .utils.logs import workflow_logger
from .utils.retry import retry_async

logger = logging.getLogger(__name__)


def validate_query(user_query: str) -> Optional[str]:
    """Return a rejection reason for unusable input, ``None`` otherwise."""
    if not user_query or not user_query.strip():
        return "userQuery must not be empty"
    if len(user_query) > MAX_QUERY_LENGTH:
        return f"userQuery exceeds {MAX_QUERY_LENGTH} characters"
    return None


def approval_patch(decision: ApprovalDecision) -> WorkflowPatch:
    """Patch recording a reviewer decision."""
    if decision.approved:
        return WorkflowPatch(
            approved=True,
            approval_feedback=decision.feedback,
            status=WorkflowStatus.EXECUTING,
        )
    return WorkflowPatch(
        approved=False,
        approval_feedback=decision.feedback,
        status=WorkflowStatus.FAILED,
        error=f"Approval rejected: {decision.feedback or 'no reason given'}",
        completed_at=utcnow(),
    )


def failure_patch(error: str) -> WorkflowPatch:
    """Patch that ends the workflow as failed."""
    return WorkflowPatch(status=WorkflowStatus.FAILED, error=error, completed_at=utcnow())


class WorkflowOrchestrator:
    """Run one linear pipeline per request."""

    def __init__(
        self,
        classifier: IntentClassifier,
        estimator: CostEstimator,
        approval_gate: ApprovalGate,
        dispatcher: CapabilityDispatcher,
        store: WorkflowStateStore,
        *,
        rate_limit: Optional[RateLimitPolicy] = None,
        upsert_attempts: int = DEFAULT_UPSERT_ATTEMPTS,
    ) -> None:
        self.classifier = classifier
        self.estimator = estimator
        self.approval_gate = approval_gate
        self.dispatcher = dispatcher
        self.store = store
        self.rate_limit = rate_limit or UnlimitedRate()
        self._upsert_attempts = upsert_attempts
        self.graph = build_workflow_graph(
            {
                ROUTING: self.routing_node,
                COST_CHECK: self.cost_check_node,
                HITL_CHECKPOINT: self.hitl_checkpoint_node,
                EXECUTE: self.execute_node,
            }
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[WonlinkConfig] = None,
        *,
        store: Optional[WorkflowStateStore] = None,
        classification_service: Optional[ClassificationService] = None,
        approval_gate: Optional[ApprovalGate] = None,
        task_backend: Optional[TaskBackend] = None,
        executors: Optional[Mapping] = None,
        rate_limit: Optional[RateLimitPolicy] = None,
    ) -> "WorkflowOrchestrator":
        """Assemble an orchestrator from configuration.

        ``executors`` overrides individual entries of the built-in dispatch
        table; every other argument replaces the configured component.
        """
        config = config or load_config()

        service = classification_service or ModelClassificationService(
            config.classifier.model
        )
        classifier = IntentClassifier(
            service,
            fast_path_threshold=config.classifier.fast_path_threshold,
            timeout=config.classifier.timeout_seconds,
        )

        budget = None
        if config.budget.ceiling is not None:
            budget = CostCeilingBudget(config.budget.ceiling)

        if rate_limit is None and config.rate_limit.per_minute is not None:
            rate_limit = TokenBucketRateLimit(config.rate_limit.per_minute)

        if approval_gate is None:
            approval_gate = (
                ManualApprovalGate()
                if config.approval.mode == "manual"
                else AutoApprovalGate()
            )

        table: dict = build_default_executors(task_backend or get_task_backend(config))
        table.update(executors or {})
        dispatcher = CapabilityDispatcher(
            table, timeout=config.dispatch.executor_timeout_seconds
        )

        return cls(
            classifier,
            CostEstimator(budget),
            approval_gate,
            dispatcher,
            store if store is not None else get_store(config=config),
            rate_limit=rate_limit,
            upsert_attempts=config.persistence.upsert_attempts,
        )

    async def routing_node(self, record: WorkflowRecord) -> WorkflowPatch:
        log = workflow_logger(__name__, record.correlation_id, step=ROUTING)
        log.info("Starting intent classification")

        classification = await self.classifier.classify(
            record.user_query, record.correlation_id
        )
        capability = classification.suggested_capability or intent_to_capability(
            classification.intent
        )
        log.info(
            f"Intent classified: {classification.intent.value} "
            f"(confidence={classification.confidence:.2f}) -> {capability.value}"
        )
        return WorkflowPatch(
            intent=classification.intent,
            confidence=classification.confidence,
            current_capability=capability,
            routing_reason=classification.reasoning,
            status=WorkflowStatus.COST_CHECK,
            metadata={"classification": classification.model_dump(mode="json")},
        )

    async def cost_check_node(self, record: WorkflowRecord) -> WorkflowPatch:
        log = workflow_logger(__name__, record.correlation_id, step=COST_CHECK)
        try:
            estimate = self.estimator.estimate(
                record.current_capability, record.user_query, record.organization_id
            )
        except Exception as e:
            log.error(f"Cost check failed: {e}")
            return failure_patch(f"Cost check failed: {str(e) or type(e).__name__}")
        log.info(
            f"Cost estimated for {record.current_capability.value}: "
            f"${estimate.estimated_cost:.6f} (requires_approval={estimate.requires_approval})"
        )

        if not estimate.budget_approved:
            return WorkflowPatch(
                estimated_cost=estimate.estimated_cost,
                requires_approval=estimate.requires_approval,
                budget_approved=False,
                status=WorkflowStatus.FAILED,
                error=f"Budget veto: {estimate.veto_reason}",
                completed_at=utcnow(),
            )

        return WorkflowPatch(
            estimated_cost=estimate.estimated_cost,
            requires_approval=estimate.requires_approval,
            budget_approved=True,
            status=(
                WorkflowStatus.AWAITING_APPROVAL
                if estimate.requires_approval
                else WorkflowStatus.EXECUTING
            ),
        )

    async def hitl_checkpoint_node(self, record: WorkflowRecord) -> WorkflowPatch:
        log = workflow_logger(__name__, record.correlation_id, step=HITL_CHECKPOINT)
        log.info(
            f"Approval required for {record.current_capability.value} "
            f"(estimated ${record.estimated_cost:.6f})"
        )
        try:
            decision = await self.approval_gate.review(record)
        except Exception as e:
            log.error(f"Approval gate failed: {e}")
            return failure_patch(f"Approval gate failed: {str(e) or type(e).__name__}")
        if decision is None:
            log.info("Awaiting reviewer decision; workflow suspended")
            return WorkflowPatch()
        if not decision.approved:
            log.warning(f"Approval rejected: {decision.feedback}")
        return approval_patch(decision)

    async def execute_node(self, record: WorkflowRecord) -> WorkflowPatch:
        log = workflow_logger(__name__, record.correlation_id, step=EXECUTE)
        capability = record.current_capability
        log.info(f"Executing {capability.value}")

        result = await self.dispatcher.execute(capability, record)
        payload = result.model_dump(mode="json")
        patch = WorkflowPatch(
            results={capability.value: payload},
            capability_history=[capability],
            completed_at=utcnow(),
        )
        reported_cost = payload.get("cost")
        if isinstance(reported_cost, (int, float)) and reported_cost >= 0:
            patch.actual_cost = float(reported_cost)

        if result.success:
            patch.status = WorkflowStatus.COMPLETED
            patch.final_output = result.output or DEFAULT_FINAL_OUTPUT
        else:
            log.error(f"Execution of {capability.value} failed: {result.error_message}")
            patch.status = WorkflowStatus.FAILED
            patch.error = result.error_message
        return patch

    # ------------------------------------------------------------------
    # Persistence
    async def _persist(self, record: WorkflowRecord) -> None:
        try:
            await retry_async(
                lambda: self.store.upsert(record),
                self._upsert_attempts,
                description=f"upsert correlation_id={record.correlation_id}",
            )
        except Exception as e:
            logger.error(
                f"Failed to persist workflow state for "
                f"correlation_id={record.correlation_id}: {e}"
            )

    async def _run_graph(self, record: WorkflowRecord) -> WorkflowRecord:
        """Stream the graph from ``record`` and persist every new state."""
        async for state in self.graph.astream({"record": record}, stream_mode="values"):
            current = state["record"]
            if current == record:
                continue
            record = current
            logger.debug(
                f"status={record.status.value} "
                f"for correlation_id={record.correlation_id}"
            )
            await self._persist(record)
        return record

    async def _load_existing(self, correlation_id: str) -> Optional[WorkflowRecord]:
        try:
            return await self.store.load_by_correlation_id(correlation_id)
        except Exception as e:
            logger.error(f"Failed to load workflow {correlation_id}: {e}")
            return None

    # ------------------------------------------------------------------
    # Entry points
    async def run_workflow(
        self,
        user_query: str,
        organization_id: str,
        correlation_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> WorkflowRecord:
        """Run the pipeline for one request and return the final record.

        The record is terminal unless the approval gate suspended it, in
        which case its status is ``awaiting_approval`` and
        ``resume_workflow`` continues it. A ``correlation_id`` that is
        already stored is not run again: the stored record is returned
        unchanged.
        """
        if correlation_id is not None:
            existing = await self._load_existing(correlation_id)
            if existing is not None:
                logger.warning(
                    f"Workflow {correlation_id} already exists with status="
                    f"{existing.status.value}; returning the stored record"
                )
                return existing

        correlation_id = correlation_id or str(uuid.uuid4())
        log = workflow_logger(__name__, correlation_id)

        record = WorkflowRecord(
            correlation_id=correlation_id,
            organization_id=organization_id,
            session_id=session_id,
            user_query=user_query,
        )
        log.info(f"Starting workflow for organization {organization_id}")
        await self._persist(record)

        problem = validate_query(user_query)
        if problem is None:
            try:
                self.rate_limit.check(organization_id)
            except RateLimitExceeded as e:
                problem = str(e)
        if problem is not None:
            log.warning(f"Rejecting request: {problem}")
            record = apply_patch(record, failure_patch(problem))
            await self._persist(record)
            return record

        record = await self._run_graph(record)
        log.info(
            f"Workflow finished with status={record.status.value} "
            f"capability={record.current_capability.value} "
            f"estimated_cost=${record.estimated_cost:.6f}"
        )
        return record

    async def resume_workflow(
        self, correlation_id: str, approved: bool, feedback: Optional[str] = None
    ) -> WorkflowRecord:
        """Apply a reviewer decision to a suspended workflow and continue it.

        Raises:
            WorkflowNotFoundError: No record is stored for ``correlation_id``.
            StateTransitionError: The record is not awaiting approval.
        """
        record = await self.store.load_by_correlation_id(correlation_id)
        if record is None:
            raise WorkflowNotFoundError(f"Workflow {correlation_id} not found")
        if not record.is_suspended:
            raise StateTransitionError(
                f"Workflow {correlation_id} is {record.status.value}, not awaiting approval"
            )

        log = workflow_logger(__name__, correlation_id, step=HITL_CHECKPOINT)
        log.info(f"Resuming with reviewer decision approved={approved}")

        record = apply_patch(
            record, approval_patch(ApprovalDecision(approved=approved, feedback=feedback))
        )
        await self._persist(record)

        if route_after_approval(record) == EXECUTE:
            record = await self._run_graph(record)
        return record

    async def process_request(self, request: OrchestratorRequest) -> OrchestratorResponse:
        """Run ``request`` and summarise the outcome for the caller.

        Never raises: an error escaping the workflow becomes a failed
        response.
        """
        correlation_id = request.correlation_id or str(uuid.uuid4())
        try:
            record = await self.run_workflow(
                request.user_query,
                request.organization_id,
                correlation_id=correlation_id,
                session_id=request.session_id,
            )
        except Exception as e:
            logger.error(
                f"Orchestrator execution failed for correlation_id={correlation_id}: {e}"
            )
            return OrchestratorResponse.from_error(
                request, correlation_id, str(e) or type(e).__name__
            )
        return OrchestratorResponse.from_record(record)


async def run_workflow(
    user_query: str,
    organization_id: str,
    correlation_id: Optional[str] = None,
    *,
    config: Optional[WonlinkConfig] = None,
    executors: Optional[Mapping[object, Executor]] = None,
) -> WorkflowRecord:
    """Run a single request through an orchestrator built from configuration."""
    orchestrator = WorkflowOrchestrator.from_config(config, executors=executors)
    return await orchestrator.run_workflow(user_query, organization_id, correlation_id)
