"""End-to-end workflow tests through the orchestrator."""

import pytest

import wonlink.persistence as persistence
import wonlink.utils.retry as retry
from conftest import FailingStore, StubClassificationService, classification
from wonlink import (
    ApprovalDecision,
    CallbackApprovalGate,
    Capability,
    Intent,
    OrchestratorRequest,
    WorkflowStatus,
)
from wonlink.contracts import ExecutionResult
from wonlink.dispatch import CapabilityDispatcher
from wonlink.errors import StateTransitionError, WorkflowNotFoundError
from wonlink.estimator import CostEstimator
from wonlink.orchestrator import run_workflow
from wonlink.ratelimit import TokenBucketRateLimit
from wonlink.registry import HIGH_STAKES_CAPABILITIES, INTENT_TO_CAPABILITY

SOURCING_QUERY = "Find me a supplier for organic cotton t-shirts on 1688"
BIZPLAN_QUERY = "Write a business plan for the TIPS program"


def sourcing_service():
    return StubClassificationService(
        classification(Intent.PRODUCT_SOURCING, Capability.CHINA_SOURCE, 0.92)
    )


def bizplan_service():
    return StubClassificationService(
        classification(Intent.BUSINESS_PLAN, Capability.BIZPLAN_MASTER, 0.95)
    )


@pytest.mark.asyncio
async def test_product_sourcing_happy_path(make_orchestrator, store):
    service = sourcing_service()
    orchestrator = make_orchestrator(service)

    record = await orchestrator.run_workflow(SOURCING_QUERY, "org-1", "corr-source")

    assert service.calls == 1
    assert record.intent == Intent.PRODUCT_SOURCING
    assert record.current_capability == Capability.CHINA_SOURCE
    assert record.requires_approval is False
    assert record.estimated_cost == pytest.approx(0.1)
    assert record.status == WorkflowStatus.COMPLETED
    assert record.capability_history == [Capability.CHINA_SOURCE]
    assert record.results["china_source"]["success"] is True
    assert "1688.com" in record.final_output
    assert record.completed_at is not None
    assert WorkflowStatus.AWAITING_APPROVAL not in record.status_history

    persisted = await store.load_by_correlation_id("corr-source")
    assert persisted == record


@pytest.mark.asyncio
async def test_ambiguous_query_falls_back_to_navigator(make_orchestrator):
    service = StubClassificationService(error=RuntimeError("provider down"))
    orchestrator = make_orchestrator(service)

    query = "asdfghjkl nonsense gibberish"
    assert orchestrator.classifier.classify_by_keywords(query).confidence == 0.0

    record = await orchestrator.run_workflow(query, "org-1")

    assert service.calls == 1
    assert record.intent == Intent.UNKNOWN
    assert record.current_capability == Capability.NAVIGATOR
    assert record.status == WorkflowStatus.COMPLETED
    assert "Available specialized agents" in record.final_output


@pytest.mark.asyncio
async def test_fast_path_never_calls_model(make_orchestrator):
    service = StubClassificationService(error=AssertionError("model must not be called"))
    orchestrator = make_orchestrator(service)

    record = await orchestrator.run_workflow("hwp convert 한글 file conversion", "org-1")

    assert service.calls == 0
    assert record.intent == Intent.DOCUMENT_CONVERSION
    assert record.confidence == pytest.approx(0.9)
    assert record.status == WorkflowStatus.COMPLETED


@pytest.mark.asyncio
async def test_rejected_high_stakes_request_never_executes(make_orchestrator, backend):
    gate = CallbackApprovalGate(
        lambda record: ApprovalDecision(approved=False, feedback="Not this quarter")
    )
    orchestrator = make_orchestrator(bizplan_service(), approval_gate=gate)

    record = await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1")

    assert record.status == WorkflowStatus.FAILED
    assert record.requires_approval is True
    assert record.approved is False
    assert record.error
    assert "Not this quarter" in record.error
    assert record.capability_history == []
    assert record.results == {}
    assert backend.tasks == []
    assert WorkflowStatus.AWAITING_APPROVAL in record.status_history
    assert WorkflowStatus.EXECUTING not in record.status_history


@pytest.mark.asyncio
async def test_high_stakes_waits_for_approval_before_executing(make_orchestrator, backend):
    orchestrator = make_orchestrator(bizplan_service())

    record = await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1")

    assert record.status == WorkflowStatus.COMPLETED
    assert record.approved is True
    assert record.approval_feedback
    history = record.status_history
    assert history.index(WorkflowStatus.AWAITING_APPROVAL) < history.index(
        WorkflowStatus.EXECUTING
    )
    (task,) = backend.tasks
    assert task.capability == Capability.BIZPLAN_MASTER
    assert record.results["bizplan_master"]["plan_id"] == task.id


@pytest.mark.asyncio
async def test_executor_failure_is_recorded(make_orchestrator):
    async def broken_source(request):
        raise RuntimeError("supplier API unreachable")

    orchestrator = make_orchestrator(
        sourcing_service(), executors={Capability.CHINA_SOURCE: broken_source}
    )

    response = await orchestrator.process_request(
        OrchestratorRequest(user_query=SOURCING_QUERY, organization_id="org-1")
    )

    record = response.record
    assert response.success is False
    assert record.status == WorkflowStatus.FAILED
    assert record.error == "supplier API unreachable"
    assert response.error == "supplier API unreachable"
    assert record.results["china_source"]["success"] is False
    assert record.capability_history == [Capability.CHINA_SOURCE]


@pytest.mark.asyncio
async def test_reported_cost_becomes_actual_cost(make_orchestrator):
    async def metered(request):
        return ExecutionResult(success=True, output="done", cost=0.042)

    orchestrator = make_orchestrator(
        sourcing_service(), executors={Capability.CHINA_SOURCE: metered}
    )
    record = await orchestrator.run_workflow(SOURCING_QUERY, "org-1")
    assert record.actual_cost == pytest.approx(0.042)


@pytest.mark.asyncio
async def test_manual_approval_suspends_and_resumes(make_orchestrator, store, backend):
    orchestrator = make_orchestrator(bizplan_service(), approval_mode="manual")

    suspended = await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1", "corr-manual")
    assert suspended.status == WorkflowStatus.AWAITING_APPROVAL
    assert suspended.is_suspended
    assert backend.tasks == []
    assert (await store.load_by_correlation_id("corr-manual")).is_suspended

    response = await orchestrator.process_request(
        OrchestratorRequest(user_query=BIZPLAN_QUERY, organization_id="org-1")
    )
    assert response.output == "Awaiting reviewer approval"
    assert response.success is False

    resumed = await orchestrator.resume_workflow("corr-manual", True, "Go ahead")
    assert resumed.status == WorkflowStatus.COMPLETED
    assert resumed.approval_feedback == "Go ahead"
    assert resumed.capability_history == [Capability.BIZPLAN_MASTER]
    assert len(backend.tasks) == 1

    with pytest.raises(StateTransitionError):
        await orchestrator.resume_workflow("corr-manual", True)


@pytest.mark.asyncio
async def test_manual_rejection_fails_workflow(make_orchestrator, backend):
    orchestrator = make_orchestrator(bizplan_service(), approval_mode="manual")
    await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1", "corr-reject")

    record = await orchestrator.resume_workflow("corr-reject", False)

    assert record.status == WorkflowStatus.FAILED
    assert record.error == "Approval rejected: no reason given"
    assert backend.tasks == []


@pytest.mark.asyncio
async def test_resume_unknown_workflow(make_orchestrator):
    orchestrator = make_orchestrator()
    with pytest.raises(WorkflowNotFoundError):
        await orchestrator.resume_workflow("missing", True)


@pytest.mark.asyncio
async def test_budget_veto_stops_before_execution(make_orchestrator, backend):
    orchestrator = make_orchestrator(bizplan_service(), budget_ceiling=0.05)

    record = await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1")

    assert record.status == WorkflowStatus.FAILED
    assert record.budget_approved is False
    assert record.error.startswith("Budget veto")
    assert record.capability_history == []
    assert WorkflowStatus.AWAITING_APPROVAL not in record.status_history
    assert backend.tasks == []


@pytest.mark.asyncio
async def test_persistence_failure_does_not_fail_workflow(make_orchestrator):
    failing = FailingStore()
    orchestrator = make_orchestrator(sourcing_service(), store_override=failing)

    record = await orchestrator.run_workflow(SOURCING_QUERY, "org-1")

    assert record.status == WorkflowStatus.COMPLETED
    assert failing.attempts > 0


@pytest.mark.asyncio
async def test_persistence_is_retried(make_orchestrator, monkeypatch):
    async def no_wait(attempt):
        return None

    monkeypatch.setattr(retry, "schedule_retry", no_wait)
    flaky = FailingStore(failures=1)
    orchestrator = make_orchestrator(
        sourcing_service(), store_override=flaky, upsert_attempts=3
    )

    record = await orchestrator.run_workflow(SOURCING_QUERY, "org-1", "corr-flaky")

    assert (await flaky.load_by_correlation_id("corr-flaky")) == record


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", "x" * 10_001])
async def test_unusable_input_is_rejected(make_orchestrator, store, query):
    service = sourcing_service()
    orchestrator = make_orchestrator(service)

    record = await orchestrator.run_workflow(query, "org-1", "corr-bad-input")

    assert record.status == WorkflowStatus.FAILED
    assert record.error
    assert service.calls == 0
    assert (await store.load_by_correlation_id("corr-bad-input")).status == (
        WorkflowStatus.FAILED
    )


@pytest.mark.asyncio
async def test_every_transition_is_persisted(make_orchestrator, store):
    seen = []
    original = store.upsert

    async def recording_upsert(record):
        seen.append(record.status)
        await original(record)

    store.upsert = recording_upsert
    orchestrator = make_orchestrator(bizplan_service())

    await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1")

    assert seen == [
        WorkflowStatus.PENDING,
        WorkflowStatus.COST_CHECK,
        WorkflowStatus.AWAITING_APPROVAL,
        WorkflowStatus.EXECUTING,
        WorkflowStatus.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_module_level_entry_point(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "_store_instance", None)
    monkeypatch.setenv("WONLINK_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("WONLINK_DATABASE_URL", f"sqlite://{tmp_path / 'wf.db'}")

    record = await run_workflow("kakao crm kakaotalk 카카오", "org-1", "corr-module")

    assert record.status == WorkflowStatus.COMPLETED
    assert record.current_capability == Capability.KAKAO_CRM
    assert "Kakao CRM" in record.final_output


@pytest.mark.asyncio
@pytest.mark.parametrize("capability", list(Capability), ids=lambda c: c.value)
async def test_approval_appears_only_for_high_stakes(make_orchestrator, capability):
    intent = next(i for i, c in INTENT_TO_CAPABILITY.items() if c == capability)
    orchestrator = make_orchestrator(
        StubClassificationService(classification(intent, capability))
    )

    record = await orchestrator.run_workflow("please handle this request", "org-1")

    assert record.current_capability == capability
    history = record.status_history
    if capability in HIGH_STAKES_CAPABILITIES:
        assert history.index(WorkflowStatus.AWAITING_APPROVAL) < history.index(
            WorkflowStatus.EXECUTING
        )
    else:
        assert WorkflowStatus.AWAITING_APPROVAL not in history
        assert WorkflowStatus.EXECUTING in history


@pytest.mark.asyncio
async def test_failing_approval_gate_fails_workflow(make_orchestrator, store, backend):
    def reviewer_down(record):
        raise RuntimeError("reviewer service down")

    orchestrator = make_orchestrator(
        bizplan_service(), approval_gate=CallbackApprovalGate(reviewer_down)
    )

    record = await orchestrator.run_workflow(BIZPLAN_QUERY, "org-1", "corr-gate-down")

    assert record.status == WorkflowStatus.FAILED
    assert record.error == "Approval gate failed: reviewer service down"
    assert record.completed_at is not None
    assert backend.tasks == []
    assert await store.load_by_correlation_id("corr-gate-down") == record


@pytest.mark.asyncio
async def test_failing_budget_policy_fails_workflow(make_orchestrator, store):
    class BrokenBudget:
        def check(self, organization_id, estimated_cost):
            raise ConnectionError("billing service unreachable")

    orchestrator = make_orchestrator(sourcing_service())
    orchestrator.estimator = CostEstimator(BrokenBudget())

    record = await orchestrator.run_workflow(SOURCING_QUERY, "org-1", "corr-budget-down")

    assert record.status == WorkflowStatus.FAILED
    assert record.error == "Cost check failed: billing service unreachable"
    assert record.capability_history == []
    assert (await store.load_by_correlation_id("corr-budget-down")).status == (
        WorkflowStatus.FAILED
    )


@pytest.mark.asyncio
async def test_unserializable_executor_result_fails_workflow(make_orchestrator, store):
    async def leaky(request):
        return ExecutionResult(success=True, output="ok", handle=object())

    orchestrator = make_orchestrator(
        sourcing_service(), executors={Capability.CHINA_SOURCE: leaky}
    )

    record = await orchestrator.run_workflow(SOURCING_QUERY, "org-1", "corr-leaky")

    assert record.status == WorkflowStatus.FAILED
    assert "invalid result" in record.error
    assert record.results["china_source"]["success"] is False
    assert await store.load_by_correlation_id("corr-leaky") == record


@pytest.mark.asyncio
async def test_existing_correlation_id_is_not_overwritten(make_orchestrator, store):
    service = StubClassificationService(error=RuntimeError("provider down"))
    orchestrator = make_orchestrator(service)

    first = await orchestrator.run_workflow("asdfghjkl nonsense gibberish", "org-1", "same")
    assert first.status == WorkflowStatus.COMPLETED

    again = await orchestrator.run_workflow("", "org-1", "same")

    assert again == first
    assert await store.load_by_correlation_id("same") == first
    assert service.calls == 1


@pytest.mark.asyncio
async def test_rate_limited_organization_gets_failed_record(make_orchestrator, store):
    service = sourcing_service()
    orchestrator = make_orchestrator(
        service, rate_limit=TokenBucketRateLimit(1, clock=lambda: 0.0)
    )

    allowed = await orchestrator.run_workflow(SOURCING_QUERY, "org-1")
    limited = await orchestrator.run_workflow(SOURCING_QUERY, "org-1", "corr-limited")
    other_org = await orchestrator.run_workflow(SOURCING_QUERY, "org-2")

    assert allowed.status == WorkflowStatus.COMPLETED
    assert limited.status == WorkflowStatus.FAILED
    assert "rate limit" in limited.error
    assert other_org.status == WorkflowStatus.COMPLETED
    assert service.calls == 2
    assert (await store.load_by_correlation_id("corr-limited")).status == (
        WorkflowStatus.FAILED
    )


@pytest.mark.asyncio
async def test_process_request_always_returns_a_response(make_orchestrator):
    orchestrator = make_orchestrator(sourcing_service())
    orchestrator.dispatcher = CapabilityDispatcher({})

    response = await orchestrator.process_request(
        OrchestratorRequest(
            user_query=SOURCING_QUERY, organization_id="org-1", correlation_id="corr-boom"
        )
    )

    assert response.success is False
    assert response.correlation_id == "corr-boom"
    assert response.output == "Failed to process query"
    assert "Unknown capability" in response.error
    assert response.record.status == WorkflowStatus.FAILED
    assert response.record.error == response.error
