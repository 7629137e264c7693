"""Shared fixtures: stub collaborators and an orchestrator factory."""

from typing import Any, Optional

import pytest

from wonlink.config import ApprovalConfig, BudgetConfig, PersistenceConfig, WonlinkConfig
from wonlink.contracts import ClassificationResult
from wonlink.executors import InMemoryTaskBackend
from wonlink.models import Capability, Intent
from wonlink.orchestrator import WorkflowOrchestrator
from wonlink.persistence import InMemoryWorkflowStore


class StubClassificationService:
    """Generative classifier stand-in that counts its calls."""

    def __init__(self, result: Any = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls = 0
        self.queries: list[str] = []

    async def classify(self, query, catalogue):
        self.calls += 1
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


def classification(
    intent: Intent, capability: Capability, confidence: float = 0.92, **params
) -> ClassificationResult:
    return ClassificationResult(
        intent=intent,
        confidence=confidence,
        reasoning=f"stub classified as {intent.value}",
        suggested_capability=capability,
        extracted_params=params,
    )


class FailingStore(InMemoryWorkflowStore):
    """Store whose upserts fail a fixed number of times."""

    def __init__(self, failures: int = 10_000):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def upsert(self, record):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("database unavailable")
        await super().upsert(record)


@pytest.fixture
def store():
    return InMemoryWorkflowStore()


@pytest.fixture
def backend():
    return InMemoryTaskBackend()


@pytest.fixture
def make_orchestrator(store, backend):
    """Build an orchestrator around in-memory collaborators."""

    def _make(
        service=None,
        *,
        approval_gate=None,
        executors=None,
        budget_ceiling=None,
        approval_mode="auto",
        store_override=None,
        upsert_attempts=1,
        rate_limit=None,
    ) -> WorkflowOrchestrator:
        config = WonlinkConfig(
            approval=ApprovalConfig(mode=approval_mode),
            budget=BudgetConfig(ceiling=budget_ceiling),
            persistence=PersistenceConfig(upsert_attempts=upsert_attempts),
        )
        return WorkflowOrchestrator.from_config(
            config,
            store=store_override if store_override is not None else store,
            classification_service=service or StubClassificationService(
                error=RuntimeError("no model in tests")
            ),
            approval_gate=approval_gate,
            task_backend=backend,
            executors=executors,
            rate_limit=rate_limit,
        )

    return _make
