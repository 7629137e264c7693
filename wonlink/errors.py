"""Exception hierarchy for the wonlink orchestrator.

Recoverable failures (classification, budget, approval, rate limit,
executor and persistence) are converted into workflow state or log
entries at the component boundary that raises them. The remaining errors
signal programming or caller mistakes and propagate out of the entry
points.
"""

from __future__ import annotations


class WonlinkError(Exception):
    """Base class for all orchestrator errors."""


class ClassificationFailure(WonlinkError):
    """The generative classifier errored or returned an invalid shape."""


class BudgetVeto(WonlinkError):
    """The budget policy declined the estimated cost."""

    def __init__(self, estimated_cost: float, ceiling: float) -> None:
        self.estimated_cost = estimated_cost
        self.ceiling = ceiling
        super().__init__(
            f"estimated cost ${estimated_cost:.6f} exceeds ceiling ${ceiling:.6f}"
        )


class ApprovalRejected(WonlinkError):
    """A reviewer declined a high-stakes request."""


class ExecutorFailure(WonlinkError):
    """A capability executor raised or timed out."""


class PersistenceFailure(WonlinkError):
    """A state store operation failed."""


class UnknownCapabilityError(WonlinkError):
    """No executor is registered for the requested capability."""


class StateTransitionError(WonlinkError):
    """A patch tried to violate the workflow record invariants."""


class WorkflowNotFoundError(WonlinkError):
    """No persisted workflow exists for the correlation id."""


class RateLimitExceeded(WonlinkError):
    """The organization sent more requests than its rate limit allows."""

    def __init__(self, organization_id: str, limit_per_minute: int) -> None:
        self.organization_id = organization_id
        self.limit_per_minute = limit_per_minute
        super().__init__(
            f"rate limit of {limit_per_minute} requests per minute exceeded "
            f"for organization {organization_id}"
        )
