"""Cost estimation checkpoint.

The estimator decides whether a request needs a human to look at it. The
question of whether the organization can afford it belongs to a separate
``BudgetPolicy``; the default policy approves everything and leaves budget
enforcement to the capability executors.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .constants import COST_QUERY_UNIT
from .contracts import CostEstimate
from .errors import BudgetVeto
from .models import Capability
from .registry import get_descriptor, is_high_stakes

logger = logging.getLogger(__name__)


class BudgetPolicy(Protocol):
    def check(self, organization_id: str, estimated_cost: float) -> None:
        """Raise ``BudgetVeto`` when ``estimated_cost`` is not allowed."""


class UnlimitedBudget:
    """Approve every estimate."""

    def check(self, organization_id: str, estimated_cost: float) -> None:
        return None


class CostCeilingBudget:
    """Veto any single request whose estimate exceeds ``ceiling``."""

    def __init__(self, ceiling: float) -> None:
        if ceiling < 0:
            raise ValueError("ceiling must be non-negative")
        self.ceiling = ceiling

    def check(self, organization_id: str, estimated_cost: float) -> None:
        if estimated_cost > self.ceiling:
            raise BudgetVeto(estimated_cost, self.ceiling)


class CostEstimator:
    def __init__(self, budget: Optional[BudgetPolicy] = None) -> None:
        self.budget = budget or UnlimitedBudget()

    @staticmethod
    def estimate_cost(capability: Capability, query: str) -> float:
        """Base cost of ``capability`` scaled by query length.

        Queries up to ``COST_QUERY_UNIT`` characters cost exactly the base.
        """
        base = get_descriptor(capability).estimated_cost_per_task
        return base * max(1.0, len(query) / COST_QUERY_UNIT)

    def estimate(
        self, capability: Capability, query: str, organization_id: str = ""
    ) -> CostEstimate:
        estimated_cost = self.estimate_cost(capability, query)
        requires_approval = is_high_stakes(capability)

        try:
            self.budget.check(organization_id, estimated_cost)
        except BudgetVeto as veto:
            logger.warning(f"Budget veto for {Capability(capability).value}: {veto}")
            return CostEstimate(
                estimated_cost=estimated_cost,
                requires_approval=requires_approval,
                budget_approved=False,
                veto_reason=str(veto),
            )

        return CostEstimate(
            estimated_cost=estimated_cost,
            requires_approval=requires_approval,
            budget_approved=True,
        )
