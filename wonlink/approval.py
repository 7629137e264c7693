"""Human-in-the-loop approval gates for high-stakes capabilities."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Optional, Protocol, Union

from .constants import AUTO_APPROVAL_FEEDBACK
from .contracts import ApprovalDecision
from .errors import ApprovalRejected
from .models import WorkflowRecord

logger = logging.getLogger(__name__)

DecisionCallback = Callable[
    [WorkflowRecord],
    Union[Optional[ApprovalDecision], Awaitable[Optional[ApprovalDecision]]],
]


class ApprovalGate(Protocol):
    async def review(self, record: WorkflowRecord) -> Optional[ApprovalDecision]:
        """Return a decision, or ``None`` to suspend until one is supplied."""


class AutoApprovalGate:
    """Approve immediately. Stands in until a reviewer is wired up."""

    async def review(self, record: WorkflowRecord) -> Optional[ApprovalDecision]:
        logger.info(
            f"Auto-approving {record.current_capability.value} "
            f"for correlation_id={record.correlation_id}"
        )
        return ApprovalDecision(approved=True, feedback=AUTO_APPROVAL_FEEDBACK)


class ManualApprovalGate:
    """Always suspend; the decision arrives later through ``resume_workflow``."""

    async def review(self, record: WorkflowRecord) -> Optional[ApprovalDecision]:
        logger.info(
            f"Suspending correlation_id={record.correlation_id} for reviewer approval"
        )
        return None


class CallbackApprovalGate:
    """Delegate the decision to a sync or async callable.

    The callable may also raise ``ApprovalRejected``; its message becomes the
    rejection feedback.
    """

    def __init__(self, callback: DecisionCallback) -> None:
        self._callback = callback

    async def review(self, record: WorkflowRecord) -> Optional[ApprovalDecision]:
        try:
            decision = self._callback(record)
            if inspect.isawaitable(decision):
                decision = await decision
        except ApprovalRejected as e:
            return ApprovalDecision(approved=False, feedback=str(e) or None)
        return decision
