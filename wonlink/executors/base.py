"""Executor interface shared by the dispatcher and every capability."""

from __future__ import annotations

import abc
import logging
from typing import ClassVar, Protocol

from ..contracts import ExecutionRequest, ExecutionResult
from ..models import Capability
from .backends import TaskBackend

logger = logging.getLogger(__name__)


class Executor(Protocol):
    """Anything the dispatcher can invoke for a capability."""

    async def __call__(self, request: ExecutionRequest) -> ExecutionResult:
        ...


class CapabilityExecutor(metaclass=abc.ABCMeta):
    """Base class for the built-in executors.

    Subclasses implement ``run``. Errors raised while talking to the task
    backend are reported as a failed ``ExecutionResult`` instead of being
    re-raised.
    """

    capability: ClassVar[Capability]

    def __init__(self, backend: TaskBackend) -> None:
        self.backend = backend

    async def __call__(self, request: ExecutionRequest) -> ExecutionResult:
        try:
            return await self.run(request)
        except Exception as e:
            logger.error(
                f"{self.capability.value} failed for "
                f"correlation_id={request.correlation_id}: {e}"
            )
            return ExecutionResult.failure(str(e), agent_used=self.capability.value)

    @abc.abstractmethod
    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        """Perform the capability's work for ``request``."""
        raise NotImplementedError

    async def submit(self, request: ExecutionRequest, payload: dict) -> str:
        return await self.backend.submit(
            self.capability, payload, request.correlation_id
        )
