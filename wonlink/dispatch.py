"""Capability dispatcher for wonlink."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Mapping

from .constants import DEFAULT_EXECUTOR_TIMEOUT
from .contracts import ExecutionRequest, ExecutionResult
from .errors import ExecutorFailure, UnknownCapabilityError
from .executors import Executor
from .models import Capability, WorkflowRecord

logger = logging.getLogger(__name__)


class CapabilityDispatcher:
    """Static dispatch table from capability to executor.

    The table is fixed at construction. Executor exceptions and timeouts
    are converted into failed ``ExecutionResult`` values, as are results
    that cannot be serialized to JSON. Only a capability with no registered
    executor raises.
    """

    def __init__(
        self,
        executors: Mapping[Capability, Executor],
        timeout: float = DEFAULT_EXECUTOR_TIMEOUT,
    ) -> None:
        self._executors = MappingProxyType(
            {Capability(cap): executor for cap, executor in executors.items()}
        )
        self._timeout = timeout

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(self._executors)

    def get_executor(self, capability: Capability) -> Executor:
        try:
            return self._executors[Capability(capability)]
        except (KeyError, ValueError):
            raise UnknownCapabilityError(f"Unknown capability: {capability}") from None

    async def execute(
        self, capability: Capability, record: WorkflowRecord
    ) -> ExecutionResult:
        """Invoke the executor for ``capability`` with a request built from ``record``."""
        executor = self.get_executor(capability)
        request = ExecutionRequest.from_record(record)
        agent_used = Capability(capability).value

        try:
            result = await self._invoke(executor, request)
        except ExecutorFailure as e:
            logger.error(
                f"Executor {agent_used} failed for correlation_id="
                f"{record.correlation_id}: {e}"
            )
            return ExecutionResult.failure(str(e), agent_used=agent_used)

        if result.agent_used is None:
            result.agent_used = agent_used
        logger.info(
            f"Executor {agent_used} finished for correlation_id="
            f"{record.correlation_id} (success={result.success})"
        )
        return result

    async def _invoke(
        self, executor: Executor, request: ExecutionRequest
    ) -> ExecutionResult:
        try:
            result = await asyncio.wait_for(executor(request), self._timeout)
        except asyncio.TimeoutError as e:
            raise ExecutorFailure(f"executor timed out after {self._timeout}s") from e
        except Exception as e:
            raise ExecutorFailure(str(e) or type(e).__name__) from e

        # Results are stored as JSON, so anything that cannot be dumped fails here.
        try:
            if not isinstance(result, ExecutionResult):
                result = ExecutionResult.model_validate(result)
            return ExecutionResult.model_validate(result.model_dump(mode="json"))
        except Exception as e:
            raise ExecutorFailure(f"executor returned an invalid result: {e}") from e
