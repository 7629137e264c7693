"""Task backends the built-in executors submit work to."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, Field

from ..constants import MAX_INMEMORY_TASKS
from ..models import Capability

logger = logging.getLogger(__name__)


class SubmittedTask(BaseModel):
    id: str
    capability: Capability
    correlation_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class TaskBackend(Protocol):
    """Service that owns the actual work behind each capability."""

    async def submit(
        self, capability: Capability, payload: Dict[str, Any], correlation_id: str
    ) -> str:
        """Create and start a task, returning its identifier."""


class InMemoryTaskBackend:
    """Record submissions in local memory.

    Useful for tests or when no task service is configured. Only the most
    recent ``max_tasks`` submissions are kept.
    """

    def __init__(self, max_tasks: int = MAX_INMEMORY_TASKS) -> None:
        if max_tasks < 1:
            raise ValueError("max_tasks must be at least 1")
        self.max_tasks = max_tasks
        self.tasks: List[SubmittedTask] = []
        self._lock = asyncio.Lock()

    async def submit(
        self, capability: Capability, payload: Dict[str, Any], correlation_id: str
    ) -> str:
        task = SubmittedTask(
            id=str(uuid.uuid4()),
            capability=capability,
            correlation_id=correlation_id,
            payload=payload,
        )
        async with self._lock:
            self.tasks.append(task)
            if len(self.tasks) > self.max_tasks:
                del self.tasks[: -self.max_tasks]
        return task.id


class HttpTaskBackend:
    """Submit tasks to a remote service over HTTP.

    Each submission is ``POST {base_url}/tasks/{capability}`` with a JSON body
    of ``{"correlation_id": ..., "payload": {...}}``; the response must carry
    the new task's ``id``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def submit(
        self, capability: Capability, payload: Dict[str, Any], correlation_id: str
    ) -> str:
        url = f"{self.base_url}/tasks/{Capability(capability).value}"
        body = {"correlation_id": correlation_id, "payload": payload}
        if self._client is not None:
            resp = await self._client.post(url, json=body)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body)
        resp.raise_for_status()
        data = resp.json()
        if "id" not in data:
            raise ValueError(f"task service response missing 'id': {data}")
        logger.debug(
            f"Submitted {Capability(capability).value} task {data['id']} "
            f"for correlation_id={correlation_id}"
        )
        return str(data["id"])
