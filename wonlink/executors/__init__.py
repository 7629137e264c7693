"""Capability executors and the task backends they submit to."""

from __future__ import annotations

from typing import Dict, Optional

from ..config import WonlinkConfig, load_config
from ..models import Capability
from .backends import HttpTaskBackend, InMemoryTaskBackend, SubmittedTask, TaskBackend
from .base import CapabilityExecutor, Executor
from .builtin import BUILTIN_EXECUTORS, guidance_text


def get_task_backend(config: Optional[WonlinkConfig] = None) -> TaskBackend:
    """Factory function to get the configured task backend."""

    config = config or load_config()
    backend = config.dispatch.task_backend
    if backend == "inmemory":
        return InMemoryTaskBackend()
    elif backend == "http":
        if not config.dispatch.task_backend_url:
            raise ValueError("dispatch.task_backend_url is required for the http backend")
        return HttpTaskBackend(
            config.dispatch.task_backend_url,
            timeout=config.dispatch.executor_timeout_seconds,
        )
    else:
        raise ValueError(f"Unsupported task backend: {backend}")


def build_default_executors(backend: TaskBackend) -> Dict[Capability, Executor]:
    """Instantiate every built-in executor against ``backend``."""
    return {cls.capability: cls(backend) for cls in BUILTIN_EXECUTORS}


__all__ = [
    "CapabilityExecutor",
    "Executor",
    "HttpTaskBackend",
    "InMemoryTaskBackend",
    "SubmittedTask",
    "TaskBackend",
    "build_default_executors",
    "get_task_backend",
    "guidance_text",
]
