from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_CLASSIFIER_TIMEOUT,
    DEFAULT_EXECUTOR_TIMEOUT,
    DEFAULT_FAST_PATH_THRESHOLD,
    DEFAULT_RATE_LIMIT_PER_MINUTE,
    DEFAULT_UPSERT_ATTEMPTS,
)


class ClassifierConfig(BaseModel):
    """Settings for the generative classification fallback."""

    model: str = "openai:gpt-4o-mini"
    timeout_seconds: float = DEFAULT_CLASSIFIER_TIMEOUT
    fast_path_threshold: float = Field(default=DEFAULT_FAST_PATH_THRESHOLD, ge=0.0, le=1.0)


class DispatchConfig(BaseModel):
    """Settings for executor invocation."""

    executor_timeout_seconds: float = DEFAULT_EXECUTOR_TIMEOUT
    task_backend: Literal["inmemory", "http"] = "inmemory"
    task_backend_url: Optional[str] = None


class ApprovalConfig(BaseModel):
    mode: Literal["auto", "manual"] = "auto"


class BudgetConfig(BaseModel):
    ceiling: Optional[float] = Field(default=None, ge=0.0)


class RateLimitConfig(BaseModel):
    """Requests per minute allowed for each organization; ``None`` disables."""

    per_minute: Optional[int] = Field(default=DEFAULT_RATE_LIMIT_PER_MINUTE, ge=1)


class PersistenceConfig(BaseModel):
    database_url: Optional[str] = None
    upsert_attempts: int = Field(default=DEFAULT_UPSERT_ATTEMPTS, ge=1)


class WonlinkConfig(BaseModel):
    """Top-level configuration model."""

    classifier: ClassifierConfig = ClassifierConfig()
    dispatch: DispatchConfig = DispatchConfig()
    approval: ApprovalConfig = ApprovalConfig()
    budget: BudgetConfig = BudgetConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> WonlinkConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WONLINK_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("WONLINK_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WonlinkConfig(**data)
    else:
        config = WonlinkConfig()

    env_db_url = os.getenv("WONLINK_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.persistence.database_url = env_db_url
    return config
