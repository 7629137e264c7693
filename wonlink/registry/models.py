"""Pydantic models describing registry entities."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import Capability


class CapabilityDescriptor(BaseModel):
    """Static metadata for one capability executor."""

    model_config = ConfigDict(frozen=True)

    capability: Capability
    name: str
    description: str
    keywords: List[str] = Field(default_factory=list)
    estimated_cost_per_task: float = Field(ge=0.0)
    high_stakes: bool = False

    @field_validator("name")
    @classmethod
    def _ensure_name(cls, v: str) -> str:
        if not v:
            raise ValueError("name must be a non-empty string")
        return v

    def catalogue_entry(self) -> dict[str, object]:
        """Shape sent to the generative classifier."""
        return {
            "id": self.capability.value,
            "name": self.name,
            "description": self.description,
            "keywords": list(self.keywords),
        }
