import pytest
from pydantic import ValidationError

from wonlink.models import Capability, Intent
from wonlink.registry import (
    CATALOGUE,
    INTENT_TO_CAPABILITY,
    catalogue_entries,
    intent_to_capability,
    is_high_stakes,
)
from wonlink.registry.models import CapabilityDescriptor


def test_catalogue_covers_every_capability():
    assert set(CATALOGUE) == set(Capability)
    assert set(INTENT_TO_CAPABILITY) == set(Intent)


def test_high_stakes_set_is_fixed():
    assert is_high_stakes(Capability.BIZPLAN_MASTER)
    assert is_high_stakes(Capability.PROPOSAL_GEN)
    assert not is_high_stakes(Capability.CHINA_SOURCE)


def test_intent_fallback_mapping():
    assert intent_to_capability(Intent.PRODUCT_SOURCING) == Capability.CHINA_SOURCE
    assert intent_to_capability(Intent.UNKNOWN) == Capability.NAVIGATOR
    assert intent_to_capability(Intent.STARTUP_PROGRAMS) == Capability.NAVIGATOR


def test_catalogue_entries_shape():
    entries = catalogue_entries()
    assert len(entries) == len(Capability)
    assert entries[0] == {
        "id": "navigator",
        "name": "K-Startup Navigator",
        "description": "General assistant and routing agent",
        "keywords": ["help", "guide", "navigator", "start"],
    }


def test_descriptor_validation():
    with pytest.raises(ValidationError):
        CapabilityDescriptor(
            capability=Capability.NAVIGATOR,
            name="",
            description="x",
            estimated_cost_per_task=0.1,
        )
    with pytest.raises(ValidationError):
        CapabilityDescriptor(
            capability=Capability.NAVIGATOR,
            name="Navigator",
            description="x",
            estimated_cost_per_task=-1,
        )
