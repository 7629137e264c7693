"""Static capability catalogue.

The catalogue is closed: every ``Capability`` member has exactly one
descriptor, and the high-stakes set is fixed here rather than derived at
runtime.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List

from ..models import Capability, Intent
from .models import CapabilityDescriptor

CATALOGUE: Dict[Capability, CapabilityDescriptor] = {
    descriptor.capability: descriptor
    for descriptor in (
        CapabilityDescriptor(
            capability=Capability.NAVIGATOR,
            name="K-Startup Navigator",
            description="General assistant and routing agent",
            keywords=["help", "guide", "navigator", "start"],
            estimated_cost_per_task=0.005,
        ),
        CapabilityDescriptor(
            capability=Capability.BIZPLAN_MASTER,
            name="Business Plan Master",
            description="Generates government business plans (Hwp/Docx)",
            keywords=["business plan", "tips", "government", "hwp"],
            estimated_cost_per_task=0.15,
            high_stakes=True,
        ),
        CapabilityDescriptor(
            capability=Capability.GRANT_SCOUT,
            name="R&D Grant Scout",
            description="Matches startups with government grants",
            keywords=["grant", "funding", "support", "match"],
            estimated_cost_per_task=0.05,
        ),
        CapabilityDescriptor(
            capability=Capability.CHINA_SOURCE,
            name="ChinaSource Pro",
            description="Sourcing agent for 1688.com",
            keywords=["1688", "alibaba", "sourcing", "product"],
            estimated_cost_per_task=0.1,
        ),
        CapabilityDescriptor(
            capability=Capability.NAVER_SEO,
            name="NaverSEO Pro",
            description="SEO optimization for Naver Smart Store",
            keywords=["naver", "seo", "smart store", "ranking"],
            estimated_cost_per_task=0.08,
        ),
        CapabilityDescriptor(
            capability=Capability.PROPOSAL_GEN,
            name="Proposal Architect",
            description="Generates B2B consulting proposals",
            keywords=["proposal", "b2b", "consulting", "offer"],
            estimated_cost_per_task=0.12,
            high_stakes=True,
        ),
        CapabilityDescriptor(
            capability=Capability.HWP_CONVERTER,
            name="HWP Converter",
            description="Converts HWP files to other formats",
            keywords=["hwp", "convert", "pdf", "docx"],
            estimated_cost_per_task=0.01,
        ),
        CapabilityDescriptor(
            capability=Capability.BOOKKEEPING,
            name="Ledger Logic",
            description="Automated bookkeeping and reconciliation",
            keywords=["ledger", "transaction", "reconcile", "tax"],
            estimated_cost_per_task=0.03,
        ),
        CapabilityDescriptor(
            capability=Capability.SAFETY_GUARDIAN,
            name="Safety Guardian",
            description="IoT safety compliance monitoring",
            keywords=["safety", "compliance", "iot", "check"],
            estimated_cost_per_task=0.02,
        ),
        CapabilityDescriptor(
            capability=Capability.KAKAO_CRM,
            name="KakaoTalk CRM",
            description="Automated customer service via KakaoTalk",
            keywords=["kakao", "crm", "message", "chat"],
            estimated_cost_per_task=0.02,
        ),
    )
}

HIGH_STAKES_CAPABILITIES: FrozenSet[Capability] = frozenset(
    capability for capability, descriptor in CATALOGUE.items() if descriptor.high_stakes
)

DEFAULT_CAPABILITY = Capability.NAVIGATOR

INTENT_TO_CAPABILITY: Dict[Intent, Capability] = {
    Intent.BUSINESS_PLAN: Capability.BIZPLAN_MASTER,
    Intent.GRANT_APPLICATION: Capability.GRANT_SCOUT,
    Intent.PRODUCT_SOURCING: Capability.CHINA_SOURCE,
    Intent.SEO_OPTIMIZATION: Capability.NAVER_SEO,
    Intent.PROPOSAL_WRITING: Capability.PROPOSAL_GEN,
    Intent.DOCUMENT_CONVERSION: Capability.HWP_CONVERTER,
    Intent.BOOKKEEPING: Capability.BOOKKEEPING,
    Intent.SAFETY_COMPLIANCE: Capability.SAFETY_GUARDIAN,
    Intent.CRM_AUTOMATION: Capability.KAKAO_CRM,
    Intent.STARTUP_PROGRAMS: Capability.NAVIGATOR,
    Intent.UNKNOWN: Capability.NAVIGATOR,
}


def get_descriptor(capability: Capability) -> CapabilityDescriptor:
    """Return the descriptor for ``capability``."""
    return CATALOGUE[Capability(capability)]


def intent_to_capability(intent: Intent) -> Capability:
    """Fallback capability for ``intent`` when a classification names none."""
    return INTENT_TO_CAPABILITY[Intent(intent)]


def is_high_stakes(capability: Capability) -> bool:
    return Capability(capability) in HIGH_STAKES_CAPABILITIES


def catalogue_entries() -> List[dict[str, object]]:
    return [descriptor.catalogue_entry() for descriptor in CATALOGUE.values()]


__all__ = [
    "CATALOGUE",
    "CapabilityDescriptor",
    "DEFAULT_CAPABILITY",
    "HIGH_STAKES_CAPABILITIES",
    "INTENT_TO_CAPABILITY",
    "catalogue_entries",
    "get_descriptor",
    "intent_to_capability",
    "is_high_stakes",
]
