"""Built-in executors, one per capability.

Each executor turns the classified request into the payload its task
service expects, submits it and summarises the outcome for the user.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import httpx

from ..contracts import ExecutionRequest, ExecutionResult
from ..models import Capability, Intent
from ..registry import CATALOGUE
from .base import CapabilityExecutor

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s]+")

SOURCING_PLATFORMS = {"1688.com": "1688", "alibaba.com": "Alibaba"}


def _find_url(request: ExecutionRequest, param: str) -> Optional[str]:
    url = request.extracted_params.get(param)
    if url:
        return str(url)
    match = URL_PATTERN.search(request.user_query)
    return match.group(0) if match else None


def _sourcing_platform(url: str) -> Optional[str]:
    """Platform name when ``url`` points at a supported sourcing site."""
    if "://" not in url:
        url = f"https://{url}"
    try:
        host = httpx.URL(url).host.lower()
    except httpx.InvalidURL:
        return None
    for domain, platform in SOURCING_PLATFORMS.items():
        if host == domain or host.endswith(f".{domain}"):
            return platform
    return None


def _param(params: Dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        value = params.get(name)
        if value is not None:
            return value
    return default


class NavigatorExecutor(CapabilityExecutor):
    """Default handler: startup program matching or general guidance."""

    capability = Capability.NAVIGATOR

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        if request.intent == Intent.STARTUP_PROGRAMS:
            params = request.extracted_params
            try:
                match_id = await self.submit(
                    request,
                    {
                        "startup_profile": {
                            "industry": _param(params, "industry", default="Software"),
                            "stage": _param(params, "stage", default="Seed"),
                            "founder_status": _param(
                                params, "founder_status", default="Native"
                            ),
                        }
                    },
                )
            except Exception as e:
                logger.warning(
                    f"Program matching failed for correlation_id="
                    f"{request.correlation_id}, falling back to guidance: {e}"
                )
            else:
                return ExecutionResult(
                    success=True,
                    output=(
                        "I've analyzed your startup profile. TIPS and OASIS seem like "
                        "the best fit. I've added the full matching report to your "
                        "dashboard."
                    ),
                    agent_used=self.capability.value,
                    match_id=match_id,
                )

        return ExecutionResult(
            success=True, output=guidance_text(), agent_used=self.capability.value
        )


def guidance_text() -> str:
    available = "\n".join(
        f"- {descriptor.name}: {descriptor.description}"
        for capability, descriptor in CATALOGUE.items()
        if capability != Capability.NAVIGATOR
    )
    return (
        "K-Startup Navigator - I can help route your request to the right agent.\n\n"
        f"Available specialized agents:\n{available}\n\n"
        "How can I assist you today?"
    )


class BizplanMasterExecutor(CapabilityExecutor):
    capability = Capability.BIZPLAN_MASTER

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        params = request.extracted_params
        target_program = _param(params, "target_program", default="TIPS")
        plan_id = await self.submit(
            request,
            {
                "input_materials": _param(
                    params, "input_materials", default=request.user_query
                ),
                "target_program": target_program,
            },
        )
        return ExecutionResult(
            success=True,
            output=(
                f"Business plan draft generated for {target_program}. "
                "You can review it in the Command Center."
            ),
            agent_used=self.capability.value,
            plan_id=plan_id,
        )


class GrantScoutExecutor(CapabilityExecutor):
    capability = Capability.GRANT_SCOUT

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        params = request.extracted_params
        startup_name = _param(params, "startup_name", default="New Startup")
        application_id = await self.submit(
            request,
            {
                "startup_name": startup_name,
                "tech_sector": _param(
                    params, "tech_sector", "industry", default="Deep Tech"
                ),
            },
        )
        return ExecutionResult(
            success=True,
            output=(
                f"Matched {startup_name} with government grants. "
                "Check the Scout report for details."
            ),
            agent_used=self.capability.value,
            application_id=application_id,
        )


class ChinaSourceExecutor(CapabilityExecutor):
    capability = Capability.CHINA_SOURCE

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        url = _find_url(request, "source_url")
        platform = _sourcing_platform(url) if url else None
        if platform is None:
            return ExecutionResult(
                success=True,
                output=(
                    "ChinaSource Pro: Please provide a valid 1688.com or "
                    "Alibaba.com URL to start sourcing."
                ),
                agent_used=self.capability.value,
            )

        task_id = await self.submit(
            request,
            {"source_url": url, "platform": platform},
        )
        return ExecutionResult(
            success=True,
            output=(
                f"Sourcing analysis complete for {url}. "
                "Translation and pricing are ready in the dashboard."
            ),
            agent_used=self.capability.value,
            task_id=task_id,
        )


class NaverSeoExecutor(CapabilityExecutor):
    capability = Capability.NAVER_SEO

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        url = _find_url(request, "target_url")
        if not url:
            return ExecutionResult(
                success=True,
                output=(
                    "NaverSEO Pro: Please provide a Naver Smart Store URL to "
                    "perform an SEO audit."
                ),
                agent_used=self.capability.value,
            )

        audit_id = await self.submit(request, {"target_url": url, "platform": "NAVER"})
        return ExecutionResult(
            success=True,
            output=(
                f"SEO audit for {url} completed. Ranking suggestions are "
                "available in the SEO Master dashboard."
            ),
            agent_used=self.capability.value,
            audit_id=audit_id,
        )


class ProposalGenExecutor(CapabilityExecutor):
    capability = Capability.PROPOSAL_GEN

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        params = request.extracted_params
        client_name = _param(params, "client_name")
        proposal_id = await self.submit(
            request,
            {
                "client_name": client_name or "New Client",
                "project_scope": _param(
                    params, "project_scope", default=request.user_query
                ),
                "client_url": _param(params, "client_url"),
            },
        )
        return ExecutionResult(
            success=True,
            output=(
                f"Consulting proposal drafted for {client_name or 'the client'}. "
                "The final document is ready for review in the Proposal Architect."
            ),
            agent_used=self.capability.value,
            proposal_id=proposal_id,
        )


class HwpConverterExecutor(CapabilityExecutor):
    capability = Capability.HWP_CONVERTER

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        return ExecutionResult(
            success=True,
            output=(
                "HWP Converter: File conversion requires uploading an HWP file "
                "first. Please use the Document Center to upload."
            ),
            agent_used=self.capability.value,
            requires_setup=True,
        )


class BookkeepingExecutor(CapabilityExecutor):
    capability = Capability.BOOKKEEPING

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        return ExecutionResult(
            success=True,
            output=(
                "Ledger Logic: Transaction reconciliation requires bank statement "
                "uploads. Please use the Ledger Logic dashboard to upload data."
            ),
            agent_used=self.capability.value,
            requires_setup=True,
        )


class SafetyGuardianExecutor(CapabilityExecutor):
    capability = Capability.SAFETY_GUARDIAN

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        params = request.extracted_params
        sensor_type = _param(params, "sensor_type", default="Generic Sensor")
        value = _param(params, "value", default=95)
        zone = _param(params, "zone", default="Main Plant")
        log_id = await self.submit(
            request,
            {
                "sensor_type": sensor_type,
                "value": value,
                "zone": zone,
                "organization_id": request.organization_id,
            },
        )
        return ExecutionResult(
            success=True,
            output=(
                f"Safety Guardian: Recorded {sensor_type} anomaly ({value}) in {zone}. "
                "Compliance log and automated response generated."
            ),
            agent_used=self.capability.value,
            log_id=log_id,
        )


class KakaoCrmExecutor(CapabilityExecutor):
    capability = Capability.KAKAO_CRM

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        target_market = _param(request.extracted_params, "target_market", default="Korea")
        task_id = await self.submit(
            request, {"source_text": request.user_query, "target_market": target_market}
        )
        return ExecutionResult(
            success=True,
            output=(
                f"Kakao CRM: Message transcreated for {target_market}. "
                "Content is native-feeling and culturally adapted."
            ),
            agent_used=self.capability.value,
            task_id=task_id,
        )


BUILTIN_EXECUTORS = (
    NavigatorExecutor,
    BizplanMasterExecutor,
    GrantScoutExecutor,
    ChinaSourceExecutor,
    NaverSeoExecutor,
    ProposalGenExecutor,
    HwpConverterExecutor,
    BookkeepingExecutor,
    SafetyGuardianExecutor,
    KakaoCrmExecutor,
)
