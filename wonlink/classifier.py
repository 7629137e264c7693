"""Intent classification for capability routing.

Two strategies run in order. A deterministic keyword matcher answers
common queries without any model call; when its best score does not clear
the fast-path threshold, a generative classifier constrained to the
``ClassificationResult`` schema gets the query and the capability
catalogue. Failures of the generative path are absorbed here and never
reach the workflow.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ValidationError
from pydantic_ai import Agent
from pydantic_ai.models import Model

from .constants import (
    DEFAULT_CLASSIFIER_TIMEOUT,
    DEFAULT_FAST_PATH_THRESHOLD,
    FALLBACK_CONFIDENCE,
)
from .contracts import ClassificationResult
from .errors import ClassificationFailure
from .models import Capability, Intent
from .registry import DEFAULT_CAPABILITY, catalogue_entries
from .utils.logs import workflow_logger

logger = logging.getLogger(__name__)


class KeywordPattern(BaseModel):
    """Keyword set and base confidence for one intent."""

    intent: Intent
    capability: Capability
    keywords: List[str]
    confidence: float

    def matches(self, query: str) -> List[str]:
        """Return the keywords contained in the lowercased ``query``."""
        return [kw for kw in self.keywords if kw.lower() in query]

    def score(self, matched: Sequence[str]) -> float:
        return self.confidence * (len(matched) / len(self.keywords))


KEYWORD_PATTERNS: List[KeywordPattern] = [
    KeywordPattern(
        intent=Intent.BUSINESS_PLAN,
        capability=Capability.BIZPLAN_MASTER,
        keywords=["business plan", "사업계획서", "tips business", "startup plan"],
        confidence=0.9,
    ),
    KeywordPattern(
        intent=Intent.GRANT_APPLICATION,
        capability=Capability.GRANT_SCOUT,
        keywords=["grant", "tips", "mss", "nipa", "정부지원", "지원사업", "funding"],
        confidence=0.85,
    ),
    KeywordPattern(
        intent=Intent.PRODUCT_SOURCING,
        capability=Capability.CHINA_SOURCE,
        keywords=["1688", "alibaba", "sourcing", "supplier", "china"],
        confidence=0.9,
    ),
    KeywordPattern(
        intent=Intent.SEO_OPTIMIZATION,
        capability=Capability.NAVER_SEO,
        keywords=["naver", "seo", "smart store", "네이버", "optimization"],
        confidence=0.85,
    ),
    KeywordPattern(
        intent=Intent.PROPOSAL_WRITING,
        capability=Capability.PROPOSAL_GEN,
        keywords=["proposal", "consulting", "제안서", "제안"],
        confidence=0.85,
    ),
    KeywordPattern(
        intent=Intent.DOCUMENT_CONVERSION,
        capability=Capability.HWP_CONVERTER,
        keywords=["hwp", "convert", "한글", "file conversion"],
        confidence=0.9,
    ),
    KeywordPattern(
        intent=Intent.BOOKKEEPING,
        capability=Capability.BOOKKEEPING,
        keywords=["bookkeeping", "ledger", "transaction", "reconcile", "accounting"],
        confidence=0.85,
    ),
    KeywordPattern(
        intent=Intent.SAFETY_COMPLIANCE,
        capability=Capability.SAFETY_GUARDIAN,
        keywords=["safety", "compliance", "iot", "audit", "안전"],
        confidence=0.85,
    ),
    KeywordPattern(
        intent=Intent.CRM_AUTOMATION,
        capability=Capability.KAKAO_CRM,
        keywords=["kakao", "crm", "kakaotalk", "카카오"],
        confidence=0.85,
    ),
    KeywordPattern(
        intent=Intent.STARTUP_PROGRAMS,
        capability=Capability.NAVIGATOR,
        keywords=["k-startup", "startup program", "foreigner", "visa"],
        confidence=0.8,
    ),
]

CLASSIFIER_INSTRUCTIONS = """\
You are an intent classifier for a multi-agent AI system for Korean business automation.

1. Classify the user's intent into one of the predefined categories
2. Determine which agent should handle this query
3. Extract any relevant parameters from the query
4. Provide a confidence score (0-1)

Example classifications:
- "Generate a business plan for TIPS" -> intent: business_plan, agent: bizplan_master
- "Find me a supplier on 1688 for phone cases" -> intent: product_sourcing, agent: china_source
- "Convert this HWP file to PDF" -> intent: document_conversion, agent: hwp_converter
- "Match my startup to government grants" -> intent: grant_application, agent: grant_scout
- "Optimize my Naver Smart Store SEO" -> intent: seo_optimization, agent: naver_seo

If the query is ambiguous or doesn't match any agent's capability, classify as
"unknown" and route to "navigator".
"""


def build_classification_prompt(query: str, catalogue: Sequence[dict[str, Any]]) -> str:
    """Render the user query and capability catalogue for the model."""
    lines = [f'User Query: "{query}"', "", "Available Agents and Their Capabilities:"]
    for entry in catalogue:
        keywords = ", ".join(entry.get("keywords") or [])
        lines.append(f"- {entry['name']} ({entry['id']}): {entry['description']}")
        lines.append(f"  Keywords: {keywords}")
    return "\n".join(lines)


class ClassificationService(Protocol):
    """Structured-generation backend for ambiguous queries."""

    async def classify(
        self, query: str, catalogue: Sequence[dict[str, Any]]
    ) -> Union[ClassificationResult, dict]:
        """Return a classification matching the ``ClassificationResult`` schema."""


class ModelClassificationService:
    """Classification service backed by a pydantic-ai agent."""

    def __init__(self, model: Union[Model, str, None] = None) -> None:
        self.agent: Agent[None, ClassificationResult] = Agent(
            model,
            output_type=ClassificationResult,
            instructions=CLASSIFIER_INSTRUCTIONS,
            name="intent_classifier",
            defer_model_check=True,
        )

    async def classify(
        self, query: str, catalogue: Sequence[dict[str, Any]]
    ) -> ClassificationResult:
        result = await self.agent.run(build_classification_prompt(query, catalogue))
        return result.output


class IntentClassifier:
    """Two-tier classifier: keyword fast path, generative slow path."""

    def __init__(
        self,
        service: Optional[ClassificationService] = None,
        *,
        fast_path_threshold: float = DEFAULT_FAST_PATH_THRESHOLD,
        timeout: float = DEFAULT_CLASSIFIER_TIMEOUT,
        patterns: Sequence[KeywordPattern] = KEYWORD_PATTERNS,
    ) -> None:
        self._service = service
        self._threshold = fast_path_threshold
        self._timeout = timeout
        self._patterns = list(patterns)

    def classify_by_keywords(self, query: str) -> ClassificationResult:
        """Score every pattern against ``query`` and keep the strict best."""
        lowered = query.lower()
        best = ClassificationResult(
            intent=Intent.UNKNOWN,
            confidence=0.0,
            reasoning="No clear keyword match found",
            suggested_capability=DEFAULT_CAPABILITY,
            extracted_params={},
        )

        for pattern in self._patterns:
            matched = pattern.matches(lowered)
            if not matched:
                continue
            score = pattern.score(matched)
            if score > best.confidence:
                best = ClassificationResult(
                    intent=pattern.intent,
                    confidence=score,
                    reasoning=f"Matched keywords: {', '.join(matched)}",
                    suggested_capability=pattern.capability,
                    extracted_params={"matched_keywords": matched},
                )
        return best

    async def classify(self, query: str, correlation_id: str) -> ClassificationResult:
        log = workflow_logger(__name__, correlation_id, step="classify")

        keyword_result = self.classify_by_keywords(query)
        if keyword_result.confidence > self._threshold:
            log.info(
                f"Intent classified via keywords: {keyword_result.intent.value} "
                f"(confidence={keyword_result.confidence:.2f})"
            )
            return keyword_result

        log.info("Using generative classifier for intent classification")
        try:
            result = await self._classify_with_service(query)
        except ClassificationFailure as e:
            log.error(f"Generative classification failed, using fallback: {e}")
            if keyword_result.confidence > 0:
                return keyword_result
            return ClassificationResult(
                intent=Intent.UNKNOWN,
                confidence=FALLBACK_CONFIDENCE,
                reasoning="AI classification failed, routing to navigator",
                suggested_capability=DEFAULT_CAPABILITY,
                extracted_params={},
            )

        log.info(
            f"Intent classified via model: {result.intent.value} "
            f"(confidence={result.confidence:.2f}, "
            f"capability={getattr(result.suggested_capability, 'value', None)})"
        )
        return result

    async def _classify_with_service(self, query: str) -> ClassificationResult:
        if self._service is None:
            raise ClassificationFailure("no classification service configured")
        try:
            raw = await asyncio.wait_for(
                self._service.classify(query, catalogue_entries()), self._timeout
            )
        except asyncio.TimeoutError as e:
            raise ClassificationFailure(
                f"classification timed out after {self._timeout}s"
            ) from e
        except Exception as e:
            raise ClassificationFailure(str(e) or type(e).__name__) from e

        try:
            if isinstance(raw, ClassificationResult):
                return ClassificationResult.model_validate(raw.model_dump())
            return ClassificationResult.model_validate(raw)
        except ValidationError as e:
            raise ClassificationFailure(f"invalid classification shape: {e}") from e
