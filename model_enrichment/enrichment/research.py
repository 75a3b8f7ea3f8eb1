"""
Research Client - One research call per catalog entry.

Builds the research prompt, calls the LLM, prices the call from its token
usage and parses the answer into a ResearchPayload.

Failures:
- ResearchCallFailure: the LLM call raised (network, auth, quota)
- PayloadParseFailure: the answer was not a usable payload (carries cost)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from model_enrichment.config import DEFAULT_RESEARCH_MODEL
from model_enrichment.enrichment.llm_client import LLMClient, get_llm_client
from model_enrichment.enrichment.models import ResearchResult
from model_enrichment.enrichment.validators import parse_research_response
from model_enrichment.errors import ResearchCallFailure
from model_enrichment.jobs.models import DetailLevel, GenerationParams
from model_enrichment.pricing import estimate_cost_usd

logger = logging.getLogger(__name__)

DETAIL_DESCRIPTIONS = {
    DetailLevel.BASIC: "concise",
    DetailLevel.ENHANCED: "thorough",
    DetailLevel.PREMIUM: "comprehensive and detailed",
}

RESEARCH_GUIDELINES = """You are a model capability research expert. Discover what the model
ACTUALLY does well from official documentation, published benchmarks, user
reports and comparisons with similar models. Do not fill in predefined
categories from assumptions.

Respond with a single JSON object with these sections:
- useCaseAnalysis: idealUseCases, strengths, industries, limitations,
  uniqueCapabilities, categories (only from: flagship, efficient, fast,
  specialized, multimodal, code, reasoning, analysis)
- promptOptimization: bestPractices, effectiveTechniques, avoidTechniques,
  temperatureRecommendations {creative, analytical, factual, conversational},
  modelSpecificTips
- templateContext: preferredPromptFormats, communicationStyles,
  variableSyntaxPreferences, structuralPatterns, optimalPromptLengths,
  contextHandlingStyle, effectiveInstructionTypes, templateCompatibilityNotes
- performanceInsights: benchmarkResults, userFeedback,
  reliabilityAssessment {consistentAt, inconsistentAt, commonFailures}
- performanceAnalysis: qualityTier, speedTier, costTier (1-5),
  reliabilityScore (0-100), averageLatencyMs, throughputRequestsPerMin
- technicalDetails: actualVersion, releaseDate, trainingCutoff,
  specialCapabilities, languageSupport
- capabilities (optional): supportsImages, supportsFunctionCalling,
  supportsVision, supportsAudio, supportsCodeExecution, supportsStreaming,
  contextWindow, maxTokens
- pricing (optional, only when the model has no pricing yet):
  inputTokenCost, outputTokenCost per 1K tokens in USD
- sources: URLs of every source used
- confidence: "high", "medium" or "low"

Tier scales:
- qualityTier: 5=frontier reasoning, 3=handles intermediate tasks, 1=very limited
- speedTier: 5=<500ms typical response, 3=2-5s, 1=>10s
- costTier: 5=premium pricing, 3=moderate, 1=very low or open source

Mark confidence "low" only if critical information is missing.
Return ONLY valid JSON."""


def build_research_prompt(
    model: Dict[str, Any],
    detail_level: DetailLevel = DetailLevel.ENHANCED,
    include_validation: bool = False,
) -> str:
    """
    Build the research prompt for a single catalog entry.

    Args:
        model: Catalog document (camelCase schema)
        detail_level: How much detail to ask for
        include_validation: Ask for cited sources on every claim

    Returns:
        Formatted prompt string
    """
    name = model.get("name") or model.get("id", "Unknown")
    provider = model.get("providerId") or "unknown provider"
    capabilities = model.get("capabilities") or {}
    categories = model.get("categories") or []
    description = model.get("description") or "No current description"
    if len(description) > 500:
        description = description[:500] + "..."

    model_context = f"""Model: {name}
Provider: {provider}
Context window: {capabilities.get('contextWindow') or 'unknown'}
Max tokens: {capabilities.get('maxTokens') or 'unknown'}
Current categories: {', '.join(categories) if categories else 'unknown'}
Current description: {description}"""

    detail = DETAIL_DESCRIPTIONS[DetailLevel(detail_level)]
    task = f"Research the AI model \"{name}\" by {provider} and provide {detail} information."
    if include_validation:
        task += (
            "\nCross-check every claim against at least one source and list the"
            " source URLs in `sources`. Answers without sources are rejected."
        )

    return f"""{RESEARCH_GUIDELINES}

---

## Current Task: Research Model

{model_context}

### Task
{task}
"""


class ResearchClient:
    """Runs research calls against an LLM backend."""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client or get_llm_client()

    def research(
        self,
        model: Dict[str, Any],
        detail_level: DetailLevel = DetailLevel.ENHANCED,
        params: Optional[GenerationParams] = None,
        include_validation: bool = False,
        ai_model: str = DEFAULT_RESEARCH_MODEL,
    ) -> ResearchResult:
        """
        Research one catalog entry.

        Args:
            model: Catalog document
            detail_level: Target detail level
            params: Sampling parameters
            include_validation: Require cited sources
            ai_model: Research model name

        Returns:
            ResearchResult with parsed payload and cost

        Raises:
            ResearchCallFailure: LLM call failed
            PayloadParseFailure: Answer unusable
        """
        model_id = model.get("id")
        model_name = model.get("name") or model_id or "unknown"
        prompt = build_research_prompt(model, detail_level, include_validation)

        start = time.time()
        try:
            response = self.llm_client.complete(prompt, ai_model, params or GenerationParams())
        except Exception as e:
            raise ResearchCallFailure(
                f"Research call failed for {model_name}: {e}",
                model_id=model_id,
            ) from e
        duration_ms = int((time.time() - start) * 1000)

        cost = estimate_cost_usd(
            response.model or ai_model,
            response.prompt_tokens,
            response.completion_tokens,
        )

        payload = parse_research_response(
            response.text,
            model_name=model_name,
            require_sources=include_validation,
            cost_usd=cost,
            model_id=model_id,
        )

        logger.info(
            "Researched %s: confidence=%s score=%d cost=$%.4f (%dms)",
            model_name, payload.confidence, payload.confidence_score, cost, duration_ms,
        )

        return ResearchResult(
            payload=payload,
            cost_usd=cost,
            model=response.model or ai_model,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens,
            duration_ms=duration_ms,
        )


__all__ = [
    "DETAIL_DESCRIPTIONS",
    "build_research_prompt",
    "ResearchClient",
]
