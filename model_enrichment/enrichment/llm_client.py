"""
LLM Client - Abstraction for Vertex AI / mock research backends.

The research call is a single prompt -> JSON completion. Sampling parameters
come from the execution's GenerationParams; token usage is reported back so
the processor can charge the call against the execution's cost ceiling.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from model_enrichment.config import PROJECT_ID, USE_MOCK_LLM, VERTEX_LOCATION
from model_enrichment.jobs.models import GenerationParams

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Completion text plus the usage needed for cost accounting."""
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class LLMClient(ABC):
    """
    Abstract LLM client interface.

    Implementations:
    - VertexLLMClient: Production Vertex AI
    - MockLLMClient: Tests and dry-run stubs
    """

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model_name: str,
        params: Optional[GenerationParams] = None,
    ) -> LLMResponse:
        """
        Generate completion for prompt.

        Args:
            prompt: Input prompt
            model_name: Research model to call
            params: Sampling parameters (defaults when omitted)

        Returns:
            LLMResponse with text and token usage
        """
        pass


class VertexLLMClient(LLMClient):
    """Production LLM client using Vertex AI."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: str = VERTEX_LOCATION,
    ):
        """
        Initialize Vertex AI client.

        Args:
            project_id: GCP project ID (from env if not provided)
            location: Vertex AI location
        """
        self.project_id = project_id or PROJECT_ID
        self.location = location
        self._initialized = False

    def _ensure_initialized(self) -> None:
        """Lazy initialization of Vertex AI."""
        if self._initialized:
            return

        try:
            import vertexai
            vertexai.init(project=self.project_id, location=self.location)
            self._initialized = True
            logger.info("Vertex AI initialized: project=%s, location=%s",
                       self.project_id, self.location)
        except Exception as e:
            logger.error("Failed to initialize Vertex AI: %s", e)
            raise

    def complete(
        self,
        prompt: str,
        model_name: str,
        params: Optional[GenerationParams] = None,
    ) -> LLMResponse:
        """Generate completion using Vertex AI."""
        self._ensure_initialized()

        from vertexai.generative_models import GenerativeModel, GenerationConfig

        params = params or GenerationParams()
        logger.debug("Using model: %s (temperature=%s)", model_name, params.temperature)

        model = GenerativeModel(model_name)
        config = GenerationConfig(
            temperature=params.temperature,
            max_output_tokens=params.max_tokens,
            top_p=params.top_p,
            top_k=params.top_k,
            response_mime_type="application/json",
        )

        try:
            response = model.generate_content(prompt, generation_config=config)
        except Exception as e:
            logger.error("LLM completion failed: %s", e)
            raise

        # Thinking models may return several text parts; the last is the answer
        text = ""
        if getattr(response, "candidates", None):
            candidate = response.candidates[0]
            parts = [
                part.text for part in getattr(candidate.content, "parts", [])
                if getattr(part, "text", None)
            ]
            if parts:
                text = parts[-1].strip()
        if not text:
            text = response.text.strip()

        usage = getattr(response, "usage_metadata", None)
        prompt_tokens = getattr(usage, "prompt_token_count", 0) or 0
        # Output token count excludes thinking tokens, which are billed as output
        completion_tokens = (
            (getattr(usage, "candidates_token_count", 0) or 0)
            + (getattr(usage, "thoughts_token_count", 0) or 0)
        )

        logger.debug("LLM response length: %d chars, tokens in=%d out=%d",
                    len(text), prompt_tokens, completion_tokens)

        return LLMResponse(
            text=text,
            model=model_name,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )


def default_research_payload() -> Dict[str, Any]:
    """Canned research payload returned by MockLLMClient."""
    return {
        "useCaseAnalysis": {
            "idealUseCases": ["technical documentation", "code review"],
            "strengths": ["follows multi-step instructions reliably"],
            "industries": ["software"],
            "limitations": ["no video input"],
            "categories": ["reasoning", "code"],
        },
        "promptOptimization": {
            "bestPractices": ["state the output format explicitly"],
            "effectiveTechniques": ["chain of thought", "few-shot examples"],
            "avoidTechniques": ["ambiguous instructions"],
            "temperatureRecommendations": {
                "creative": 0.7,
                "analytical": 0.3,
                "factual": 0.1,
                "conversational": 0.5,
            },
        },
        "performanceInsights": {
            "benchmarkResults": [],
            "reliabilityAssessment": {
                "consistentAt": ["structured extraction"],
                "inconsistentAt": [],
                "commonFailures": [],
            },
        },
        "technicalDetails": {
            "actualVersion": "unknown",
            "specialCapabilities": ["function calling"],
            "languageSupport": ["en"],
        },
        "sources": ["https://example.com/mock-research"],
        "confidence": "medium",
    }


class MockLLMClient(LLMClient):
    """
    Mock LLM client for tests and dry-run stubs.

    Returns a fixed research payload (or a given raw response) and records
    the prompts it received.
    """

    def __init__(
        self,
        response: Optional[Any] = None,
        prompt_tokens: int = 1000,
        completion_tokens: int = 500,
    ):
        """
        Initialize mock client.

        Args:
            response: Raw text, or a dict serialized as JSON (default payload if None)
            prompt_tokens: Reported input token count
            completion_tokens: Reported output token count
        """
        if response is None:
            response = default_research_payload()
        self.response = response if isinstance(response, str) else json.dumps(response)
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.call_count = 0
        self.last_prompt: Optional[str] = None
        self.last_params: Optional[GenerationParams] = None

    def complete(
        self,
        prompt: str,
        model_name: str,
        params: Optional[GenerationParams] = None,
    ) -> LLMResponse:
        """Return mock response."""
        self.call_count += 1
        self.last_prompt = prompt
        self.last_params = params
        return LLMResponse(
            text=self.response,
            model=model_name,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
        )


def get_llm_client(use_mock: bool = False) -> LLMClient:
    """
    Factory function to get appropriate LLM client.

    Args:
        use_mock: If True, return MockLLMClient

    Returns:
        LLMClient instance
    """
    if use_mock or USE_MOCK_LLM:
        logger.info("Using MockLLMClient")
        return MockLLMClient()

    logger.info("Using VertexLLMClient")
    return VertexLLMClient()


__all__ = [
    "LLMResponse",
    "LLMClient",
    "VertexLLMClient",
    "MockLLMClient",
    "default_research_payload",
    "get_llm_client",
]
