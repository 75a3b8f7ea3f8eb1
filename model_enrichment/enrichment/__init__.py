"""
Enrichment Module - LLM research and catalog updates for AI model entries.

This module provides:
- LLMClient abstraction for Vertex AI / mock backends
- ResearchClient for one research call per catalog entry
- Research payload models and response validators
- Model update merger and controlled vocabularies

Model selection:
- gemini-2.5-pro: Default research model (configurable per execution)
"""

from model_enrichment.enrichment.models import (
    ResearchPayload,
    ResearchResult,
    confidence_score,
)
from model_enrichment.enrichment.llm_client import (
    LLMResponse,
    LLMClient,
    VertexLLMClient,
    MockLLMClient,
    get_llm_client,
)
from model_enrichment.enrichment.research import (
    build_research_prompt,
    ResearchClient,
)
from model_enrichment.enrichment.validators import (
    parse_research_response,
    validate_research_payload,
    ValidationResult,
)
from model_enrichment.enrichment.merger import (
    build_model_update,
    apply_model_update,
    merge_research,
    pricing_is_trusted,
)

__all__ = [
    # Models
    "ResearchPayload",
    "ResearchResult",
    "confidence_score",
    # LLM Client
    "LLMResponse",
    "LLMClient",
    "VertexLLMClient",
    "MockLLMClient",
    "get_llm_client",
    # Research
    "build_research_prompt",
    "ResearchClient",
    # Validators
    "parse_research_response",
    "validate_research_payload",
    "ValidationResult",
    # Merger
    "build_model_update",
    "apply_model_update",
    "merge_research",
    "pricing_is_trusted",
]
