"""
Research Models - Data models for research payloads and results.

A ResearchPayload is the structured answer of the research model for one
catalog entry. Sections mirror the JSON the research prompt asks for
(camelCase keys); missing optional sections are empty dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CONFIDENCE_LEVELS = ("high", "medium", "low")


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


@dataclass
class ResearchPayload:
    """Structured research findings for a single catalog entry."""
    use_case_analysis: Dict[str, Any]
    prompt_optimization: Dict[str, Any]
    template_context: Dict[str, Any] = field(default_factory=dict)
    performance_insights: Dict[str, Any] = field(default_factory=dict)
    performance_analysis: Dict[str, Any] = field(default_factory=dict)
    technical_details: Dict[str, Any] = field(default_factory=dict)
    capabilities: Dict[str, Any] = field(default_factory=dict)
    pricing: Dict[str, Any] = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)
    confidence: str = "medium"

    # Use case analysis

    @property
    def ideal_use_cases(self) -> List[str]:
        return _as_list(self.use_case_analysis.get("idealUseCases"))

    @property
    def strengths(self) -> List[str]:
        return _as_list(self.use_case_analysis.get("strengths"))

    @property
    def industries(self) -> List[str]:
        return _as_list(self.use_case_analysis.get("industries"))

    @property
    def limitations(self) -> List[str]:
        return _as_list(self.use_case_analysis.get("limitations"))

    @property
    def categories(self) -> List[str]:
        return _as_list(self.use_case_analysis.get("categories"))

    # Prompt optimization

    @property
    def best_practices(self) -> List[str]:
        return _as_list(self.prompt_optimization.get("bestPractices"))

    @property
    def effective_techniques(self) -> List[str]:
        return _as_list(self.prompt_optimization.get("effectiveTechniques"))

    @property
    def avoid_techniques(self) -> List[str]:
        return _as_list(self.prompt_optimization.get("avoidTechniques"))

    @property
    def temperature_recommendations(self) -> Optional[Dict[str, Any]]:
        value = self.prompt_optimization.get("temperatureRecommendations")
        return value if isinstance(value, dict) else None

    # Performance insights

    @property
    def reliability_assessment(self) -> Dict[str, Any]:
        return _as_dict(self.performance_insights.get("reliabilityAssessment"))

    @property
    def benchmark_results(self) -> List[Any]:
        return _as_list(self.performance_insights.get("benchmarkResults"))

    # Technical details

    @property
    def version(self) -> Optional[str]:
        version = self.technical_details.get("actualVersion")
        return str(version) if version else None

    @property
    def confidence_score(self) -> int:
        return confidence_score(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResearchPayload":
        """Create from the research model's JSON (camelCase keys)."""
        confidence = str(data.get("confidence") or "medium").lower()
        if confidence not in CONFIDENCE_LEVELS:
            confidence = "medium"
        return cls(
            use_case_analysis=_as_dict(data.get("useCaseAnalysis")),
            prompt_optimization=_as_dict(data.get("promptOptimization")),
            template_context=_as_dict(data.get("templateContext")),
            performance_insights=_as_dict(data.get("performanceInsights")),
            performance_analysis=_as_dict(data.get("performanceAnalysis")),
            technical_details=_as_dict(data.get("technicalDetails")),
            capabilities=_as_dict(data.get("capabilities")),
            pricing=_as_dict(data.get("pricing")),
            sources=[s for s in _as_list(data.get("sources")) if isinstance(s, str)],
            confidence=confidence,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "useCaseAnalysis": self.use_case_analysis,
            "promptOptimization": self.prompt_optimization,
            "templateContext": self.template_context,
            "performanceInsights": self.performance_insights,
            "performanceAnalysis": self.performance_analysis,
            "technicalDetails": self.technical_details,
            "capabilities": self.capabilities,
            "pricing": self.pricing,
            "sources": list(self.sources),
            "confidence": self.confidence,
            "confidenceScore": self.confidence_score,
        }


def confidence_score(payload: ResearchPayload) -> int:
    """
    Derive a 0-100 confidence score from what the payload actually contains.

    +30 sources, +20 use cases, +20 best practices, +15 benchmark results,
    +15 known version; -10 for medium and -20 for low self-reported confidence.
    """
    score = 0
    if payload.sources:
        score += 30
    if payload.ideal_use_cases:
        score += 20
    if payload.best_practices:
        score += 20
    if payload.benchmark_results:
        score += 15
    if payload.version and payload.version.lower() != "unknown":
        score += 15

    if payload.confidence == "medium":
        score -= 10
    elif payload.confidence == "low":
        score -= 20

    return max(0, min(100, score))


@dataclass
class ResearchResult:
    """Outcome of a successful research call."""
    payload: ResearchPayload
    cost_usd: float = 0.0
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload": self.payload.to_dict(),
            "cost_usd": self.cost_usd,
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "duration_ms": self.duration_ms,
        }


__all__ = [
    "CONFIDENCE_LEVELS",
    "ResearchPayload",
    "ResearchResult",
    "confidence_score",
]
