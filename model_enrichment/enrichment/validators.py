"""
Research Validators - Parse and validate research model output.

Handles common LLM quirks:
- JSON wrapped in markdown code blocks
- Prose before or after the JSON object

A payload is usable when it is a JSON object with both `useCaseAnalysis`
and `promptOptimization` sections. With validation requested, it must
also cite at least one source.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from model_enrichment.enrichment.models import ResearchPayload
from model_enrichment.errors import PayloadParseFailure

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("useCaseAnalysis", "promptOptimization")


@dataclass
class ValidationResult:
    """Result of validating a research payload."""
    valid: bool = True
    value: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, error: str) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(warning)


def strip_code_fences(raw_response: str) -> str:
    response = raw_response.strip()
    if response.startswith("```"):
        lines = response.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        response = "\n".join(lines).strip()
    return response


def extract_json_object(raw_response: str) -> Optional[str]:
    """Return the outermost {...} span of the response, if any."""
    response = strip_code_fences(raw_response)
    start = response.find("{")
    end = response.rfind("}")
    if start == -1 or end <= start:
        return None
    return response[start:end + 1]


def validate_research_payload(
    data: Any,
    require_sources: bool = False,
) -> ValidationResult:
    """
    Validate a decoded research payload.

    Args:
        data: Decoded JSON value
        require_sources: Reject payloads that cite no sources

    Returns:
        ValidationResult with the payload dict as value
    """
    result = ValidationResult(value=data if isinstance(data, dict) else None)

    if not isinstance(data, dict):
        result.add_error(f"Expected JSON object, got {type(data).__name__}")
        return result

    for section in REQUIRED_SECTIONS:
        if not isinstance(data.get(section), dict):
            result.add_error(f"Missing required section: {section}")

    sources = [s for s in data.get("sources") or [] if isinstance(s, str)]
    if require_sources and not sources:
        result.add_error("Validation requested but no sources cited")
    elif not sources:
        result.add_warning("No sources cited")

    confidence = data.get("confidence")
    if confidence not in ("high", "medium", "low"):
        result.add_warning(f"Unexpected confidence label: {confidence!r}")

    return result


def parse_research_response(
    raw_response: str,
    model_name: str = "",
    require_sources: bool = False,
    cost_usd: float = 0.0,
    model_id: Optional[str] = None,
) -> ResearchPayload:
    """
    Parse raw research output into a ResearchPayload.

    Raises:
        PayloadParseFailure: No JSON object, invalid JSON, or failed validation.
            Carries cost_usd so the billed call is still accounted for.
    """
    json_text = extract_json_object(raw_response or "")
    if json_text is None:
        raise PayloadParseFailure(
            f"No JSON found in research response for {model_name}",
            model_id=model_id,
            cost_usd=cost_usd,
        )

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise PayloadParseFailure(
            f"Invalid JSON in research response for {model_name}: {e}",
            model_id=model_id,
            cost_usd=cost_usd,
        ) from e

    validation = validate_research_payload(data, require_sources=require_sources)
    for warning in validation.warnings:
        logger.debug("Research payload warning for %s: %s", model_name, warning)
    if not validation.valid:
        raise PayloadParseFailure(
            f"Invalid research response for {model_name}: {'; '.join(validation.errors)}",
            model_id=model_id,
            cost_usd=cost_usd,
        )

    return ResearchPayload.from_dict(data)


__all__ = [
    "ValidationResult",
    "strip_code_fences",
    "extract_json_object",
    "validate_research_payload",
    "parse_research_response",
]
