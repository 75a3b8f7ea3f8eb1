"""
Model Update Merger - Fold a research payload into a catalog entry.

build_model_update() is pure: it returns the top-level fields to write,
each one fully merged with the entry's current value. apply_model_update()
writes them through the store.

Rules:
- Pricing from a trusted feed (third-party / provider-api source, or an
  openrouter entry in dataSource.scrapedFrom) is never overwritten
- Untrusted pricing is replaced by AI research only when the entry opts in
  with dataSource.allowAiPricing
- Categories and prompt techniques are mapped onto controlled vocabularies
- Enrichment tags are refreshed (old ai-enriched / enriched-* / confidence-*
  tags removed)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from model_enrichment.config import MAX_SCRAPED_SOURCES
from model_enrichment.enrichment.models import ResearchPayload
from model_enrichment.enrichment.vocabulary import (
    filter_categories,
    map_avoid_techniques,
    map_effective_techniques,
)
from model_enrichment.errors import MergeFailure
from model_enrichment.store import CatalogStore
from model_enrichment.timestamps import utc_now

logger = logging.getLogger(__name__)

TRUSTED_PRICING_SOURCES = frozenset({"third-party", "provider-api"})
ENRICHMENT_TAG_PREFIXES = ("ai-enriched", "enriched-", "confidence-")

CAPABILITY_FLAGS = (
    "supportsImages",
    "supportsFunctionCalling",
    "supportsVision",
    "supportsAudio",
    "supportsCodeExecution",
    "supportsStreaming",
)
CAPABILITY_LIMITS = ("contextWindow", "maxTokens")
PERFORMANCE_FIELDS = (
    "qualityTier",
    "speedTier",
    "costTier",
    "reliabilityScore",
    "averageLatencyMs",
    "throughputRequestsPerMin",
)
TEMPLATE_CONTEXT_LISTS = (
    "preferredPromptFormats",
    "communicationStyles",
    "variableSyntaxPreferences",
    "structuralPatterns",
    "contextHandlingStyle",
    "effectiveInstructionTypes",
    "templateCompatibilityNotes",
)


def pricing_is_trusted(model: Dict[str, Any]) -> bool:
    """True when the entry's pricing came from an upstream pricing feed."""
    pricing = model.get("pricing") or {}
    if pricing.get("source") in TRUSTED_PRICING_SOURCES:
        return True
    scraped = (model.get("dataSource") or {}).get("scrapedFrom") or []
    return any("openrouter" in str(source).lower() for source in scraped)


def refresh_enrichment_tags(
    tags: Optional[List[str]],
    confidence: str,
    now: datetime,
) -> List[str]:
    kept = [
        tag for tag in tags or []
        if not str(tag).startswith(ENRICHMENT_TAG_PREFIXES)
    ]
    return kept + [
        "ai-enriched",
        f"enriched-{now.strftime('%Y-%m-%d')}",
        f"confidence-{confidence}",
    ]


def merge_sources(existing: Optional[List[str]], new: List[str]) -> List[str]:
    """Existing sources first, then new ones, deduped and capped."""
    merged: List[str] = []
    for source in list(existing or []) + list(new):
        if source not in merged:
            merged.append(source)
    return merged[:MAX_SCRAPED_SOURCES]


def _prompt_guidance(model: Dict[str, Any], payload: ResearchPayload) -> Dict[str, Any]:
    guidance = dict(model.get("promptGuidance") or {})
    techniques = dict(guidance.get("optimizationTechniques") or {})
    notes = dict(guidance.get("reliabilityNotes") or {})

    effective = map_effective_techniques(payload.effective_techniques)
    avoid = map_avoid_techniques(payload.avoid_techniques)
    techniques["effectiveTechniques"] = effective or techniques.get("effectiveTechniques", [])
    techniques["avoidTechniques"] = avoid or techniques.get("avoidTechniques", [])
    if payload.best_practices:
        techniques["bestPractices"] = payload.best_practices

    reliability = payload.reliability_assessment
    notes["consistentAt"] = reliability.get("consistentAt") or notes.get("consistentAt", [])
    notes["inconsistentAt"] = reliability.get("inconsistentAt") or notes.get("inconsistentAt", [])
    notes["commonFailureModes"] = (
        reliability.get("commonFailures") or notes.get("commonFailureModes", [])
    )
    temperatures = payload.temperature_recommendations
    if temperatures:
        notes["temperatureRecommendations"] = temperatures

    guidance["optimizationTechniques"] = techniques
    guidance["reliabilityNotes"] = notes
    return guidance


def _capabilities(model: Dict[str, Any], payload: ResearchPayload) -> Dict[str, Any]:
    capabilities = dict(model.get("capabilities") or {})
    details = payload.technical_details
    if details.get("languageSupport"):
        capabilities["languages"] = details["languageSupport"]
    if details.get("specialCapabilities"):
        capabilities["specialFeatures"] = details["specialCapabilities"]

    researched = payload.capabilities
    for flag in CAPABILITY_FLAGS:
        if researched.get(flag) is not None:
            capabilities[flag] = bool(researched[flag])
    for limit in CAPABILITY_LIMITS:
        if researched.get(limit):
            capabilities[limit] = researched[limit]
    for key in ("languages", "specialFeatures", "supportedFormats"):
        if researched.get(key):
            capabilities[key] = researched[key]
    return capabilities


def _performance(model: Dict[str, Any], payload: ResearchPayload) -> Optional[Dict[str, Any]]:
    analysis = payload.performance_analysis
    if not analysis:
        return None
    performance = dict(model.get("performance") or {})
    for key in PERFORMANCE_FIELDS:
        if analysis.get(key):
            performance[key] = analysis[key]
    return performance


def _template_context(payload: ResearchPayload) -> Optional[Dict[str, Any]]:
    context = payload.template_context
    if not context:
        return None
    value = {key: context.get(key) or [] for key in TEMPLATE_CONTEXT_LISTS}
    value["optimalPromptLengths"] = context.get("optimalPromptLengths") or {}
    return {"value": value}


def _pricing(
    model: Dict[str, Any],
    payload: ResearchPayload,
    now: datetime,
) -> Optional[Dict[str, Any]]:
    researched = payload.pricing
    if not researched:
        return None
    if pricing_is_trusted(model):
        logger.info("Preserving feed pricing for %s, AI pricing skipped", model.get("id"))
        return None
    if not (model.get("dataSource") or {}).get("allowAiPricing", False):
        logger.debug("AI pricing not allowed for %s", model.get("id"))
        return None

    pricing = dict(model.get("pricing") or {})
    for key in ("inputTokenCost", "outputTokenCost", "imageInputCost"):
        if researched.get(key):
            pricing[key] = researched[key]
    pricing.update({
        "currency": "USD",
        "source": "ai-research",
        "lastUpdated": now,
        "isVerified": bool(researched.get("priceVerified", False)),
    })
    return pricing


def build_model_update(
    model: Dict[str, Any],
    payload: ResearchPayload,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Compute the catalog fields to write for one research payload.

    Args:
        model: Current catalog document (camelCase schema)
        payload: Parsed research payload
        now: Update timestamp (defaults to current UTC time)

    Returns:
        Dict of top-level fields, each fully merged
    """
    now = now or utc_now()
    updates: Dict[str, Any] = {}

    for key, values in (
        ("idealUseCases", payload.ideal_use_cases),
        ("strengths", payload.strengths),
        ("industries", payload.industries),
    ):
        if values:
            updates[key] = values

    categories = filter_categories(payload.categories)
    if categories:
        updates["categories"] = categories

    updates["promptGuidance"] = _prompt_guidance(model, payload)
    updates["capabilities"] = _capabilities(model, payload)

    version = payload.version
    if version and version.lower() != "unknown":
        specifications = dict(model.get("specifications") or {})
        specifications["version"] = version
        updates["specifications"] = specifications

    performance = _performance(model, payload)
    if performance is not None:
        updates["performance"] = performance

    template_context = _template_context(payload)
    if template_context is not None:
        updates["templateContext"] = template_context

    pricing = _pricing(model, payload, now)
    if pricing is not None:
        updates["pricing"] = pricing

    updates["tags"] = refresh_enrichment_tags(model.get("tags"), payload.confidence, now)

    data_source = dict(model.get("dataSource") or {})
    data_source.update({
        "dataQuality": "verified",
        "lastSuccessfulUpdate": now,
        "verificationMethod": "manual",
        "scrapedFrom": merge_sources(data_source.get("scrapedFrom"), payload.sources),
    })
    updates["dataSource"] = data_source
    updates["updatedAt"] = now

    return updates


def apply_model_update(
    store: CatalogStore,
    model_id: str,
    updates: Dict[str, Any],
) -> None:
    """
    Write computed updates to the catalog.

    Raises:
        MergeFailure: Any store error
    """
    try:
        store.update_model(model_id, updates)
    except Exception as e:
        raise MergeFailure(f"Failed to update model {model_id}: {e}", model_id=model_id) from e
    logger.info("Updated model %s: %s", model_id, ", ".join(sorted(updates)))


def merge_research(
    store: CatalogStore,
    model: Dict[str, Any],
    payload: ResearchPayload,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build and apply the update for one entry; returns the written fields."""
    try:
        updates = build_model_update(model, payload, now)
    except (TypeError, ValueError, AttributeError) as e:
        raise MergeFailure(
            f"Could not merge research into {model.get('id')}: {e}",
            model_id=model.get("id"),
        ) from e
    apply_model_update(store, model["id"], updates)
    return updates


__all__ = [
    "TRUSTED_PRICING_SOURCES",
    "pricing_is_trusted",
    "refresh_enrichment_tags",
    "merge_sources",
    "build_model_update",
    "apply_model_update",
    "merge_research",
]
