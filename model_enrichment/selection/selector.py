"""
Candidate Selector - Rank catalog entries by how much they need enrichment.

Selection pipeline:
1. Load a pool of catalog entries (provider-filtered at the query)
2. Drop entries outside the data-quality allow-list (when enabled)
3. Score every remaining entry with the priority rule table
4. Drop entries updated more recently than the recency threshold (when enabled)
5. Sort by score (desc), then entry id, and keep the top MAX_CANDIDATES

Candidates are derived on every call and never persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from model_enrichment.config import CANDIDATE_POOL_LIMIT, MAX_CANDIDATES
from model_enrichment.jobs.models import DataQuality, EnrichmentConfig
from model_enrichment.selection.scoring import (
    DEFAULT_PRIORITY_RULES,
    PriorityRule,
    score_candidate,
)
from model_enrichment.store import CatalogStore
from model_enrichment.timestamps import days_between, to_datetime, utc_now

logger = logging.getLogger(__name__)

ENRICHED_TAG_MARKER = "ai-enriched"


@dataclass
class Candidate:
    """A catalog entry considered for enrichment."""
    id: str
    name: str
    provider_id: Optional[str]
    data_quality: str
    last_updated: Optional[datetime]
    days_since_update: float
    is_enriched: bool
    score: int = 0
    model: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_model_doc(
        cls,
        doc: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> "Candidate":
        """Derive a candidate from a catalog document (camelCase schema)."""
        now = now or utc_now()
        data_source = doc.get("dataSource") or {}
        last_updated = to_datetime(data_source.get("lastSuccessfulUpdate"))
        tags = doc.get("tags") or []

        quality = data_source.get("dataQuality") or DataQuality.UNKNOWN.value
        if quality not in {q.value for q in DataQuality}:
            quality = DataQuality.UNKNOWN.value

        return cls(
            id=doc["id"],
            name=doc.get("name") or doc["id"],
            provider_id=doc.get("providerId"),
            data_quality=quality,
            last_updated=last_updated,
            days_since_update=days_between(last_updated, now),
            is_enriched=any(ENRICHED_TAG_MARKER in str(tag) for tag in tags),
            model=doc,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider_id": self.provider_id,
            "data_quality": self.data_quality,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "days_since_update": (
                None if self.days_since_update == float("inf") else int(self.days_since_update)
            ),
            "is_enriched": self.is_enriched,
            "score": self.score,
        }


@dataclass
class SelectionResult:
    """Ranked candidates plus counts explaining how the pool was narrowed."""
    candidates: List[Candidate] = field(default_factory=list)
    pool: int = 0
    after_quality_filter: int = 0
    eligible: int = 0

    @property
    def selected(self) -> int:
        return len(self.candidates)

    @property
    def is_empty(self) -> bool:
        return not self.candidates

    @property
    def model_ids(self) -> List[str]:
        return [c.id for c in self.candidates]

    def counts(self) -> Dict[str, int]:
        return {
            "pool": self.pool,
            "after_quality_filter": self.after_quality_filter,
            "eligible": self.eligible,
            "selected": self.selected,
        }


def select_candidates(
    models: Iterable[Dict[str, Any]],
    config: EnrichmentConfig,
    now: Optional[datetime] = None,
    rules: Sequence[PriorityRule] = DEFAULT_PRIORITY_RULES,
    limit: int = MAX_CANDIDATES,
) -> SelectionResult:
    """
    Rank a pool of catalog documents for enrichment.

    Pure over its inputs: the same pool, config and `now` always produce
    the same ordered result.
    """
    now = now or utc_now()
    pool = [Candidate.from_model_doc(doc, now) for doc in models]
    result = SelectionResult(pool=len(pool))

    if config.filter_by_data_quality and config.allowed_data_qualities:
        allowed = {q.value for q in config.allowed_data_qualities}
        pool = [c for c in pool if c.data_quality in allowed]
    result.after_quality_filter = len(pool)

    for candidate in pool:
        candidate.score = score_candidate(candidate, rules)

    threshold = config.recency_threshold_days
    if threshold > 0:
        pool = [c for c in pool if c.days_since_update >= threshold]
    result.eligible = len(pool)

    pool.sort(key=lambda c: (-c.score, c.id))
    result.candidates = pool[:limit]
    return result


class CandidateSelector:
    """Loads the candidate pool from the store and ranks it."""

    def __init__(
        self,
        store: CatalogStore,
        rules: Sequence[PriorityRule] = DEFAULT_PRIORITY_RULES,
        pool_limit: int = CANDIDATE_POOL_LIMIT,
        max_candidates: int = MAX_CANDIDATES,
    ):
        self.store = store
        self.rules = rules
        self.pool_limit = pool_limit
        self.max_candidates = max_candidates

    def select(
        self,
        config: EnrichmentConfig,
        now: Optional[datetime] = None,
    ) -> SelectionResult:
        models = self.store.list_models(
            provider_id=config.provider_id,
            limit=self.pool_limit,
        )
        result = select_candidates(
            models, config, now=now, rules=self.rules, limit=self.max_candidates,
        )
        logger.info(
            "Candidate selection: pool=%d after_quality=%d eligible=%d selected=%d",
            result.pool, result.after_quality_filter, result.eligible, result.selected,
        )
        return result

    def load(self, model_ids: Sequence[str], now: Optional[datetime] = None) -> List[Candidate]:
        """Resolve explicit ids in the given order, skipping unknown ones."""
        now = now or utc_now()
        candidates = []
        for model_id in model_ids:
            doc = self.store.get_model(model_id)
            if doc is None:
                logger.warning("Model not found, skipping: %s", model_id)
                continue
            candidate = Candidate.from_model_doc(doc, now)
            candidate.score = score_candidate(candidate, self.rules)
            candidates.append(candidate)
        return candidates


__all__ = [
    "ENRICHED_TAG_MARKER",
    "Candidate",
    "SelectionResult",
    "select_candidates",
    "CandidateSelector",
]
