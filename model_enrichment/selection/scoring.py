"""
Priority scoring for enrichment candidates.

Scores are a weighted sum over a rule table. Each rule is a named predicate
over a Candidate; the weights mirror how the admin console ranked entries:

    poor_data_quality       +1000  quality unknown or outdated
    never_enriched           +400  no "ai-enriched" tag
    stale_over_90d           +300  enriched, last update > 90 days ago
    stale_over_30d           +200  enriched, last update 31-90 days ago
    stale_over_7d             +50  enriched, last update 8-30 days ago
    quality_unknown          +150
    quality_estimated        +100
    quality_outdated         +200
    high_coverage_provider    +25  provider with broad public documentation
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Sequence

if TYPE_CHECKING:
    from model_enrichment.selection.selector import Candidate

HIGH_COVERAGE_PROVIDERS = frozenset({
    "openai",
    "anthropic",
    "google",
    "meta",
    "microsoft",
})


@dataclass(frozen=True)
class PriorityRule:
    """A named scoring rule: weight is added when the predicate holds."""
    name: str
    weight: int
    predicate: Callable[["Candidate"], bool]

    def applies(self, candidate: "Candidate") -> bool:
        return bool(self.predicate(candidate))


def _stale_between(lower: float, upper: float) -> Callable[["Candidate"], bool]:
    """Enriched entries whose last update is in (lower, upper] days ago."""
    def predicate(candidate: "Candidate") -> bool:
        if not candidate.is_enriched or candidate.last_updated is None:
            return False
        return lower < candidate.days_since_update <= upper
    return predicate


DEFAULT_PRIORITY_RULES: List[PriorityRule] = [
    PriorityRule(
        "poor_data_quality", 1000,
        lambda c: c.data_quality in ("unknown", "outdated"),
    ),
    PriorityRule("never_enriched", 400, lambda c: not c.is_enriched),
    PriorityRule("stale_over_90d", 300, _stale_between(90, math.inf)),
    PriorityRule("stale_over_30d", 200, _stale_between(30, 90)),
    PriorityRule("stale_over_7d", 50, _stale_between(7, 30)),
    PriorityRule("quality_unknown", 150, lambda c: c.data_quality == "unknown"),
    PriorityRule("quality_estimated", 100, lambda c: c.data_quality == "estimated"),
    PriorityRule("quality_outdated", 200, lambda c: c.data_quality == "outdated"),
    PriorityRule(
        "high_coverage_provider", 25,
        lambda c: (c.provider_id or "").lower() in HIGH_COVERAGE_PROVIDERS,
    ),
]


def score_candidate(
    candidate: "Candidate",
    rules: Sequence[PriorityRule] = DEFAULT_PRIORITY_RULES,
) -> int:
    """Sum of weights of every rule that fires."""
    return sum(rule.weight for rule in rules if rule.applies(candidate))


def score_breakdown(
    candidate: "Candidate",
    rules: Sequence[PriorityRule] = DEFAULT_PRIORITY_RULES,
) -> Dict[str, int]:
    return {rule.name: rule.weight for rule in rules if rule.applies(candidate)}


__all__ = [
    "HIGH_COVERAGE_PROVIDERS",
    "PriorityRule",
    "DEFAULT_PRIORITY_RULES",
    "score_candidate",
    "score_breakdown",
]
