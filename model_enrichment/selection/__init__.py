"""
Selection Package - Decide which catalog entries to enrich next.

This package provides:
- scoring: Priority rule table and candidate scoring
- selector: Candidate derivation, filtering and ranking
- review: Annotated candidate listing for operators
"""

from model_enrichment.selection.scoring import (
    HIGH_COVERAGE_PROVIDERS,
    PriorityRule,
    DEFAULT_PRIORITY_RULES,
    score_candidate,
    score_breakdown,
)

from model_enrichment.selection.selector import (
    Candidate,
    SelectionResult,
    select_candidates,
    CandidateSelector,
)

from model_enrichment.selection.review import (
    classify_for_review,
    list_candidates_for_review,
)


__all__ = [
    # Scoring
    "HIGH_COVERAGE_PROVIDERS",
    "PriorityRule",
    "DEFAULT_PRIORITY_RULES",
    "score_candidate",
    "score_breakdown",
    # Selector
    "Candidate",
    "SelectionResult",
    "select_candidates",
    "CandidateSelector",
    # Review
    "classify_for_review",
    "list_candidates_for_review",
]
