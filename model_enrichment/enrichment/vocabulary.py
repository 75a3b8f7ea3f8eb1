"""
Controlled vocabularies for catalog fields written by enrichment.

Free-text labels from research are mapped onto fixed vocabularies by
keyword matching. Each label maps to the first rule whose keyword it
contains; labels matching no rule are dropped.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

VALID_CATEGORIES = (
    "flagship",
    "efficient",
    "fast",
    "specialized",
    "multimodal",
    "code",
    "reasoning",
    "coding",
    "analysis",
)

# (keywords, technique) in match order
EFFECTIVE_TECHNIQUE_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("chain", "reasoning"), "chain-of-thought"),
    (("few-shot", "example"), "few-shot"),
    (("role", "persona"), "role-playing"),
    (("step",), "step-by-step"),
    (("template",), "template-filling"),
    (("constraint",), "constraint-specification"),
    (("demonstration",), "example-demonstration"),
    (("format",), "format-specification"),
)

AVOID_TECHNIQUE_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("complex", "nesting"), "complex-nesting"),
    (("ambiguous", "unclear"), "ambiguous-instructions"),
    (("long", "verbose"), "very-long-context"),
    (("contradictory", "conflicting"), "contradictory-instructions"),
    (("excessive", "too-many"), "excessive-examples"),
    (("formatting",), "unclear-formatting"),
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_label(label: str) -> str:
    """Lowercase and replace every non-alphanumeric character with '-'."""
    return _NON_ALNUM.sub("-", str(label).lower())


def _map_labels(
    labels: Iterable[str],
    rules: Sequence[Tuple[Tuple[str, ...], str]],
) -> List[str]:
    mapped: List[str] = []
    for label in labels:
        normalized = normalize_label(label)
        for keywords, value in rules:
            if any(keyword in normalized for keyword in keywords):
                if value not in mapped:
                    mapped.append(value)
                break
    return mapped


def map_effective_techniques(labels: Iterable[str]) -> List[str]:
    return _map_labels(labels, EFFECTIVE_TECHNIQUE_RULES)


def map_avoid_techniques(labels: Iterable[str]) -> List[str]:
    return _map_labels(labels, AVOID_TECHNIQUE_RULES)


def filter_categories(labels: Iterable[str]) -> List[str]:
    """Keep only known categories (exact match after lowercasing), deduped."""
    categories: List[str] = []
    for label in labels:
        value = str(label).strip().lower()
        if value in VALID_CATEGORIES and value not in categories:
            categories.append(value)
    return categories


__all__ = [
    "VALID_CATEGORIES",
    "EFFECTIVE_TECHNIQUE_RULES",
    "AVOID_TECHNIQUE_RULES",
    "normalize_label",
    "map_effective_techniques",
    "map_avoid_techniques",
    "filter_categories",
]
