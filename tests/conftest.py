"""Shared fixtures: in-memory store, catalog documents and a scripted research client."""

from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import pytest

from model_enrichment.enrichment.llm_client import default_research_payload
from model_enrichment.enrichment.models import ResearchPayload, ResearchResult
from model_enrichment.store import InMemoryStore
from model_enrichment.timestamps import utc_now


def days_ago(days: float):
    return utc_now() - timedelta(days=days)


def make_model(
    model_id: str,
    name: Optional[str] = None,
    provider: str = "acme",
    quality: Optional[str] = "estimated",
    updated_days_ago: Optional[float] = None,
    tags: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Catalog document in the console's camelCase schema."""
    data_source: Dict[str, Any] = {"scrapedFrom": []}
    if quality is not None:
        data_source["dataQuality"] = quality
    if updated_days_ago is not None:
        data_source["lastSuccessfulUpdate"] = days_ago(updated_days_ago)
    doc = {
        "id": model_id,
        "name": name or model_id.replace("-", " ").title(),
        "providerId": provider,
        "tags": tags or [],
        "dataSource": data_source,
    }
    doc.update(extra)
    return doc


def make_result(cost: float = 0.01, **overrides: Any) -> ResearchResult:
    data = default_research_payload()
    data.update(overrides)
    return ResearchResult(payload=ResearchPayload.from_dict(data), cost_usd=cost, model="mock-model")


class ScriptedResearchClient:
    """
    Research client double.

    `script` maps model id -> ResearchResult, an exception to raise, or a
    callable taking the model document. Unscripted ids get `default`.
    """

    def __init__(
        self,
        script: Optional[Dict[str, Any]] = None,
        default: Optional[ResearchResult] = None,
        before_call: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.script = script or {}
        self.default = default or make_result()
        self.before_call = before_call
        self.calls: List[str] = []
        self.kwargs: List[Dict[str, Any]] = []

    def research(self, model: Dict[str, Any], **kwargs: Any) -> ResearchResult:
        self.calls.append(model["id"])
        self.kwargs.append(kwargs)
        if self.before_call is not None:
            self.before_call(model)
        outcome = self.script.get(model["id"], self.default)
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(model)
        return outcome


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def research_client():
    return ScriptedResearchClient()
