"""
Enrichment Errors - Exception taxonomy for the enrichment workflow.

Per-candidate failures (caught, logged, counted as a failed model):
- ResearchCallFailure: network/auth/quota error talking to the research model
- PayloadParseFailure: research output was not a usable payload
- MergeFailure: loading or persisting the catalog entry failed

Run-level stops (caught at the run boundary, not failures):
- CostLimitReached: actual cost exceeded the configured ceiling
- Cancelled: a stop was requested for the execution

An empty candidate selection is a valid SelectionResult, not an exception.
"""

from __future__ import annotations

from typing import Optional


class EnrichmentError(Exception):
    """Base class for per-candidate enrichment failures."""

    code = "ENRICHMENT_ERROR"

    def __init__(self, message: str, model_id: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id


class ResearchCallFailure(EnrichmentError):
    """The research model call itself failed."""

    code = "RESEARCH_CALL_FAILED"


class PayloadParseFailure(EnrichmentError):
    """The research model answered, but not with a usable payload."""

    code = "PAYLOAD_PARSE_FAILED"

    def __init__(
        self,
        message: str,
        model_id: Optional[str] = None,
        cost_usd: float = 0.0,
    ):
        super().__init__(message, model_id)
        # The call was still billed
        self.cost_usd = cost_usd


class MergeFailure(EnrichmentError):
    """Reading the catalog entry or writing the enriched fields back failed."""

    code = "MERGE_FAILED"


class CostLimitReached(Exception):
    """Soft circuit breaker: the run's cost ceiling was exceeded."""

    def __init__(self, actual_cost: float, limit: float):
        super().__init__(f"Cost ${actual_cost:.4f} exceeded limit ${limit:.4f}")
        self.actual_cost = actual_cost
        self.limit = limit


class Cancelled(Exception):
    """A stop was observed at a cancellation checkpoint."""

    def __init__(self, status: str = "cancelled"):
        super().__init__(f"Execution stopped (status={status})")
        self.status = status


class ExecutionNotFound(KeyError):
    """No execution document with the given id."""


class ModelNotFound(KeyError):
    """No catalog entry with the given id."""


class InvalidConfig(ValueError):
    """Enrichment configuration failed validation."""


__all__ = [
    "EnrichmentError",
    "ResearchCallFailure",
    "PayloadParseFailure",
    "MergeFailure",
    "CostLimitReached",
    "Cancelled",
    "ExecutionNotFound",
    "ModelNotFound",
    "InvalidConfig",
]
