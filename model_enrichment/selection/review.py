"""
Candidate review listing for operators.

Lists catalog entries with a coarse priority label, an enrichment status and,
for entries inside a running execution, the execution's progress. Used to
decide what to enrich before starting a run.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from model_enrichment.config import REVIEW_LIST_LIMIT
from model_enrichment.jobs.models import Execution, ExecutionStatus
from model_enrichment.selection.scoring import score_breakdown, score_candidate
from model_enrichment.selection.selector import Candidate
from model_enrichment.store import CatalogStore
from model_enrichment.timestamps import isoformat, to_datetime, utc_now

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def classify_for_review(candidate: Candidate) -> Tuple[str, str]:
    """
    Return (priority, enrichment_status) for a candidate.

    Uses the stored dataQuality as-is: an entry without one falls through
    to the enrichment-age rules instead of being treated as unknown.
    """
    quality = (candidate.model.get("dataSource") or {}).get("dataQuality")
    days = candidate.days_since_update

    if quality == "unknown":
        return "high", "never"
    if quality == "outdated":
        return "high", "stale"
    if quality == "estimated" and not candidate.is_enriched:
        return "medium", "never"
    if quality == "verified" and candidate.is_enriched:
        return "low", "recent" if days < 30 else "old"
    if candidate.is_enriched and candidate.last_updated is not None:
        if days < 3:
            return "low", "recent"
        if days < 30:
            return "medium", "old"
        return "high", "stale"
    return "medium", "never"


def _processing_info(executions: List[Execution]) -> Dict[str, Dict[str, Any]]:
    info: Dict[str, Dict[str, Any]] = {}
    for execution in executions:
        if execution.status == ExecutionStatus.RUNNING:
            status_text = (
                f"Processing ({execution.processed_models}/{execution.total_models})"
            )
        else:
            status_text = execution.status.value
        for model_id in execution.model_ids:
            info[model_id] = {
                "execution_id": execution.id,
                "progress": execution.progress_percent,
                "status": status_text,
            }
    return info


def list_candidates_for_review(
    store: CatalogStore,
    provider_id: Optional[str] = None,
    now: Optional[datetime] = None,
    limit: int = REVIEW_LIST_LIMIT,
) -> List[Dict[str, Any]]:
    """
    List catalog entries annotated for review, high priority first then by name.

    Args:
        store: Catalog store
        provider_id: Restrict to one provider
        now: Reference time (defaults to current UTC time)
        limit: Maximum entries loaded from the catalog

    Returns:
        List of review rows (plain dicts)
    """
    now = now or utc_now()
    models = store.list_models(provider_id=provider_id, limit=limit)
    running = [
        Execution.from_dict(doc)
        for doc in store.query_executions(statuses=[ExecutionStatus.RUNNING.value])
    ]
    processing = _processing_info(running)

    rows = []
    for doc in models:
        candidate = Candidate.from_model_doc(doc, now)
        candidate.score = score_candidate(candidate)
        priority, enrichment_status = classify_for_review(candidate)
        info = processing.get(candidate.id)

        row = candidate.to_dict()
        row.update({
            "priority": priority,
            "enrichment_status": enrichment_status,
            "score_reasons": sorted(score_breakdown(candidate)),
            "last_enriched": (
                isoformat(candidate.last_updated) if candidate.is_enriched else None
            ),
            "updated_at": isoformat(to_datetime(doc.get("updatedAt"))),
            "is_being_processed": info is not None,
            "processing_progress": info["progress"] if info else None,
            "processing_status": info["status"] if info else None,
        })
        rows.append(row)

    rows.sort(key=lambda r: (PRIORITY_ORDER[r["priority"]], (r["name"] or "").lower()))
    logger.info(
        "Review listing: %d models, %d being processed",
        len(rows), sum(1 for r in rows if r["is_being_processed"]),
    )
    return rows


__all__ = ["classify_for_review", "list_candidates_for_review"]
