"""
Watchdog - Self-healing for stuck enrichment executions.

An execution is stuck when it is still pending/running but either:
1. Its heartbeat (updated_at) is older than STALE_EXECUTION_SECS, or
2. It started more than MAX_EXECUTION_SECS ago

Stuck executions are marked failed with a structured error. A processor
that is somehow still alive sees the non-running status at its next
checkpoint and stops without overwriting it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from model_enrichment.config import MAX_EXECUTION_SECS, STALE_EXECUTION_SECS
from model_enrichment.events import log_event
from model_enrichment.jobs.models import ExecutionStatus, StopReason
from model_enrichment.jobs.processor import LIVE_STATUSES
from model_enrichment.store import CatalogStore
from model_enrichment.timestamps import to_datetime, utc_now

logger = logging.getLogger(__name__)

STALE_HEARTBEAT = "STALE_HEARTBEAT"
MAX_LIFETIME_EXCEEDED = "MAX_LIFETIME_EXCEEDED"


def stuck_reason(
    data: Dict[str, Any],
    now: datetime,
    stale_secs: int = STALE_EXECUTION_SECS,
    max_secs: int = MAX_EXECUTION_SECS,
) -> Optional[str]:
    """Return the error code explaining why an execution is stuck, or None."""
    started_at = to_datetime(data.get("started_at"))
    heartbeat = to_datetime(data.get("updated_at")) or started_at

    if started_at and (now - started_at).total_seconds() > max_secs:
        return MAX_LIFETIME_EXCEEDED
    if heartbeat and (now - heartbeat).total_seconds() > stale_secs:
        return STALE_HEARTBEAT
    return None


def recover_stuck_executions(
    store: CatalogStore,
    dry_run: bool = True,
    now: Optional[datetime] = None,
    stale_secs: int = STALE_EXECUTION_SECS,
    max_secs: int = MAX_EXECUTION_SECS,
) -> Dict[str, Any]:
    """
    Find and fail executions stuck in pending/running.

    Args:
        store: Catalog store
        dry_run: If True, only report what would be done
        now: Reference time (defaults to current UTC time)
        stale_secs: Heartbeat age that counts as stuck
        max_secs: Lifetime that counts as stuck

    Returns:
        Summary of stuck executions found and actions taken
    """
    now = now or utc_now()

    results = {
        "found": 0,
        "recovered": 0,
        "skipped": 0,
        "errors": 0,
        "executions": [],
        "dry_run": dry_run,
    }

    for data in store.query_executions(statuses=LIVE_STATUSES):
        reason = stuck_reason(data, now, stale_secs, max_secs)
        if reason is None:
            continue

        execution_id = data["id"]
        results["found"] += 1
        results["executions"].append({
            "id": execution_id,
            "status": data.get("status"),
            "reason": reason,
            "started_at": str(data.get("started_at")),
            "updated_at": str(data.get("updated_at")),
            "processed_models": data.get("processed_models", 0),
            "total_models": data.get("total_models", 0),
        })

        if dry_run:
            continue

        try:
            recovered = store.transition_execution(
                execution_id,
                LIVE_STATUSES,
                {
                    "status": ExecutionStatus.FAILED.value,
                    "stop_reason": StopReason.ERROR.value,
                    "completed_at": now,
                    "error": {
                        "code": reason,
                        "message": f"Execution recovered by watchdog ({reason.lower()})",
                        "type": "Watchdog",
                    },
                },
            )
        except Exception as e:
            logger.error("Failed to recover execution %s: %s", execution_id, e)
            results["errors"] += 1
            continue

        if recovered:
            results["recovered"] += 1
            log_event("execution_recovered", execution_id=execution_id, reason=reason)
        else:
            # Finished between query and transition
            results["skipped"] += 1

    logger.info("Watchdog: found=%d stuck executions, recovered=%d, errors=%d",
               results["found"], results["recovered"], results["errors"])

    return results


def run_watchdog(store: CatalogStore, dry_run: bool = True) -> Dict[str, Any]:
    """
    Run all watchdog tasks.

    Args:
        store: Catalog store
        dry_run: If True, only report what would be done

    Returns:
        Combined results from all tasks
    """
    logger.info("Running watchdog (dry_run=%s)", dry_run)

    return {
        "stuck_executions": recover_stuck_executions(store, dry_run),
    }


__all__ = [
    "STALE_HEARTBEAT",
    "MAX_LIFETIME_EXCEEDED",
    "stuck_reason",
    "recover_stuck_executions",
    "run_watchdog",
]
