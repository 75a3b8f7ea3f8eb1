"""Structured event logging (one JSON object per line for Cloud Logging)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("model_enrichment.events")


def log_event(
    event: str,
    execution_id: Optional[str] = None,
    model_id: Optional[str] = None,
    duration_ms: Optional[int] = None,
    **extra: Any,
) -> None:
    """
    Log a structured event.

    Uses JSON for Cloud Logging compatibility.
    """
    record = {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if execution_id:
        record["execution_id"] = execution_id
    if model_id:
        record["model_id"] = model_id
    if duration_ms is not None:
        record["duration_ms"] = duration_ms

    record.update(extra)

    logger.info(json.dumps(record, default=str))
