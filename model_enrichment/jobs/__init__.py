"""
Jobs Package - Enrichment executions, processing and supervision.

This package provides:
- models: Execution, EnrichmentConfig and status enums
- cancellation: CancellationToken for cooperative stops
- processor: BatchProcessor that drains an execution's candidates
- controller: ExecutionController (start, status, cancel, listing)
- polling: PollHandle for background status polling
- watchdog: Self-healing for stuck executions

Only models and cancellation are re-exported here; the processor and
controller depend on the enrichment package, which imports these models.
"""

from model_enrichment.jobs.models import (
    ExecutionStatus,
    StopReason,
    DataQuality,
    DetailLevel,
    LogLevel,
    GenerationParams,
    EnrichmentConfig,
    LogEntry,
    Execution,
)

from model_enrichment.jobs.cancellation import CancellationToken


__all__ = [
    # Models
    "ExecutionStatus",
    "StopReason",
    "DataQuality",
    "DetailLevel",
    "LogLevel",
    "GenerationParams",
    "EnrichmentConfig",
    "LogEntry",
    "Execution",
    # Cancellation
    "CancellationToken",
]
