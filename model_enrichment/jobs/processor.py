"""
Batch Processor - Drain an execution's candidates in paced batches.

Per candidate:
1. Checkpoint (stop requested? status no longer running?)
2. Research call; its cost is charged even when the answer is unusable
3. Merge into the catalog (skipped in test mode)
4. Count success/failure, persist progress
5. Stop the run once actual cost exceeds the configured ceiling

Progress writes never touch `status`. The final status is written with a
conditional transition, so a stop recorded by the controller is never
overwritten. A stop requested only through the token is written as
cancelled by the processor itself.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from model_enrichment.config import BATCH_DELAY_SECS, CANCEL_POLL_SECS
from model_enrichment.enrichment.merger import merge_research
from model_enrichment.enrichment.research import ResearchClient
from model_enrichment.errors import (
    Cancelled,
    CostLimitReached,
    EnrichmentError,
    ExecutionNotFound,
    MergeFailure,
)
from model_enrichment.events import log_event
from model_enrichment.jobs.cancellation import CancellationToken
from model_enrichment.jobs.models import (
    Execution,
    ExecutionStatus,
    LogEntry,
    LogLevel,
    StopReason,
)
from model_enrichment.store import CatalogStore
from model_enrichment.timestamps import utc_now

logger = logging.getLogger(__name__)

LIVE_STATUSES = (ExecutionStatus.PENDING.value, ExecutionStatus.RUNNING.value)


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchProcessor:
    """Runs one execution to a terminal status on the calling thread."""

    def __init__(
        self,
        store: CatalogStore,
        research_client: ResearchClient,
        token: Optional[CancellationToken] = None,
        batch_delay_secs: float = BATCH_DELAY_SECS,
        poll_interval_secs: float = CANCEL_POLL_SECS,
    ):
        self.store = store
        self.research_client = research_client
        self.token = token or CancellationToken()
        self.batch_delay_secs = batch_delay_secs
        self.poll_interval_secs = poll_interval_secs

    # =========================================================================
    # RUN
    # =========================================================================

    def run(self, execution: Execution) -> Execution:
        """
        Process every candidate of the execution.

        Args:
            execution: Persisted execution in status running

        Returns:
            The execution as last written by this processor
        """
        start = time.time()
        log_event(
            "execution_started",
            execution_id=execution.id,
            total_models=execution.total_models,
            batch_size=execution.config.batch_size,
            test_mode=execution.config.test_mode,
        )

        try:
            self._process_all(execution)
        except CostLimitReached as e:
            self._log(
                execution, LogLevel.WARNING,
                f"Cost limit reached (${e.actual_cost:.4f} > ${e.limit:.4f}). Stopping enrichment.",
            )
            self._finish(execution, ExecutionStatus.COMPLETED, StopReason.COST_LIMIT)
        except Cancelled as e:
            self._stopped(execution, e.status)
        except Exception as e:
            logger.exception("Execution %s failed: %s", execution.id, e)
            error = {
                "code": getattr(e, "code", "UNEXPECTED_ERROR"),
                "message": str(e),
                "type": type(e).__name__,
            }
            self._log(execution, LogLevel.ERROR, f"Enrichment failed: {e}")
            self._finish(execution, ExecutionStatus.FAILED, StopReason.ERROR, error=error)

        log_event(
            "execution_finished",
            execution_id=execution.id,
            duration_ms=int((time.time() - start) * 1000),
            status=execution.status.value,
            stop_reason=execution.stop_reason.value if execution.stop_reason else None,
            processed=execution.processed_models,
            successful=execution.successful_models,
            failed=execution.failed_models,
            actual_cost=round(execution.actual_cost, 6),
        )
        return execution

    def _process_all(self, execution: Execution) -> None:
        config = execution.config
        model_ids = list(execution.model_ids)

        if not model_ids:
            self._log(execution, LogLevel.INFO, "No eligible models found for enrichment")
            self._finish(execution, ExecutionStatus.COMPLETED, StopReason.NO_CANDIDATES)
            return

        batches = chunked(model_ids, config.batch_size)
        self._log(
            execution, LogLevel.INFO,
            f"Starting enrichment of {len(model_ids)} models in {len(batches)} batches"
            f" (batch size {config.batch_size}, cost limit ${config.max_cost_per_batch:.2f})",
        )
        self._persist(execution)

        for index, batch in enumerate(batches, start=1):
            self._checkpoint(execution)
            self._log(
                execution, LogLevel.INFO,
                f"Processing batch {index}/{len(batches)} ({len(batch)} models)",
            )

            for model_id in batch:
                self._checkpoint(execution)
                self._process_model(execution, model_id)
                self._persist(execution)

                if execution.actual_cost > config.max_cost_per_batch:
                    raise CostLimitReached(execution.actual_cost, config.max_cost_per_batch)

            if index < len(batches):
                self._log(
                    execution, LogLevel.INFO,
                    f"Waiting {self.batch_delay_secs:g} seconds before next batch",
                )
                self._persist(execution)
                self._wait_between_batches(execution)

        self._finish(execution, ExecutionStatus.COMPLETED, StopReason.FINISHED)

    # =========================================================================
    # PER-CANDIDATE
    # =========================================================================

    def _process_model(self, execution: Execution, model_id: str) -> None:
        config = execution.config
        cost = 0.0
        name = model_id

        try:
            try:
                model = self.store.get_model(model_id)
            except Exception as e:
                raise MergeFailure(f"Could not load model {model_id}: {e}", model_id=model_id) from e
            if model is None:
                raise MergeFailure(f"Model {model_id} no longer exists", model_id=model_id)
            name = model.get("name") or model_id

            self._log(execution, LogLevel.INFO, f"Researching {name}", model_id)
            result = self.research_client.research(
                model,
                detail_level=config.target_data_quality,
                params=config.generation,
                include_validation=config.include_validation,
                ai_model=config.ai_model,
            )
            cost = result.cost_usd
            payload = result.payload

            if config.test_mode:
                message = (
                    f"Test mode: researched {name} (confidence {payload.confidence},"
                    f" score {payload.confidence_score}, {len(payload.ideal_use_cases)} use cases,"
                    f" {len(payload.sources)} sources), no changes written"
                )
            else:
                merge_research(self.store, model, payload)
                message = (
                    f"Enriched {name} (confidence {payload.confidence},"
                    f" score {payload.confidence_score}, ${cost:.4f})"
                )

            execution.record_success(cost)
            self._log(execution, LogLevel.SUCCESS, message, model_id)

        except EnrichmentError as e:
            cost = max(cost, getattr(e, "cost_usd", 0.0))
            execution.record_failure(cost)
            logger.warning("Enrichment failed for %s: %s (%s)", model_id, e, e.code)
            self._log(execution, LogLevel.ERROR, f"Failed to enrich {name}: {e}", model_id)

    # =========================================================================
    # CANCELLATION
    # =========================================================================

    def _checkpoint(self, execution: Execution) -> None:
        """Raise Cancelled when a stop was requested or the run was ended elsewhere."""
        if self.token.cancelled:
            raise Cancelled(ExecutionStatus.CANCELLED.value)

        doc = self.store.get_execution(execution.id)
        status = (doc or {}).get("status")
        if status != ExecutionStatus.RUNNING.value:
            raise Cancelled(status or "missing")

    def _wait_between_batches(self, execution: Execution) -> None:
        """Sleep the batch delay, waking on cancellation and re-reading persisted status."""
        remaining = self.batch_delay_secs
        while remaining > 0:
            interval = remaining
            if self.poll_interval_secs > 0:
                interval = min(self.poll_interval_secs, remaining)
            if self.token.wait(interval):
                raise Cancelled(ExecutionStatus.CANCELLED.value)
            remaining -= interval
            self._checkpoint(execution)

    def _stopped(self, execution: Execution, status: str) -> None:
        """Record a stop observed at a checkpoint; a local cancel still ends the document."""
        if status == ExecutionStatus.CANCELLED.value:
            message = (
                f"Enrichment stopped by user. {execution.successful_models} successfully"
                f" enriched, {execution.failed_models} failed."
                f" Total cost: ${execution.actual_cost:.4f}"
            )
            stop_reason = StopReason.CANCELLED
        else:
            message = (
                f"Enrichment externally terminated (status {status}) after"
                f" {execution.processed_models} models. Total cost: ${execution.actual_cost:.4f}"
            )
            stop_reason = StopReason.EXTERNALLY_TERMINATED

        self._log(execution, LogLevel.WARNING, message)
        execution.stop_reason = stop_reason
        if status not in {s.value for s in ExecutionStatus}:
            logger.warning("Execution %s no longer exists, progress not saved", execution.id)
            return
        execution.status = ExecutionStatus(status)

        fields = execution.progress_fields()
        fields["stop_reason"] = stop_reason.value
        try:
            if stop_reason == StopReason.CANCELLED:
                # Token-only stops leave the document live
                now = utc_now()
                ended = dict(fields, status=status, completed_at=now)
                if self.store.transition_execution(execution.id, LIVE_STATUSES, ended):
                    execution.completed_at = now
                    return
            self.store.update_execution(execution.id, fields)
        except ExecutionNotFound:
            logger.warning("Execution %s no longer exists, progress not saved", execution.id)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _log(
        self,
        execution: Execution,
        level: LogLevel,
        message: str,
        model_id: Optional[str] = None,
    ) -> LogEntry:
        entry = execution.add_log(level, message, model_id)
        if level == LogLevel.ERROR:
            logger.error("[%s] %s", execution.id, message)
        elif level == LogLevel.WARNING:
            logger.warning("[%s] %s", execution.id, message)
        else:
            logger.info("[%s] %s", execution.id, message)
        return entry

    def _persist(self, execution: Execution) -> None:
        self.store.update_execution(execution.id, execution.progress_fields())

    def _finish(
        self,
        execution: Execution,
        status: ExecutionStatus,
        stop_reason: StopReason,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write the terminal status unless the run was already ended elsewhere."""
        summary = None
        if status == ExecutionStatus.COMPLETED:
            summary = self._log(
                execution, LogLevel.SUCCESS,
                f"Enrichment completed! {execution.successful_models} successfully enriched,"
                f" {execution.failed_models} failed. Total cost: ${execution.actual_cost:.4f}",
            )

        now = utc_now()
        fields = execution.progress_fields()
        fields.update({
            "status": status.value,
            "stop_reason": stop_reason.value,
            "completed_at": now,
            "error": error,
        })

        if self.store.transition_execution(execution.id, LIVE_STATUSES, fields):
            execution.status = status
            execution.stop_reason = stop_reason
            execution.completed_at = now
            execution.error = error
            return

        # Stopped concurrently: keep the recorded status, still save progress
        if summary in execution.logs:
            execution.logs.remove(summary)
        doc = self.store.get_execution(execution.id) or {}
        self._stopped(execution, doc.get("status") or "missing")


__all__ = ["BatchProcessor", "chunked"]
