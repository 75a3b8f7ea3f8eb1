"""
Execution Controller - Start, observe and stop enrichment executions.

Each execution runs on its own daemon thread inside this process. The
controller keeps a CancellationToken per live run so request_cancel() can
wake a processor that is waiting between batches; the persisted status is
the source of truth for runs owned by other processes.

Operations:
- start(): select candidates, persist the execution, launch the processor
- get_status(): latest persisted snapshot
- request_cancel() / cancel_all_running(): cooperative stop
- list_executions() / get_running_executions() / get_workflow_stats()
- research_single() / apply_research(): one-off research outside a run
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from model_enrichment.config import BATCH_DELAY_SECS, CANCEL_POLL_SECS
from model_enrichment.enrichment.merger import merge_research
from model_enrichment.enrichment.models import ResearchPayload, ResearchResult
from model_enrichment.enrichment.research import ResearchClient
from model_enrichment.enrichment.validators import validate_research_payload
from model_enrichment.errors import (
    ExecutionNotFound,
    ModelNotFound,
    PayloadParseFailure,
)
from model_enrichment.events import log_event
from model_enrichment.jobs.cancellation import CancellationToken
from model_enrichment.jobs.models import (
    EnrichmentConfig,
    Execution,
    ExecutionStatus,
    LogLevel,
    StopReason,
)
from model_enrichment.jobs.polling import (
    DEFAULT_POLL_INTERVAL_SECS,
    PollHandle,
    UpdateCallback,
    watch_execution,
)
from model_enrichment.jobs.processor import LIVE_STATUSES, BatchProcessor
from model_enrichment.selection.selector import CandidateSelector, SelectionResult
from model_enrichment.store import CatalogStore
from model_enrichment.timestamps import isoformat, utc_now

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100
STATS_WINDOW = 100


class ExecutionController:
    """Entry point for enrichment executions."""

    def __init__(
        self,
        store: CatalogStore,
        research_client: Optional[ResearchClient] = None,
        selector: Optional[CandidateSelector] = None,
        batch_delay_secs: float = BATCH_DELAY_SECS,
        poll_interval_secs: float = CANCEL_POLL_SECS,
    ):
        self.store = store
        self.research_client = research_client or ResearchClient()
        self.selector = selector or CandidateSelector(store)
        self.batch_delay_secs = batch_delay_secs
        self.poll_interval_secs = poll_interval_secs

        self._lock = threading.Lock()
        self._threads: Dict[str, threading.Thread] = {}
        self._tokens: Dict[str, CancellationToken] = {}

    # =========================================================================
    # START
    # =========================================================================

    @staticmethod
    def estimate_cost(config: EnrichmentConfig, model_count: int) -> float:
        return config.estimate_cost(model_count)

    def preview(self, config: EnrichmentConfig) -> SelectionResult:
        """Run candidate selection without starting anything."""
        return self.selector.select(config)

    def start(
        self,
        config: EnrichmentConfig,
        model_ids: Optional[Sequence[str]] = None,
    ) -> Execution:
        """
        Start an enrichment execution.

        Args:
            config: Execution configuration
            model_ids: Explicit catalog ids (skips selection; unknown ids dropped)

        Returns:
            The execution as created (status running, or completed when empty)
        """
        if model_ids:
            candidates = self.selector.load(model_ids)
            selection = SelectionResult(
                candidates=candidates,
                pool=len(model_ids),
                after_quality_filter=len(candidates),
                eligible=len(candidates),
            )
        else:
            selection = self.selector.select(config)

        now = utc_now()
        count = selection.selected
        execution = Execution(
            id=Execution.new_id(),
            config=config,
            status=ExecutionStatus.RUNNING,
            model_ids=selection.model_ids,
            total_models=count,
            estimated_cost=config.estimate_cost(count),
            started_at=now,
            updated_at=now,
        )
        counts = selection.counts()
        execution.add_log(
            LogLevel.INFO,
            f"Selected {count} models for enrichment (pool {counts['pool']},"
            f" after quality filter {counts['after_quality_filter']},"
            f" eligible {counts['eligible']}). Estimated cost: ${execution.estimated_cost:.2f}",
        )
        if config.test_mode:
            execution.add_log(LogLevel.INFO, "Test mode: research results will not be written")

        self.store.create_execution(execution.to_dict())
        logger.info(
            "Started execution %s: %d models, estimated $%.2f",
            execution.id, count, execution.estimated_cost,
        )

        # Processor works on its own copy
        working = Execution.from_dict(execution.to_dict())
        token = CancellationToken()
        processor = BatchProcessor(
            self.store,
            self.research_client,
            token=token,
            batch_delay_secs=self.batch_delay_secs,
            poll_interval_secs=self.poll_interval_secs,
        )

        if selection.is_empty:
            processor.run(working)
            return self.get_execution(execution.id) or working

        thread = threading.Thread(
            target=self._run,
            args=(processor, working),
            name=f"enrichment-{execution.id}",
            daemon=True,
        )
        with self._lock:
            self._threads[execution.id] = thread
            self._tokens[execution.id] = token
        thread.start()
        return execution

    def _run(self, processor: BatchProcessor, execution: Execution) -> None:
        try:
            processor.run(execution)
        except Exception as e:
            # Terminal write itself failed; the watchdog recovers the record
            logger.exception("Execution %s crashed: %s", execution.id, e)
        finally:
            with self._lock:
                self._threads.pop(execution.id, None)
                self._tokens.pop(execution.id, None)

    # =========================================================================
    # OBSERVE
    # =========================================================================

    def get_execution(self, execution_id: str) -> Optional[Execution]:
        doc = self.store.get_execution(execution_id)
        return Execution.from_dict(doc) if doc else None

    def get_status(
        self,
        execution_id: str,
        log_limit: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Latest persisted snapshot, or None for an unknown id."""
        execution = self.get_execution(execution_id)
        if execution is None:
            return None
        return execution.snapshot(log_limit=log_limit)

    def is_live(self, execution_id: str) -> bool:
        """True while this process is running the execution's processor."""
        with self._lock:
            thread = self._threads.get(execution_id)
        return thread is not None and thread.is_alive()

    def join(self, execution_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for a locally running execution; True once it has finished."""
        with self._lock:
            thread = self._threads.get(execution_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def watch(
        self,
        execution_id: str,
        on_update: UpdateCallback,
        interval_secs: float = DEFAULT_POLL_INTERVAL_SECS,
        log_limit: Optional[int] = 10,
    ) -> PollHandle:
        """Poll status in the background; cancel() the handle to stop."""
        return watch_execution(
            execution_id,
            lambda eid: self.get_status(eid, log_limit=log_limit),
            on_update,
            interval_secs,
        )

    def list_executions(self, limit: int = DEFAULT_LIST_LIMIT) -> List[Execution]:
        """Newest first; limit clamped to 1..100."""
        limit = max(1, min(MAX_LIST_LIMIT, int(limit)))
        return [Execution.from_dict(doc) for doc in self.store.query_executions(limit=limit)]

    def get_running_executions(self) -> List[Execution]:
        docs = self.store.query_executions(statuses=[ExecutionStatus.RUNNING.value])
        executions = [Execution.from_dict(doc) for doc in docs]
        logger.debug("Found %d running executions", len(executions))
        return executions

    def get_workflow_stats(self) -> Dict[str, Any]:
        """Aggregate counters over the most recent executions."""
        executions = self.list_executions(limit=STATS_WINDOW)
        by_status: Dict[str, int] = {}
        for execution in executions:
            by_status[execution.status.value] = by_status.get(execution.status.value, 0) + 1

        return {
            "total_executions": len(executions),
            "models_enriched": sum(e.successful_models for e in executions),
            "models_failed": sum(e.failed_models for e in executions),
            "total_cost": round(sum(e.actual_cost for e in executions), 6),
            "by_status": by_status,
            "last_run_at": isoformat(executions[0].started_at) if executions else None,
        }

    # =========================================================================
    # STOP
    # =========================================================================

    def request_cancel(self, execution_id: str) -> bool:
        """
        Request a cooperative stop.

        Returns:
            True if the execution moved to cancelled, False if already terminal

        Raises:
            ExecutionNotFound: Unknown execution id
        """
        if self.store.get_execution(execution_id) is None:
            raise ExecutionNotFound(execution_id)

        cancelled = self.store.transition_execution(
            execution_id,
            LIVE_STATUSES,
            {
                "status": ExecutionStatus.CANCELLED.value,
                "stop_reason": StopReason.CANCELLED.value,
                "completed_at": utc_now(),
            },
        )

        with self._lock:
            token = self._tokens.get(execution_id)
        if token is not None:
            token.cancel()

        if cancelled:
            logger.info("Cancellation requested for %s", execution_id)
            log_event("execution_cancel_requested", execution_id=execution_id)
        else:
            logger.info("Execution %s already finished, cancel ignored", execution_id)
        return cancelled

    def cancel_all_running(self) -> List[str]:
        """Stop every pending or running execution; returns the ids stopped."""
        stopped = []
        for doc in self.store.query_executions(statuses=LIVE_STATUSES):
            try:
                if self.request_cancel(doc["id"]):
                    stopped.append(doc["id"])
            except ExecutionNotFound:
                continue
        logger.warning("Stop all: cancelled %d executions", len(stopped))
        log_event("execution_cancel_all", cancelled=len(stopped), execution_ids=stopped)
        return stopped

    # =========================================================================
    # ONE-OFF RESEARCH
    # =========================================================================

    def research_single(
        self,
        model_id: str,
        config: Optional[EnrichmentConfig] = None,
    ) -> ResearchResult:
        """Research one catalog entry without writing anything."""
        config = config or EnrichmentConfig()
        model = self.store.get_model(model_id)
        if model is None:
            raise ModelNotFound(model_id)
        return self.research_client.research(
            model,
            detail_level=config.target_data_quality,
            params=config.generation,
            include_validation=config.include_validation,
            ai_model=config.ai_model,
        )

    def apply_research(self, model_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Write a previously reviewed research payload to a catalog entry.

        Raises:
            ModelNotFound: Unknown model id
            PayloadParseFailure: Payload fails validation
            MergeFailure: Store write failed
        """
        model = self.store.get_model(model_id)
        if model is None:
            raise ModelNotFound(model_id)

        validation = validate_research_payload(payload)
        if not validation.valid:
            raise PayloadParseFailure("; ".join(validation.errors), model_id=model_id)

        updates = merge_research(self.store, model, ResearchPayload.from_dict(payload))
        log_event("research_applied", model_id=model_id, fields=sorted(updates))
        return updates


__all__ = ["ExecutionController"]
