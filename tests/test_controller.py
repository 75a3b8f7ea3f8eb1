"""
Tests for the execution controller.

Runs execute on real background threads against an InMemoryStore; tests
join them with a timeout instead of sleeping.
"""

from datetime import timedelta

import pytest

from conftest import ScriptedResearchClient, make_model, make_result

from model_enrichment.enrichment.llm_client import MockLLMClient, default_research_payload
from model_enrichment.enrichment.research import ResearchClient
from model_enrichment.errors import ExecutionNotFound, ModelNotFound, PayloadParseFailure
from model_enrichment.jobs.controller import ExecutionController
from model_enrichment.jobs.models import EnrichmentConfig, ExecutionStatus, StopReason
from model_enrichment.store import InMemoryStore
from model_enrichment.timestamps import utc_now

JOIN_TIMEOUT = 10


def make_controller(store, client=None):
    return ExecutionController(
        store,
        research_client=client or ScriptedResearchClient(),
        batch_delay_secs=0,
        poll_interval_secs=0.05,
    )


def seed_store(count, **kwargs):
    return InMemoryStore([make_model(f"m{i}", **kwargs) for i in range(count)])


def put_execution(store, execution_id, status, started_minutes_ago=0, **fields):
    doc = {
        "id": execution_id,
        "status": status,
        "config": {},
        "model_ids": [],
        "started_at": utc_now() - timedelta(minutes=started_minutes_ago),
    }
    doc.update(fields)
    store.create_execution(doc)


# =============================================================================
# Start
# =============================================================================


class TestStart:

    def test_start_runs_to_completion(self):
        store = seed_store(3)
        controller = make_controller(store)

        execution = controller.start(EnrichmentConfig())

        assert execution.status == ExecutionStatus.RUNNING
        assert execution.id.startswith("enrichment_")
        assert execution.total_models == 3
        assert execution.estimated_cost == pytest.approx(0.09)
        assert controller.join(execution.id, timeout=JOIN_TIMEOUT)

        status = controller.get_status(execution.id)
        assert status["status"] == "completed"
        assert status["stop_reason"] == "finished"
        assert status["processed_models"] == 3
        assert status["progress_percent"] == 100
        assert not controller.is_live(execution.id)

    def test_selection_log_written_first(self):
        store = seed_store(2)
        controller = make_controller(store)

        execution = controller.start(EnrichmentConfig(test_mode=True))
        controller.join(execution.id, timeout=JOIN_TIMEOUT)

        logs = controller.get_status(execution.id)["logs"]
        assert logs[0]["message"].startswith("Selected 2 models for enrichment")
        assert "Test mode" in logs[1]["message"]

    def test_empty_selection_completes_synchronously(self):
        controller = make_controller(InMemoryStore())

        execution = controller.start(EnrichmentConfig())

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.stop_reason == StopReason.NO_CANDIDATES
        assert execution.total_models == 0
        assert not controller.is_live(execution.id)

    def test_explicit_model_ids_skip_selection(self):
        store = seed_store(3)
        client = ScriptedResearchClient()
        controller = make_controller(store, client)

        execution = controller.start(EnrichmentConfig(), model_ids=["m2", "missing", "m0"])
        controller.join(execution.id, timeout=JOIN_TIMEOUT)

        assert execution.model_ids == ["m2", "m0"]
        assert client.calls == ["m2", "m0"]

    def test_estimate_cost(self):
        config = EnrichmentConfig(target_data_quality="premium", include_validation=True)
        assert ExecutionController.estimate_cost(config, 10) == pytest.approx(0.75)
        assert ExecutionController.estimate_cost(EnrichmentConfig(), 0) == 0

    def test_preview_does_not_create_execution(self):
        store = seed_store(2)
        controller = make_controller(store)

        selection = controller.preview(EnrichmentConfig())

        assert selection.selected == 2
        assert store.query_executions() == []


# =============================================================================
# Observe
# =============================================================================


class TestObserve:

    def test_get_status_unknown_is_none(self):
        assert make_controller(InMemoryStore()).get_status("nope") is None

    def test_get_status_limits_logs(self):
        store = seed_store(3)
        controller = make_controller(store)
        execution = controller.start(EnrichmentConfig())
        controller.join(execution.id, timeout=JOIN_TIMEOUT)

        status = controller.get_status(execution.id, log_limit=2)
        assert len(status["logs"]) == 2
        assert status["logs"][-1]["message"].startswith("Enrichment completed!")
        assert isinstance(status["started_at"], str)

    def test_watch_delivers_terminal_snapshot(self):
        store = seed_store(2)
        controller = make_controller(store)
        execution = controller.start(EnrichmentConfig())
        updates = []

        handle = controller.watch(execution.id, updates.append, interval_secs=0.05)

        assert handle.wait(timeout=JOIN_TIMEOUT)
        assert updates[-1]["status"] == "completed"
        assert handle.last_snapshot is updates[-1]

    def test_watch_stops_for_unknown_execution(self):
        controller = make_controller(InMemoryStore())
        updates = []

        handle = controller.watch("nope", updates.append, interval_secs=0.05)

        assert handle.wait(timeout=JOIN_TIMEOUT)
        assert updates == []

    def test_list_executions_newest_first_and_clamped(self):
        store = InMemoryStore()
        put_execution(store, "old", "completed", started_minutes_ago=30)
        put_execution(store, "new", "completed", started_minutes_ago=1)
        put_execution(store, "mid", "failed", started_minutes_ago=10)
        controller = make_controller(store)

        assert [e.id for e in controller.list_executions()] == ["new", "mid", "old"]
        assert [e.id for e in controller.list_executions(limit=0)] == ["new"]
        assert len(controller.list_executions(limit=1000)) == 3

    def test_get_running_executions(self):
        store = InMemoryStore()
        put_execution(store, "r", "running")
        put_execution(store, "c", "completed")
        controller = make_controller(store)

        assert [e.id for e in controller.get_running_executions()] == ["r"]

    def test_workflow_stats(self):
        store = InMemoryStore()
        put_execution(store, "a", "completed", started_minutes_ago=5,
                      successful_models=4, failed_models=1, actual_cost=0.15)
        put_execution(store, "b", "failed", started_minutes_ago=60,
                      successful_models=1, failed_models=2, actual_cost=0.05)
        controller = make_controller(store)

        stats = controller.get_workflow_stats()

        assert stats["total_executions"] == 2
        assert stats["models_enriched"] == 5
        assert stats["models_failed"] == 3
        assert stats["total_cost"] == pytest.approx(0.2)
        assert stats["by_status"] == {"completed": 1, "failed": 1}
        assert stats["last_run_at"] is not None

    def test_workflow_stats_empty(self):
        stats = make_controller(InMemoryStore()).get_workflow_stats()
        assert stats["total_executions"] == 0
        assert stats["last_run_at"] is None


# =============================================================================
# Stop
# =============================================================================


class TestCancel:

    def test_cancel_mid_run(self):
        store = seed_store(5)
        holder = {}

        def cancel_at_second_model(model):
            if model["id"] == "m1":
                running = store.query_executions(statuses=["running"])
                holder["cancelled"] = controller.request_cancel(running[0]["id"])

        client = ScriptedResearchClient(before_call=cancel_at_second_model)
        controller = make_controller(store, client)

        execution = controller.start(EnrichmentConfig(batch_size=2))
        assert controller.join(execution.id, timeout=JOIN_TIMEOUT)

        assert holder["cancelled"] is True
        assert client.calls == ["m0", "m1"]
        status = controller.get_status(execution.id)
        assert status["status"] == "cancelled"
        assert status["stop_reason"] == "cancelled"
        assert status["processed_models"] == 2
        assert status["completed_at"] is not None

    def test_cancel_unknown_raises(self):
        with pytest.raises(ExecutionNotFound):
            make_controller(InMemoryStore()).request_cancel("nope")

    def test_cancel_terminal_is_noop(self):
        store = InMemoryStore()
        put_execution(store, "done", "completed")
        controller = make_controller(store)

        assert controller.request_cancel("done") is False
        assert store.get_execution("done")["status"] == "completed"

    def test_cancel_all_running(self):
        store = InMemoryStore()
        put_execution(store, "r1", "running")
        put_execution(store, "p1", "pending")
        put_execution(store, "c1", "completed")
        controller = make_controller(store)

        stopped = controller.cancel_all_running()

        assert sorted(stopped) == ["p1", "r1"]
        assert store.get_execution("r1")["status"] == "cancelled"
        assert store.get_execution("p1")["status"] == "cancelled"
        assert store.get_execution("c1")["status"] == "completed"


# =============================================================================
# One-off research
# =============================================================================


class TestSingleResearch:

    def test_research_single_writes_nothing(self):
        store = seed_store(1)
        client = ScriptedResearchClient(default=make_result(cost=0.02))
        controller = make_controller(store, client)

        result = controller.research_single("m0")

        assert result.cost_usd == 0.02
        assert store.get_model("m0")["dataSource"]["dataQuality"] == "estimated"
        assert store.query_executions() == []

    def test_research_single_with_mock_llm(self):
        store = seed_store(1)
        controller = make_controller(store, ResearchClient(MockLLMClient()))

        result = controller.research_single("m0", EnrichmentConfig(ai_model="gemini-2.5-flash"))

        assert result.payload.categories == ["reasoning", "code"]

    def test_research_single_unknown_model(self):
        with pytest.raises(ModelNotFound):
            make_controller(InMemoryStore()).research_single("nope")

    def test_apply_research_merges(self):
        store = seed_store(1)
        controller = make_controller(store)

        updates = controller.apply_research("m0", default_research_payload())

        assert "tags" in updates
        assert store.get_model("m0")["dataSource"]["dataQuality"] == "verified"

    def test_apply_research_rejects_invalid_payload(self):
        store = seed_store(1)
        controller = make_controller(store)

        with pytest.raises(PayloadParseFailure):
            controller.apply_research("m0", {"confidence": "high"})
        assert store.get_model("m0")["dataSource"]["dataQuality"] == "estimated"
