"""Tests for the in-memory store's write rules."""

from datetime import timedelta

import pytest

from conftest import make_model

from model_enrichment.errors import ExecutionNotFound
from model_enrichment.jobs.models import ExecutionStatus
from model_enrichment.store import InMemoryStore
from model_enrichment.timestamps import utc_now


@pytest.fixture
def store():
    store = InMemoryStore([make_model("a", provider="openai"), make_model("b", provider="google")])
    store.create_execution({"id": "e1", "status": "running", "started_at": utc_now()})
    return store


class TestModels:

    def test_get_returns_copy(self, store):
        model = store.get_model("a")
        model["name"] = "changed"
        assert store.get_model("a")["name"] != "changed"

    def test_list_by_provider(self, store):
        assert [m["id"] for m in store.list_models(provider_id="google")] == ["b"]
        assert len(store.list_models(limit=1)) == 1

    def test_update_replaces_top_level_fields(self, store):
        store.update_model("a", {"tags": ["x"]})
        model = store.get_model("a")
        assert model["tags"] == ["x"]
        assert model["providerId"] == "openai"

    def test_update_missing_model_raises(self, store):
        with pytest.raises(KeyError):
            store.update_model("nope", {"tags": []})


class TestExecutions:

    def test_create_sets_version(self, store):
        doc = store.get_execution("e1")
        assert doc["version"] == 1
        assert doc["updated_at"] is not None

    def test_update_ignores_status_and_bumps_version(self, store):
        store.update_execution("e1", {"status": "completed", "processed_models": 3})
        doc = store.get_execution("e1")
        assert doc["status"] == "running"
        assert doc["processed_models"] == 3
        assert doc["version"] == 2

    def test_update_missing_execution_raises(self, store):
        with pytest.raises(ExecutionNotFound):
            store.update_execution("nope", {"processed_models": 1})

    def test_transition_from_allowed_status(self, store):
        assert store.transition_execution("e1", ["running"], {"status": "cancelled"})
        doc = store.get_execution("e1")
        assert doc["status"] == "cancelled"
        assert doc["version"] == 2

    def test_transition_accepts_enum_statuses(self, store):
        assert store.transition_execution("e1", [ExecutionStatus.RUNNING], {"status": "failed"})

    def test_transition_rejected_leaves_document_untouched(self, store):
        store.transition_execution("e1", ["running"], {"status": "cancelled"})
        assert not store.transition_execution("e1", ["running"], {"status": "completed", "error": "x"})
        doc = store.get_execution("e1")
        assert doc["status"] == "cancelled"
        assert "error" not in doc
        assert doc["version"] == 2

    def test_transition_must_move_forward(self, store):
        store.transition_execution("e1", ["running"], {"status": "completed"})
        assert not store.transition_execution("e1", ["completed"], {"status": "running"})
        assert not store.transition_execution("e1", ["completed"], {"status": "cancelled"})
        doc = store.get_execution("e1")
        assert doc["status"] == "completed"
        assert doc["version"] == 2

    def test_transition_without_status_only_checks_source(self, store):
        assert store.transition_execution("e1", ["running"], {"stop_reason": "cancelled"})
        assert store.get_execution("e1")["status"] == "running"

    def test_transition_missing_execution_raises(self, store):
        with pytest.raises(ExecutionNotFound):
            store.transition_execution("nope", ["running"], {"status": "failed"})

    def test_query_by_status_newest_first(self, store):
        store.create_execution({
            "id": "e0", "status": "running", "started_at": utc_now() - timedelta(hours=1),
        })
        store.create_execution({"id": "e2", "status": "completed", "started_at": utc_now()})

        assert [d["id"] for d in store.query_executions(statuses=["running"])] == ["e1", "e0"]
        assert len(store.query_executions(limit=2)) == 2
        assert {d["id"] for d in store.query_executions()} == {"e0", "e1", "e2"}
