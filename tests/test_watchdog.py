"""Tests for stuck-execution recovery."""

from datetime import timedelta

from model_enrichment.jobs.watchdog import (
    MAX_LIFETIME_EXCEEDED,
    STALE_HEARTBEAT,
    recover_stuck_executions,
    run_watchdog,
    stuck_reason,
)
from model_enrichment.store import InMemoryStore
from model_enrichment.timestamps import utc_now


def put_execution(store, execution_id, status, started_ago, heartbeat_ago):
    store.create_execution({
        "id": execution_id,
        "status": status,
        "config": {},
        "started_at": utc_now() - started_ago,
    })
    # create_execution stamps updated_at; backdate the heartbeat
    store._executions[execution_id]["updated_at"] = utc_now() - heartbeat_ago


class TestStuckReason:

    def test_fresh_execution_not_stuck(self):
        now = utc_now()
        data = {"started_at": now - timedelta(minutes=5), "updated_at": now}
        assert stuck_reason(data, now) is None

    def test_stale_heartbeat(self):
        now = utc_now()
        data = {"started_at": now - timedelta(hours=1), "updated_at": now - timedelta(minutes=45)}
        assert stuck_reason(data, now) == STALE_HEARTBEAT

    def test_max_lifetime_wins_over_heartbeat(self):
        now = utc_now()
        data = {"started_at": now - timedelta(hours=7), "updated_at": now - timedelta(hours=2)}
        assert stuck_reason(data, now) == MAX_LIFETIME_EXCEEDED

    def test_missing_heartbeat_falls_back_to_start(self):
        now = utc_now()
        data = {"started_at": (now - timedelta(hours=1)).isoformat()}
        assert stuck_reason(data, now) == STALE_HEARTBEAT

    def test_custom_thresholds(self):
        now = utc_now()
        data = {"started_at": now - timedelta(seconds=90), "updated_at": now - timedelta(seconds=90)}
        assert stuck_reason(data, now, stale_secs=60) == STALE_HEARTBEAT
        assert stuck_reason(data, now, stale_secs=600, max_secs=60) == MAX_LIFETIME_EXCEEDED


class TestRecoverStuckExecutions:

    def _store(self):
        store = InMemoryStore()
        put_execution(store, "stuck", "running", timedelta(hours=2), timedelta(hours=1))
        put_execution(store, "healthy", "running", timedelta(minutes=10), timedelta(seconds=10))
        put_execution(store, "done", "completed", timedelta(days=2), timedelta(days=2))
        return store

    def test_dry_run_reports_only(self):
        store = self._store()

        results = recover_stuck_executions(store, dry_run=True)

        assert results["found"] == 1
        assert results["recovered"] == 0
        assert results["dry_run"] is True
        assert results["executions"][0]["id"] == "stuck"
        assert results["executions"][0]["reason"] == STALE_HEARTBEAT
        assert store.get_execution("stuck")["status"] == "running"

    def test_apply_marks_failed(self):
        store = self._store()

        results = recover_stuck_executions(store, dry_run=False)

        assert results["recovered"] == 1
        doc = store.get_execution("stuck")
        assert doc["status"] == "failed"
        assert doc["stop_reason"] == "error"
        assert doc["error"]["code"] == STALE_HEARTBEAT
        assert doc["completed_at"] is not None
        assert store.get_execution("healthy")["status"] == "running"
        assert store.get_execution("done")["status"] == "completed"

    def test_run_watchdog_wraps_results(self):
        results = run_watchdog(self._store(), dry_run=True)
        assert results["stuck_executions"]["found"] == 1
