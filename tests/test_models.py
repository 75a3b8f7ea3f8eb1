"""Tests for execution data models."""

from datetime import datetime, timezone

import pytest

from model_enrichment.errors import InvalidConfig
from model_enrichment.jobs.models import (
    DataQuality,
    DetailLevel,
    EnrichmentConfig,
    Execution,
    ExecutionStatus,
    GenerationParams,
    LogEntry,
    LogLevel,
    StopReason,
    can_transition,
)


class TestExecutionStatus:

    def test_terminal_statuses(self):
        assert ExecutionStatus.COMPLETED.is_terminal
        assert ExecutionStatus.FAILED.is_terminal
        assert ExecutionStatus.CANCELLED.is_terminal
        assert not ExecutionStatus.RUNNING.is_terminal
        assert not ExecutionStatus.PENDING.is_terminal

    def test_transitions_are_forward_only(self):
        assert can_transition(ExecutionStatus.PENDING, ExecutionStatus.RUNNING)
        assert can_transition(ExecutionStatus.RUNNING, ExecutionStatus.CANCELLED)
        assert not can_transition(ExecutionStatus.RUNNING, ExecutionStatus.PENDING)
        assert not can_transition(ExecutionStatus.COMPLETED, ExecutionStatus.RUNNING)
        assert not can_transition(ExecutionStatus.CANCELLED, ExecutionStatus.COMPLETED)


class TestEnrichmentConfig:

    def test_defaults(self):
        config = EnrichmentConfig()
        assert config.batch_size == 5
        assert config.max_cost_per_batch == 1.0
        assert config.target_data_quality == DetailLevel.ENHANCED
        assert config.generation == GenerationParams(0.1, 8192, 0.95, 40)
        assert config.recency_threshold_days == 0

    @pytest.mark.parametrize("kwargs", [
        {"batch_size": 0},
        {"max_cost_per_batch": 0},
        {"max_days_since_update": -1},
        {"target_data_quality": "ultra"},
        {"allowed_data_qualities": ["great"]},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(InvalidConfig):
            EnrichmentConfig(**kwargs)

    def test_strings_coerced_to_enums(self):
        config = EnrichmentConfig(target_data_quality="basic", allowed_data_qualities=["unknown"])
        assert config.target_data_quality == DetailLevel.BASIC
        assert config.allowed_data_qualities == [DataQuality.UNKNOWN]

    def test_recency_threshold_requires_flag(self):
        assert EnrichmentConfig(max_days_since_update=7).recency_threshold_days == 0
        config = EnrichmentConfig(filter_by_recency=True, max_days_since_update=7)
        assert config.recency_threshold_days == 7

    def test_estimate_cost_by_detail_level(self):
        assert EnrichmentConfig(target_data_quality="basic").estimate_cost(10) == pytest.approx(0.2)
        assert EnrichmentConfig().estimate_cost(10) == pytest.approx(0.3)
        validated = EnrichmentConfig(include_validation=True)
        assert validated.estimate_cost(10) == pytest.approx(0.45)

    def test_dict_round_trip(self):
        config = EnrichmentConfig(
            batch_size=3,
            target_data_quality="premium",
            provider_id="openai",
            filter_by_data_quality=True,
            allowed_data_qualities=["estimated", "outdated"],
            generation=GenerationParams(temperature=0.5),
            test_mode=True,
        )
        assert EnrichmentConfig.from_dict(config.to_dict()) == config


class TestExecution:

    def _execution(self, **kwargs):
        return Execution(id="enrichment_1", config=EnrichmentConfig(), **kwargs)

    def test_new_id_format(self):
        execution_id = Execution.new_id()
        assert execution_id.startswith("enrichment_")
        assert len(execution_id) == len("enrichment_") + 16

    def test_counters(self):
        execution = self._execution(total_models=4)
        execution.record_success(0.03)
        execution.record_failure(0.01)
        assert execution.processed_models == 2
        assert execution.successful_models == 1
        assert execution.failed_models == 1
        assert execution.actual_cost == pytest.approx(0.04)
        assert execution.progress_percent == 50

    def test_progress_percent_without_models(self):
        assert self._execution().progress_percent == 0

    def test_log_buffer_capped_at_100(self):
        execution = self._execution()
        for i in range(105):
            execution.add_log(LogLevel.INFO, f"line {i}")
        assert len(execution.logs) == 100
        assert execution.logs[0].message == "line 5"
        assert execution.logs[-1].message == "line 104"

    def test_log_entry_ids_unique(self):
        execution = self._execution()
        first = execution.add_log(LogLevel.INFO, "a")
        second = execution.add_log(LogLevel.INFO, "b")
        assert first.id.startswith("log_")
        assert first.id != second.id

    def test_progress_fields_never_include_status(self):
        assert "status" not in self._execution().progress_fields()

    def test_dict_round_trip(self):
        started = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        execution = self._execution(
            status=ExecutionStatus.COMPLETED,
            model_ids=["a", "b"],
            total_models=2,
            stop_reason=StopReason.COST_LIMIT,
            started_at=started,
        )
        execution.add_log(LogLevel.WARNING, "careful", model_id="a")

        restored = Execution.from_dict(execution.to_dict())

        assert restored.status == ExecutionStatus.COMPLETED
        assert restored.stop_reason == StopReason.COST_LIMIT
        assert restored.model_ids == ["a", "b"]
        assert restored.started_at == started
        assert restored.logs[0].model_id == "a"
        assert restored.logs[0].level == LogLevel.WARNING

    def test_snapshot(self):
        started = datetime(2026, 1, 2, tzinfo=timezone.utc)
        execution = self._execution(started_at=started, total_models=2, processed_models=1)
        for i in range(5):
            execution.add_log(LogLevel.INFO, f"line {i}")

        snapshot = execution.snapshot(log_limit=2)

        assert snapshot["started_at"] == "2026-01-02T00:00:00+00:00"
        assert snapshot["completed_at"] is None
        assert [log["message"] for log in snapshot["logs"]] == ["line 3", "line 4"]
        assert snapshot["progress_percent"] == 50
        assert execution.snapshot(log_limit=0)["logs"] == []


class TestLogEntry:

    def test_model_id_omitted_when_absent(self):
        assert "model_id" not in LogEntry.create(LogLevel.INFO, "x").to_dict()
