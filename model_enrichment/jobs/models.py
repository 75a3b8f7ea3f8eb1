"""
Execution Models - Data models for enrichment workflow executions.

Firestore Collections:
- workflow_executions/{executionId}: Execution documents (config, counters, logs)
- models/{modelId}: Catalog entries being enriched (owned by the admin console)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from model_enrichment.config import (
    COST_PER_MODEL_USD,
    DEFAULT_RESEARCH_MODEL,
    MAX_LOG_ENTRIES,
    VALIDATION_COST_MULTIPLIER,
    WORKFLOW_ID,
)
from model_enrichment.errors import InvalidConfig
from model_enrichment.timestamps import to_datetime, utc_now


class ExecutionStatus(str, Enum):
    """Execution status states."""
    PENDING = "pending"        # Created, processor not started
    RUNNING = "running"        # Processor draining candidates
    COMPLETED = "completed"    # Normal end or cost-limit stop
    FAILED = "failed"          # Unexpected error or recovered by watchdog
    CANCELLED = "cancelled"    # Stopped by an operator

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    ExecutionStatus.COMPLETED,
    ExecutionStatus.FAILED,
    ExecutionStatus.CANCELLED,
})

# Forward-only state machine
ALLOWED_TRANSITIONS = {
    ExecutionStatus.PENDING: frozenset({
        ExecutionStatus.RUNNING,
        ExecutionStatus.FAILED,
        ExecutionStatus.CANCELLED,
    }),
    ExecutionStatus.RUNNING: TERMINAL_STATUSES,
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
    ExecutionStatus.CANCELLED: frozenset(),
}


def can_transition(current: ExecutionStatus, target: ExecutionStatus) -> bool:
    """Check whether the state machine allows current -> target."""
    return target in ALLOWED_TRANSITIONS[ExecutionStatus(current)]


class StopReason(str, Enum):
    """Why the processor stopped draining candidates."""
    FINISHED = "finished"
    NO_CANDIDATES = "no_candidates"
    COST_LIMIT = "cost_limit"
    CANCELLED = "cancelled"
    EXTERNALLY_TERMINATED = "externally_terminated"
    ERROR = "error"


class DataQuality(str, Enum):
    """Catalog entry data-quality classification."""
    UNKNOWN = "unknown"
    ESTIMATED = "estimated"
    OUTDATED = "outdated"
    VERIFIED = "verified"


class DetailLevel(str, Enum):
    """Target detail level for research calls."""
    BASIC = "basic"
    ENHANCED = "enhanced"
    PREMIUM = "premium"


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass
class GenerationParams:
    """Sampling parameters passed through to the research model."""
    temperature: float = 0.1
    max_tokens: int = 8192
    top_p: float = 0.95
    top_k: int = 40

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "top_k": self.top_k,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GenerationParams":
        data = data or {}
        defaults = cls()
        return cls(
            temperature=data.get("temperature", defaults.temperature),
            max_tokens=data.get("max_tokens", defaults.max_tokens),
            top_p=data.get("top_p", defaults.top_p),
            top_k=data.get("top_k", defaults.top_k),
        )


@dataclass
class EnrichmentConfig:
    """Configuration for one enrichment execution."""
    batch_size: int = 5
    max_cost_per_batch: float = 1.0  # USD ceiling for the whole run
    target_data_quality: DetailLevel = DetailLevel.ENHANCED
    include_validation: bool = False
    ai_model: str = DEFAULT_RESEARCH_MODEL
    generation: GenerationParams = field(default_factory=GenerationParams)
    test_mode: bool = False  # Research only, never write to the catalog

    # Filters
    provider_id: Optional[str] = None
    filter_by_recency: bool = False
    max_days_since_update: int = 0  # 0 = no recency filtering
    filter_by_data_quality: bool = False
    allowed_data_qualities: List[DataQuality] = field(default_factory=list)

    def __post_init__(self) -> None:
        try:
            self.target_data_quality = DetailLevel(self.target_data_quality)
            self.allowed_data_qualities = [DataQuality(q) for q in self.allowed_data_qualities]
        except ValueError as e:
            raise InvalidConfig(str(e)) from e
        if self.batch_size < 1:
            raise InvalidConfig(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_cost_per_batch <= 0:
            raise InvalidConfig(
                f"max_cost_per_batch must be > 0, got {self.max_cost_per_batch}"
            )
        if self.max_days_since_update < 0:
            raise InvalidConfig("max_days_since_update must be >= 0")

    @property
    def recency_threshold_days(self) -> int:
        """Active recency threshold, 0 when the filter is off."""
        if not self.filter_by_recency:
            return 0
        return self.max_days_since_update

    def estimate_cost(self, model_count: int) -> float:
        """Rough estimate: per-model cost by detail level, +50% with validation."""
        per_model = COST_PER_MODEL_USD[self.target_data_quality.value]
        multiplier = VALIDATION_COST_MULTIPLIER if self.include_validation else 1.0
        return model_count * per_model * multiplier

    def to_dict(self) -> Dict[str, Any]:
        """Convert to Firestore-compatible dict."""
        return {
            "batch_size": self.batch_size,
            "max_cost_per_batch": self.max_cost_per_batch,
            "target_data_quality": self.target_data_quality.value,
            "include_validation": self.include_validation,
            "ai_model": self.ai_model,
            "generation": self.generation.to_dict(),
            "test_mode": self.test_mode,
            "provider_id": self.provider_id,
            "filter_by_recency": self.filter_by_recency,
            "max_days_since_update": self.max_days_since_update,
            "filter_by_data_quality": self.filter_by_data_quality,
            "allowed_data_qualities": [q.value for q in self.allowed_data_qualities],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrichmentConfig":
        """Create from Firestore dict."""
        return cls(
            batch_size=data.get("batch_size", 5),
            max_cost_per_batch=data.get("max_cost_per_batch", 1.0),
            target_data_quality=data.get("target_data_quality", DetailLevel.ENHANCED.value),
            include_validation=data.get("include_validation", False),
            ai_model=data.get("ai_model") or DEFAULT_RESEARCH_MODEL,
            generation=GenerationParams.from_dict(data.get("generation")),
            test_mode=data.get("test_mode", False),
            provider_id=data.get("provider_id"),
            filter_by_recency=data.get("filter_by_recency", False),
            max_days_since_update=data.get("max_days_since_update", 0),
            filter_by_data_quality=data.get("filter_by_data_quality", False),
            allowed_data_qualities=data.get("allowed_data_qualities", []),
        )


@dataclass
class LogEntry:
    """Single execution log line."""
    id: str
    timestamp: str
    level: LogLevel
    message: str
    model_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        level: LogLevel,
        message: str,
        model_id: Optional[str] = None,
    ) -> "LogEntry":
        return cls(
            id=f"log_{uuid.uuid4().hex[:12]}",
            timestamp=utc_now().isoformat(),
            level=LogLevel(level),
            message=message,
            model_id=model_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
        }
        if self.model_id:
            data["model_id"] = self.model_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            id=data.get("id", ""),
            timestamp=data.get("timestamp", ""),
            level=LogLevel(data.get("level", LogLevel.INFO.value)),
            message=data.get("message", ""),
            model_id=data.get("model_id"),
        )


@dataclass
class Execution:
    """Enrichment execution document model."""
    id: str
    config: EnrichmentConfig
    workflow_id: str = WORKFLOW_ID
    status: ExecutionStatus = ExecutionStatus.PENDING
    model_ids: List[str] = field(default_factory=list)

    # Progress
    total_models: int = 0
    processed_models: int = 0
    successful_models: int = 0
    failed_models: int = 0

    # Cost (USD)
    estimated_cost: float = 0.0
    actual_cost: float = 0.0

    logs: List[LogEntry] = field(default_factory=list)

    # Outcome
    stop_reason: Optional[StopReason] = None
    error: Optional[Dict[str, Any]] = None

    # Timestamps
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Write counter maintained by the store
    version: int = 0

    @staticmethod
    def new_id() -> str:
        return f"enrichment_{uuid.uuid4().hex[:16]}"

    @property
    def is_terminal(self) -> bool:
        return ExecutionStatus(self.status).is_terminal

    @property
    def progress_percent(self) -> int:
        if self.total_models <= 0:
            return 0
        return round(self.processed_models / self.total_models * 100)

    def add_log(
        self,
        level: LogLevel,
        message: str,
        model_id: Optional[str] = None,
    ) -> LogEntry:
        """Append a log entry, evicting the oldest beyond MAX_LOG_ENTRIES."""
        entry = LogEntry.create(level, message, model_id)
        self.logs.append(entry)
        if len(self.logs) > MAX_LOG_ENTRIES:
            del self.logs[: len(self.logs) - MAX_LOG_ENTRIES]
        return entry

    def record_success(self, cost: float = 0.0) -> None:
        self.successful_models += 1
        self.processed_models += 1
        self.actual_cost += cost

    def record_failure(self, cost: float = 0.0) -> None:
        self.failed_models += 1
        self.processed_models += 1
        self.actual_cost += cost

    def progress_fields(self) -> Dict[str, Any]:
        """Fields the processor owns while the run is live (never status)."""
        return {
            "processed_models": self.processed_models,
            "successful_models": self.successful_models,
            "failed_models": self.failed_models,
            "actual_cost": self.actual_cost,
            "logs": [log.to_dict() for log in self.logs],
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to Firestore-compatible dict."""
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "status": ExecutionStatus(self.status).value,
            "model_ids": list(self.model_ids),
            "total_models": self.total_models,
            "processed_models": self.processed_models,
            "successful_models": self.successful_models,
            "failed_models": self.failed_models,
            "estimated_cost": self.estimated_cost,
            "actual_cost": self.actual_cost,
            "logs": [log.to_dict() for log in self.logs],
            "config": self.config.to_dict(),
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Execution":
        """Create from Firestore dict."""
        return cls(
            id=data.get("id", ""),
            workflow_id=data.get("workflow_id", WORKFLOW_ID),
            status=ExecutionStatus(data.get("status", ExecutionStatus.PENDING.value)),
            model_ids=list(data.get("model_ids") or []),
            total_models=data.get("total_models", 0),
            processed_models=data.get("processed_models", 0),
            successful_models=data.get("successful_models", 0),
            failed_models=data.get("failed_models", 0),
            estimated_cost=data.get("estimated_cost", 0.0),
            actual_cost=data.get("actual_cost", 0.0),
            logs=[LogEntry.from_dict(log) for log in data.get("logs") or []],
            config=EnrichmentConfig.from_dict(data.get("config") or {}),
            stop_reason=StopReason(data["stop_reason"]) if data.get("stop_reason") else None,
            error=data.get("error"),
            started_at=to_datetime(data.get("started_at")),
            completed_at=to_datetime(data.get("completed_at")),
            updated_at=to_datetime(data.get("updated_at")),
            version=data.get("version", 0),
        )

    def snapshot(self, log_limit: Optional[int] = None) -> Dict[str, Any]:
        """JSON-friendly status view, optionally trimmed to the latest N logs."""
        data = self.to_dict()
        for key in ("started_at", "completed_at", "updated_at"):
            data[key] = data[key].isoformat() if data[key] else None
        if log_limit is not None:
            data["logs"] = data["logs"][-log_limit:] if log_limit > 0 else []
        data["progress_percent"] = self.progress_percent
        return data


__all__ = [
    "ExecutionStatus",
    "TERMINAL_STATUSES",
    "can_transition",
    "StopReason",
    "DataQuality",
    "DetailLevel",
    "LogLevel",
    "GenerationParams",
    "EnrichmentConfig",
    "LogEntry",
    "Execution",
]
