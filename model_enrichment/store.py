"""
Catalog Store - Persistence for catalog models and enrichment executions.

FirestoreStore is the production backend. InMemoryStore backs tests and
local dry runs with the same semantics.

Write rules:
- update_execution() merges fields, bumps `version` and refreshes `updated_at`
- transition_execution() is the only path that changes `status`; it applies
  its fields only if the stored status is in `from_statuses` and the new
  status is a forward move in the execution state machine
- update_model() replaces the given top-level fields of a catalog entry

Collections:
- models/{modelId}: Catalog entries (camelCase schema shared with the console)
- workflow_executions/{executionId}: Execution documents
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from google.api_core.exceptions import NotFound
from google.cloud import firestore

from model_enrichment.config import EXECUTIONS_COLLECTION, MODELS_COLLECTION
from model_enrichment.errors import ExecutionNotFound
from model_enrichment.jobs.models import can_transition
from model_enrichment.timestamps import to_datetime, utc_now

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _status_value(status: Any) -> str:
    return getattr(status, "value", status)


def _transition_allowed(current: Optional[str], fields: Dict[str, Any]) -> bool:
    """A status write must follow the execution state machine."""
    target = fields.get("status")
    if target is None:
        return True
    return can_transition(current, _status_value(target))


class CatalogStore(ABC):
    """Abstract persistence interface used by the workflow."""

    # Catalog models

    @abstractmethod
    def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a catalog entry (with its `id`), or None."""

    @abstractmethod
    def list_models(
        self,
        provider_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """List catalog entries, optionally restricted to one provider."""

    @abstractmethod
    def update_model(self, model_id: str, updates: Dict[str, Any]) -> None:
        """Replace top-level fields of a catalog entry."""

    # Executions

    @abstractmethod
    def create_execution(self, data: Dict[str, Any]) -> None:
        """Persist a new execution document keyed by data["id"]."""

    @abstractmethod
    def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        """Fetch an execution document, or None."""

    @abstractmethod
    def update_execution(self, execution_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an execution; raises ExecutionNotFound."""

    @abstractmethod
    def transition_execution(
        self,
        execution_id: str,
        from_statuses: Iterable[str],
        fields: Dict[str, Any],
    ) -> bool:
        """Atomically apply fields if the stored status is in from_statuses."""

    @abstractmethod
    def query_executions(
        self,
        statuses: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Executions ordered by started_at, newest first."""


# =============================================================================
# FIRESTORE
# =============================================================================

class FirestoreStore(CatalogStore):
    """Firestore-backed store."""

    def __init__(self, db: Optional[firestore.Client] = None):
        if db is None:
            from model_enrichment.firestore_client import get_db
            db = get_db()
        self.db = db

    def _models(self):
        return self.db.collection(MODELS_COLLECTION)

    def _executions(self):
        return self.db.collection(EXECUTIONS_COLLECTION)

    def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        doc = self._models().document(model_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        data["id"] = doc.id
        return data

    def list_models(
        self,
        provider_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._models()
        if provider_id:
            query = query.where("providerId", "==", provider_id)
        if limit:
            query = query.limit(limit)

        models = []
        for doc in query.stream():
            data = doc.to_dict()
            data["id"] = doc.id
            models.append(data)
        return models

    def update_model(self, model_id: str, updates: Dict[str, Any]) -> None:
        self._models().document(model_id).update(updates)

    def create_execution(self, data: Dict[str, Any]) -> None:
        doc = dict(data)
        doc["version"] = 1
        doc["updated_at"] = utc_now()
        self._executions().document(data["id"]).set(doc)
        logger.info("Created execution: %s", data["id"])

    def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        doc = self._executions().document(execution_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        data["id"] = doc.id
        return data

    def update_execution(self, execution_id: str, fields: Dict[str, Any]) -> None:
        updates = dict(fields)
        updates.pop("status", None)
        updates["updated_at"] = utc_now()
        updates["version"] = firestore.Increment(1)
        try:
            self._executions().document(execution_id).update(updates)
        except NotFound as e:
            raise ExecutionNotFound(execution_id) from e

    def transition_execution(
        self,
        execution_id: str,
        from_statuses: Iterable[str],
        fields: Dict[str, Any],
    ) -> bool:
        allowed = {_status_value(s) for s in from_statuses}
        transaction = self.db.transaction()
        doc_ref = self._executions().document(execution_id)

        @firestore.transactional
        def transition_transaction(transaction, doc_ref):
            doc = doc_ref.get(transaction=transaction)
            if not doc.exists:
                raise ExecutionNotFound(execution_id)

            data = doc.to_dict()
            if data.get("status") not in allowed:
                return False
            if not _transition_allowed(data.get("status"), fields):
                return False

            updates = dict(fields)
            updates["updated_at"] = utc_now()
            updates["version"] = data.get("version", 0) + 1
            transaction.update(doc_ref, updates)
            return True

        return transition_transaction(transaction, doc_ref)

    def query_executions(
        self,
        statuses: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._executions()
        statuses = [_status_value(s) for s in statuses or []]
        if len(statuses) == 1:
            query = query.where("status", "==", statuses[0])
        elif statuses:
            query = query.where("status", "in", statuses)
        query = query.order_by("started_at", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)

        executions = []
        for doc in query.stream():
            data = doc.to_dict()
            data["id"] = doc.id
            executions.append(data)
        return executions


# =============================================================================
# IN-MEMORY
# =============================================================================

class InMemoryStore(CatalogStore):
    """Thread-safe in-memory store with the same write rules as Firestore."""

    def __init__(self, models: Optional[Iterable[Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._models: Dict[str, Dict[str, Any]] = {}
        self._executions: Dict[str, Dict[str, Any]] = {}
        for model in models or []:
            self.put_model(model)

    def put_model(self, model: Dict[str, Any]) -> None:
        with self._lock:
            self._models[model["id"]] = copy.deepcopy(model)

    def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            model = self._models.get(model_id)
            return copy.deepcopy(model) if model is not None else None

    def list_models(
        self,
        provider_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            models = [
                copy.deepcopy(m) for m in self._models.values()
                if not provider_id or m.get("providerId") == provider_id
            ]
        return models[:limit] if limit else models

    def update_model(self, model_id: str, updates: Dict[str, Any]) -> None:
        with self._lock:
            if model_id not in self._models:
                raise KeyError(f"Model not found: {model_id}")
            self._models[model_id].update(copy.deepcopy(updates))

    def create_execution(self, data: Dict[str, Any]) -> None:
        with self._lock:
            doc = copy.deepcopy(data)
            doc["version"] = 1
            doc["updated_at"] = utc_now()
            self._executions[data["id"]] = doc

    def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._executions.get(execution_id)
            return copy.deepcopy(doc) if doc is not None else None

    def update_execution(self, execution_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            doc = self._executions.get(execution_id)
            if doc is None:
                raise ExecutionNotFound(execution_id)
            updates = copy.deepcopy(fields)
            updates.pop("status", None)
            doc.update(updates)
            doc["updated_at"] = utc_now()
            doc["version"] = doc.get("version", 0) + 1

    def transition_execution(
        self,
        execution_id: str,
        from_statuses: Iterable[str],
        fields: Dict[str, Any],
    ) -> bool:
        allowed = {_status_value(s) for s in from_statuses}
        with self._lock:
            doc = self._executions.get(execution_id)
            if doc is None:
                raise ExecutionNotFound(execution_id)
            if doc.get("status") not in allowed:
                return False
            if not _transition_allowed(doc.get("status"), fields):
                return False
            doc.update(copy.deepcopy(fields))
            doc["updated_at"] = utc_now()
            doc["version"] = doc.get("version", 0) + 1
            return True

    def query_executions(
        self,
        statuses: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        wanted = {_status_value(s) for s in statuses or []}
        with self._lock:
            docs = [
                copy.deepcopy(d) for d in self._executions.values()
                if not wanted or d.get("status") in wanted
            ]
        docs.sort(key=lambda d: to_datetime(d.get("started_at")) or _EPOCH, reverse=True)
        return docs[:limit] if limit else docs


__all__ = ["CatalogStore", "FirestoreStore", "InMemoryStore"]
