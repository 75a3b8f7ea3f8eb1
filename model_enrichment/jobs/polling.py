"""Status polling for callers that want push-style progress updates."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from model_enrichment.jobs.models import TERMINAL_STATUSES

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECS = 2.0

StatusFetcher = Callable[[str], Optional[Dict[str, Any]]]
UpdateCallback = Callable[[Dict[str, Any]], None]


class PollHandle:
    """
    Background poller for one execution.

    Calls on_update with each fresh snapshot until the execution reaches a
    terminal status, disappears, or cancel() is called. The poller never
    outlives its handle: cancel() stops it at the next interval.
    """

    def __init__(
        self,
        execution_id: str,
        fetch_status: StatusFetcher,
        on_update: UpdateCallback,
        interval_secs: float = DEFAULT_POLL_INTERVAL_SECS,
    ):
        self.execution_id = execution_id
        self.fetch_status = fetch_status
        self.on_update = on_update
        self.interval_secs = interval_secs
        self.last_snapshot: Optional[Dict[str, Any]] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "PollHandle":
        """Start the polling thread."""
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Stop polling (does not affect the execution)."""
        self._stop.set()

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until polling ends; True if it ended within timeout."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                snapshot = self.fetch_status(self.execution_id)
            except Exception as e:
                logger.warning("Status poll failed for %s: %s", self.execution_id, e)
                snapshot = None
            else:
                if snapshot is None:
                    logger.warning("Execution %s not found, polling stopped", self.execution_id)
                    return
                self.last_snapshot = snapshot
                self.on_update(snapshot)
                if snapshot.get("status") in {s.value for s in TERMINAL_STATUSES}:
                    return

            self._stop.wait(self.interval_secs)


def watch_execution(
    execution_id: str,
    fetch_status: StatusFetcher,
    on_update: UpdateCallback,
    interval_secs: float = DEFAULT_POLL_INTERVAL_SECS,
) -> PollHandle:
    """Start polling an execution; returns the running handle."""
    return PollHandle(execution_id, fetch_status, on_update, interval_secs).start()


__all__ = ["PollHandle", "watch_execution", "DEFAULT_POLL_INTERVAL_SECS"]
