"""In-process cancellation signal for a running execution."""

from __future__ import annotations

import threading
from typing import Optional


class CancellationToken:
    """
    Set once a stop is requested for an execution.

    The controller owns one token per live execution and signals it from
    request_cancel(). The processor checks it at every checkpoint and waits
    on it between batches so a stop interrupts the inter-batch delay.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to timeout seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


__all__ = ["CancellationToken"]
