# Path: vibetag/hubs/cancellation.py
# Purpose: Cooperative cancellation for long-running scans.
# Layer: vibetag/hubs.
# Details: Jobs poll the token between units of work and stop by raising OperationCancelled.

from __future__ import annotations

import threading

from vibetag.errors import OperationCancelled


class CancellationToken:
    """Flag shared between a job and whoever may want to stop it."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation was cancelled")
