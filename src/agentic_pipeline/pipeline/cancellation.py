"""Cooperative cancellation signal passed into every step call."""

import threading


class CancellationToken:
    """Set once, observed at step boundaries. Steps already running are never interrupted."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
