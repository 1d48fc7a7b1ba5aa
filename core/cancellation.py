"""
Cancellation Token

Cooperative cancellation signal shared between a scheduler and a worker.
"""

import threading

from .errors import ExtractionCancelled


class CancellationToken:
    """Thread-safe one-way cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """
        Sleep up to `timeout` seconds, waking early on cancellation.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled("Extraction superseded by a newer request")
