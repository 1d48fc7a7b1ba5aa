"""
Slice Preview Scheduler

Debounced, cancellable re-slicing for interactive plane changes.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional
import logging
import threading

from config import DEFAULT_VOLUME
from core.base import Raster
from core.cancellation import CancellationToken
from core.errors import ExtractionCancelled


class SlicePreviewScheduler:
    """
    Runs at most one extraction at a time; the newest request wins.

    Every request cancels the token of the previous one, waits for the
    debounce delay on its own token and only then extracts. A request
    superseded during the delay or mid-extraction resolves to None and
    never reaches the result callback.
    """

    def __init__(
        self,
        extract_fn: Callable[..., Raster],
        on_result: Optional[Callable[[Raster], None]] = None,
        debounce_ms: int = DEFAULT_VOLUME.preview_debounce_ms
    ):
        """
        Args:
            extract_fn: Called as extract_fn(x, z, angle_a, angle_b, cancel_token=...)
            on_result: Optional callback for completed previews
            debounce_ms: Delay before a request starts extracting
        """
        self._extract_fn = extract_fn
        self._on_result = on_result
        self._delay = debounce_ms / 1000.0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="slice-preview")
        self._lock = threading.RLock()
        self._token: Optional[CancellationToken] = None

    def request(
        self,
        x_position: float,
        z_position: float,
        angle_a: float = 0.0,
        angle_b: float = 0.0
    ) -> Future:
        """
        Schedule a preview, superseding any pending or running one.

        Returns:
            Future resolving to the Raster, or None if superseded
        """
        token = CancellationToken()
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = token
        return self._executor.submit(
            self._run, token, x_position, z_position, angle_a, angle_b
        )

    def cancel(self) -> None:
        """Cancel the pending or running request, if any."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None

    def shutdown(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=True)

    def _run(
        self,
        token: CancellationToken,
        x_position: float,
        z_position: float,
        angle_a: float,
        angle_b: float
    ) -> Optional[Raster]:
        if token.wait(self._delay):
            return None

        try:
            raster = self._extract_fn(
                x_position, z_position, angle_a, angle_b, cancel_token=token
            )
        except ExtractionCancelled:
            return None
        except Exception as e:
            logging.error(f"Slice preview failed: {e}")
            raise

        # Shares the lock with request(); only the newest token may deliver
        with self._lock:
            if token.cancelled or token is not self._token:
                return None
            if self._on_result is not None:
                self._on_result(raster)
        return raster
