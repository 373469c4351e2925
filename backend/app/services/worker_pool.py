"""Bounded worker pool for bulk sub-job execution.

One pool per process, created at startup and shared by all batches. At
most ``max_workers`` cells execute at once; the rest queue in submission
order. Task order carries no meaning: sub-jobs may finish in any order.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CellWorkerPool:
    """ThreadPoolExecutor wrapper that never lets a task's error escape silently.

    Args:
        max_workers: Maximum number of cells executing concurrently.
    """

    def __init__(self, max_workers: int = 8) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="cell-worker",
        )
        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def pending(self) -> int:
        """Tasks submitted and not yet finished (queued or running)."""
        with self._lock:
            return self._pending

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("CellWorkerPool is shut down")
            self._pending += 1
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._pending -= 1
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Bulk worker task raised %s: %s", type(exc).__name__, exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def shutdown(self, wait: bool = True, cancel_queued: bool = False) -> None:
        """Stop accepting work.

        With ``cancel_queued`` cells that have not started are dropped; their
        sub-jobs stay pending and are picked up by the next resume.
        """
        with self._lock:
            self._closed = True
        logger.info(
            "Shutting down cell worker pool (pending=%d, wait=%s, cancel_queued=%s)",
            self.pending, wait, cancel_queued,
        )
        self._executor.shutdown(wait=wait, cancel_futures=cancel_queued)
