"""Request concurrency for classification.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> ImageClassifier.classify

Every classification runs start to finish on one worker thread. Requests
beyond the semaphore limit wait up to ``SLOT_TIMEOUT_SECONDS`` for a slot,
then fail with ``TimeoutError`` (503 at the HTTP layer). A slot is held until
its worker thread returns, so cancelling a request never oversubscribes the pool.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from classifyx.ml.image_classifier import ClassificationResult, ImageClassifier

logger = logging.getLogger(__name__)

SLOT_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Bounds the number of classifications running at once."""

    def __init__(self, max_concurrent: int, slot_timeout: float = SLOT_TIMEOUT_SECONDS) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="classify",
        )
        self._slot_timeout = slot_timeout
        self._active_count = 0
        self._queue_depth = 0
        self._counter_lock = threading.Lock()

    async def classify(self, classifier: ImageClassifier, image_bytes: bytes) -> ClassificationResult:
        """Run ``classifier.classify`` on a worker thread once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._slot_timeout)
        except TimeoutError:
            logger.warning("No inference slot free after %.1fs", self._slot_timeout)
            raise
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        loop = asyncio.get_running_loop()
        try:
            future = self._executor.submit(classifier.classify, image_bytes)
        except BaseException:
            self._release()
            raise
        # The slot stays taken until the worker returns, even if the awaiting request is cancelled.
        # Registered before wrap_future so the slot is free by the time the caller resumes.
        future.add_done_callback(lambda _: self._release_soon(loop))
        return await asyncio.wrap_future(future, loop=loop)

    def _release(self) -> None:
        self._semaphore.release()
        with self._counter_lock:
            self._active_count -= 1

    def _release_soon(self, loop: asyncio.AbstractEventLoop) -> None:
        try:
            loop.call_soon_threadsafe(self._release)
        except RuntimeError:
            logger.debug("Event loop closed before worker finished; slot not released")

    @property
    def active_count(self) -> int:
        """Number of classifications currently running."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the worker threads."""
        self._executor.shutdown(wait=True)
