"""
Bounded thread pool for the CPU-bound codec work.

The event loop must never run decode/encode itself, and a plain
ThreadPoolExecutor queues without limit. WorkerPool admits at most
workers + max_queued jobs at a time and refuses the rest straight away
with ServiceBusy. A slot is given back only when the job really finishes,
so a request that timed out keeps holding its slot while its thread is
still busy.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from compress_service.errors import ServiceBusy

logger = logging.getLogger(__name__)


class WorkerPool:
    def __init__(self, workers: int, max_queued: int):
        self.workers = workers
        self.capacity = workers + max_queued
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="compress")
        self._slots = threading.BoundedSemaphore(self.capacity)
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Jobs admitted and not yet finished (running or waiting)."""
        with self._lock:
            return self._in_flight

    def submit(self, fn, *args) -> Future:
        """
        Schedule fn(*args) on a worker thread.

        Raises:
            ServiceBusy: If capacity jobs are already admitted
        """
        if not self._slots.acquire(blocking=False):
            logger.warning("Worker pool saturated (%d jobs in flight), rejecting request", self.capacity)
            raise ServiceBusy(f"All {self.capacity} compression slots are in use")

        with self._lock:
            self._in_flight += 1
        try:
            future = self._executor.submit(fn, *args)
        except BaseException:
            self._release()
            raise
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        self._release()

    def _release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._slots.release()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
