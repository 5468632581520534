import threading
import time

import pytest

from compress_service.errors import ServiceBusy
from compress_service.workers import WorkerPool


@pytest.fixture
def pool():
    pool = WorkerPool(workers=2, max_queued=1)
    yield pool
    pool.shutdown(wait=True)


class TestWorkerPool:
    """Admission control around the thread pool."""

    def test_runs_jobs(self, pool):
        """1. Submitted work runs and returns its result."""
        assert pool.submit(pow, 2, 10).result(timeout=5) == 1024

    def test_rejects_beyond_capacity(self, pool):
        """2. workers + max_queued jobs are admitted, the next one is refused."""
        release = threading.Event()
        futures = [pool.submit(release.wait, 5) for _ in range(pool.capacity)]

        with pytest.raises(ServiceBusy):
            pool.submit(release.wait, 5)
        assert pool.in_flight == 3

        release.set()
        for future in futures:
            future.result(timeout=5)

    def test_slot_freed_on_completion(self, pool):
        """3. Finished jobs give their slot back, including failed ones."""
        futures = [pool.submit(int, "x") for _ in range(pool.capacity)]
        for future in futures:
            with pytest.raises(ValueError):
                future.result(timeout=5)

        # done callbacks run just after result() returns
        deadline = time.monotonic() + 5
        while pool.in_flight and time.monotonic() < deadline:
            time.sleep(0.01)
        assert pool.in_flight == 0
        assert pool.submit(int, "7").result(timeout=5) == 7

    def test_cancelled_queued_job_frees_slot(self):
        """4. Cancelling a job still waiting for a worker releases its slot."""
        pool = WorkerPool(workers=1, max_queued=1)
        release = threading.Event()
        try:
            running = pool.submit(release.wait, 5)
            queued = pool.submit(release.wait, 5)
            assert queued.cancel()
            assert pool.in_flight == 1

            release.set()
            running.result(timeout=5)
        finally:
            pool.shutdown(wait=True)
        assert pool.in_flight == 0
