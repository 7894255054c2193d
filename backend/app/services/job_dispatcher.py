"""In-process dispatch of accepted integration jobs.

``submit`` hands a job id to a thread pool and returns the Future. The API
drops the Future (fire-and-forget); tests call ``.result()`` on it. The job
row, not the Future, is the source of truth: ``recover`` runs at startup
and resubmits whatever a previous process left pending or stuck in
processing.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from ..models import JobStatus
from .job_coordinator import JobCoordinator

logger = logging.getLogger(__name__)


def log_job_outcome(job_id: str, future: Future) -> None:
    """Done-callback for job futures; an exception escaping the coordinator is logged, not lost."""
    error = future.exception()
    if error is not None:
        logger.error(
            f"Job {job_id} task raised: {error}",
            exc_info=(type(error), error, error.__traceback__),
            extra={"job_id": job_id},
        )
        return
    status: Optional[JobStatus] = future.result()
    logger.debug(f"Job {job_id} task finished with {status}")


class JobDispatcher:
    """Thread pool running ``JobCoordinator.process`` for submitted job ids."""

    def __init__(self, coordinator: JobCoordinator, max_workers: int = 4):
        self.coordinator = coordinator
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="integration-job"
        )
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, job_id: str) -> Future:
        """Schedule *job_id* and return a Future resolving to its terminal status."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Dispatcher is shut down")
            future = self._executor.submit(self.coordinator.process, job_id)
        future.add_done_callback(lambda f: log_job_outcome(job_id, f))
        return future

    def recover(self) -> List[Future]:
        """Requeue stale processing jobs, then submit every pending job.

        Claiming is conditional, so a job that another process picks up
        first is skipped rather than run twice.
        """
        self.coordinator.requeue_stale()
        job_ids = self.coordinator.pending_job_ids()
        if job_ids:
            logger.info(f"Resubmitting {len(job_ids)} pending job(s) left by a previous run")
        return [self.submit(job_id) for job_id in job_ids]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Job dispatcher stopped")
