"""
Polling worker for integration jobs.

Use this instead of (or alongside) the API's in-process dispatcher when
jobs should survive API restarts. Polls the integration_jobs table every
WORKER_POLL_INTERVAL seconds, claims pending jobs and runs up to
WORKER_POOL_SIZE of them concurrently. Jobs stuck in processing after a
crash are returned to the queue on startup.

Usage:
    python worker.py
"""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Set

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.database import engine, init_db
from app.services import JobCoordinator
from app.services.job_dispatcher import log_job_outcome

setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger("worker")


def submit_claimed(pool: ThreadPoolExecutor, coordinator: JobCoordinator, job_id: str) -> Future:
    future = pool.submit(coordinator.run_claimed, job_id)
    future.add_done_callback(lambda f: log_job_outcome(job_id, f))
    return future


def run(coordinator: JobCoordinator, pool_size: int, poll_interval: float) -> None:
    """Keep up to *pool_size* jobs running until interrupted."""
    in_flight: Set[Future] = set()
    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="worker") as pool:
        try:
            while True:
                if in_flight:
                    _, in_flight = wait(in_flight, timeout=0, return_when=FIRST_COMPLETED)

                if len(in_flight) >= pool_size:
                    wait(in_flight, return_when=FIRST_COMPLETED)
                    continue

                # Claim in the polling thread so idle detection is exact.
                job_id = coordinator.claim_next()
                if job_id is None:
                    time.sleep(poll_interval)
                    continue
                in_flight.add(submit_claimed(pool, coordinator, job_id))
        except KeyboardInterrupt:
            logger.info(f"Worker shutting down, waiting for {len(in_flight)} job(s)")


def main() -> None:
    logger.info(
        f"Worker started, polling every {settings.worker_poll_interval}s "
        f"with {settings.worker_pool_size} slot(s)"
    )
    init_db(engine)
    coordinator = JobCoordinator()
    coordinator.requeue_stale()
    run(coordinator, settings.worker_pool_size, settings.worker_poll_interval)


if __name__ == "__main__":
    main()
