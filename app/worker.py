"""
Background worker for processing scheduled jobs.

Usage:
    python -m app.worker

The worker polls for pending jobs and processes them.
For production, run this as a separate process (e.g., systemd service, Docker container).
"""

import asyncio
import logging

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.session import SessionLocal, engine
from app.jobs.registry import resolve_failure_hook, resolve_job_handler
from app.services import config_override_service, job_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Worker configuration
POLL_INTERVAL_SECONDS = settings.WORKER_POLL_INTERVAL
BATCH_SIZE = settings.WORKER_BATCH_SIZE


async def process_job(db, job) -> None:
    """Process a single job based on its type."""
    logger.info(f"Processing job {job.id} (type={job.job_type}, attempt={job.attempts})")
    handler = resolve_job_handler(job.job_type)
    await handler(db, job)


async def _run_failure_hook(db, job, exc: Exception) -> None:
    hook = resolve_failure_hook(job.job_type)
    if not hook:
        return
    try:
        await hook(db, job, exc)
    except Exception:
        db.rollback()
        logger.exception(
            "Failure hook for job %s raised",
            job.id,
            extra=build_log_context(route="worker", method="background", job_type=job.job_type),
        )


async def run_pending_jobs(db, limit: int = BATCH_SIZE) -> int:
    """Single pass over due jobs. Returns the number of jobs picked up."""
    jobs = job_service.get_pending_jobs(db, limit=limit)

    if jobs:
        logger.info(f"Found {len(jobs)} pending jobs")

    for job in jobs:
        try:
            job_service.mark_job_running(db, job)
            await process_job(db, job)
            job_service.mark_job_completed(db, job)
            logger.info(f"Job {job.id} completed successfully")

        except Exception as e:
            db.rollback()
            job_service.mark_job_failed(db, job, str(e))
            logger.error("Job %s failed: %s", job.id, type(e).__name__)

            if job_service.is_final_failure(job):
                await _run_failure_hook(db, job, e)

    return len(jobs)


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        f"Worker starting (poll interval: {POLL_INTERVAL_SECONDS}s, batch size: {BATCH_SIZE})"
    )

    while True:
        with SessionLocal() as db:
            try:
                await run_pending_jobs(db, limit=BATCH_SIZE)
            except Exception as e:
                logger.error(f"Error in worker loop: {e}")

        await asyncio.sleep(POLL_INTERVAL_SECONDS)


def main() -> None:
    """Entry point for the worker."""
    config_override_service.apply_all(engine)
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")
    except Exception:
        logger.exception(
            "Worker crashed",
            extra=build_log_context(route="worker", method="background"),
        )
        raise


if __name__ == "__main__":
    main()
