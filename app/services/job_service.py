"""Job service - background job scheduling and retry bookkeeping."""

from datetime import timedelta

from sqlalchemy.orm import Session

from app.db.enums import JobStatus, JobType
from app.db.models import Job
from app.utils.dates import utcnow


DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 60


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    run_at=None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: int = DEFAULT_BACKOFF_SECONDS,
    commit: bool = True,
) -> Job:
    """
    Schedule a new background job.

    If run_at is None, the job runs immediately. With commit=False the job is
    only flushed so it lands in the caller's transaction.
    """
    job = Job(
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utcnow(),
        status=JobStatus.PENDING.value,
        max_attempts=max_attempts,
        backoff_seconds=backoff_seconds,
    )
    db.add(job)
    if commit:
        db.commit()
        db.refresh(job)
    else:
        db.flush()
    return job


def get_pending_jobs(db: Session, limit: int = 10) -> list[Job]:
    """
    Get pending jobs that are due to run.

    Returns jobs where status='pending' and run_at <= now, ordered by run_at.
    """
    now = utcnow()
    return (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= now,
        )
        .order_by(Job.run_at)
        .limit(limit)
        .all()
    )


def list_jobs(
    db: Session,
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = 50,
) -> list[Job]:
    """List jobs with optional filters."""
    query = db.query(Job)
    if status:
        query = query.filter(Job.status == status.value)
    if job_type:
        query = query.filter(Job.job_type == job_type.value)
    return query.order_by(Job.created_at.desc()).limit(limit).all()


def mark_job_running(db: Session, job: Job) -> Job:
    """Mark a job as running (increment attempts)."""
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def mark_job_completed(db: Session, job: Job) -> Job:
    """Mark a job as completed."""
    job.status = JobStatus.COMPLETED.value
    job.completed_at = utcnow()
    job.last_error = None
    db.commit()
    db.refresh(job)
    return job


def mark_job_failed(db: Session, job: Job, error: str) -> Job:
    """
    Mark a job as failed.

    If attempts < max_attempts, reset to pending and push run_at forward by
    the job's fixed backoff. Otherwise the job is final (see is_final_failure).
    """
    job.last_error = error
    if job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
        job.run_at = utcnow() + timedelta(seconds=job.backoff_seconds)
    else:
        job.status = JobStatus.FAILED.value
        job.completed_at = utcnow()
    db.commit()
    db.refresh(job)
    return job


def is_final_failure(job: Job) -> bool:
    return job.status == JobStatus.FAILED.value
