from datetime import timedelta

from app.db.enums import JobStatus, JobType
from app.services import job_service
from app.utils.dates import as_utc, utcnow


def test_get_pending_jobs_only_returns_due_jobs(db):
    due = job_service.schedule_job(db, JobType.SEND_EMAIL, {"to": "a@example.com"})
    job_service.schedule_job(
        db, JobType.SEND_EMAIL, {"to": "b@example.com"}, run_at=utcnow() + timedelta(hours=1)
    )

    pending = job_service.get_pending_jobs(db, limit=10)

    assert [job.id for job in pending] == [due.id]


def test_mark_job_running_increments_attempts(db):
    job = job_service.schedule_job(db, JobType.SEND_EMAIL, {})

    job_service.mark_job_running(db, job)

    assert job.status == JobStatus.RUNNING.value
    assert job.attempts == 1


def test_mark_job_failed_reschedules_with_fixed_backoff(db):
    job = job_service.schedule_job(db, JobType.WORKFLOW_STEP, {}, max_attempts=3, backoff_seconds=60)

    for attempt in (1, 2):
        job_service.mark_job_running(db, job)
        before = utcnow()
        job_service.mark_job_failed(db, job, f"boom {attempt}")

        assert job.status == JobStatus.PENDING.value
        assert not job_service.is_final_failure(job)
        delay = as_utc(job.run_at) - before
        # Same delay on every attempt
        assert timedelta(seconds=59) <= delay <= timedelta(seconds=61)


def test_mark_job_failed_is_final_after_max_attempts(db):
    job = job_service.schedule_job(db, JobType.WORKFLOW_STEP, {}, max_attempts=2)

    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, "first")
    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, "second")

    assert job.status == JobStatus.FAILED.value
    assert job.last_error == "second"
    assert job.completed_at is not None
    assert job_service.is_final_failure(job)


def test_mark_job_completed_clears_error(db):
    job = job_service.schedule_job(db, JobType.SEND_EMAIL, {})
    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, "transient")
    job_service.mark_job_running(db, job)

    job_service.mark_job_completed(db, job)

    assert job.status == JobStatus.COMPLETED.value
    assert job.last_error is None


def test_schedule_job_without_commit_joins_caller_transaction(db):
    job_service.schedule_job(db, JobType.SEND_EMAIL, {}, commit=False)
    db.rollback()

    assert job_service.list_jobs(db) == []
