"""Tests for the workflow step job, its retry policy and the worker pass."""

from datetime import timedelta

import pytest

from app.db.enums import JobStatus, JobType, WorkflowExecutionStatus
from app.db.models import Job
from app.jobs.handlers import workflows as workflow_jobs
from app.jobs.registry import resolve_failure_hook, resolve_job_handler
from app.services import workflow_engine
from app.utils.dates import as_utc, utcnow
from app.worker import run_pending_jobs

NODES = [
    {"id": "start", "type": "start", "data": {}},
    {"id": "wait", "type": "delay", "data": {"label": "Pause", "delay_seconds": 120}},
    {"id": "end", "type": "end", "data": {}},
]
EDGES = [
    {"source": "start", "target": "wait"},
    {"source": "wait", "target": "end"},
]


def _make_due(db, job: Job) -> None:
    job.run_at = utcnow() - timedelta(seconds=1)
    db.commit()


def _step_jobs(db) -> list[Job]:
    return db.query(Job).filter(Job.job_type == JobType.WORKFLOW_STEP.value).all()


def test_registry_resolves_handlers():
    assert resolve_job_handler(JobType.WORKFLOW_STEP.value) is workflow_jobs.process_workflow_step
    assert callable(resolve_job_handler(JobType.SEND_EMAIL.value))
    assert resolve_failure_hook(JobType.WORKFLOW_STEP.value) is workflow_jobs.on_workflow_step_failed
    assert resolve_failure_hook(JobType.SEND_EMAIL.value) is None


def test_registry_rejects_unknown_job_type():
    with pytest.raises(ValueError):
        resolve_job_handler("nope")


def test_dispatch_declares_retry_policy(db, make_workflow, make_execution, test_form):
    execution = make_execution(make_workflow(test_form, NODES, EDGES), current_node_id="wait")

    job = workflow_jobs.dispatch_workflow_step(db, execution, delay_seconds=30)
    db.commit()

    assert job.payload == {"execution_id": str(execution.id)}
    assert job.max_attempts == workflow_jobs.WORKFLOW_STEP_MAX_ATTEMPTS == 3
    assert job.backoff_seconds == workflow_jobs.WORKFLOW_STEP_BACKOFF_SECONDS == 60
    assert as_utc(job.run_at) > utcnow() + timedelta(seconds=25)


@pytest.mark.asyncio
async def test_worker_runs_step_and_schedules_next(db, make_workflow, make_execution, test_form):
    execution = make_execution(make_workflow(test_form, NODES, EDGES), current_node_id="wait")
    workflow_jobs.dispatch_workflow_step(db, execution)
    db.commit()

    processed = await run_pending_jobs(db)

    assert processed == 1
    db.refresh(execution)
    assert execution.current_node_id == "end"
    assert execution.logs[-1]["message"] == "Waiting: 120 seconds (scheduled)"

    jobs = _step_jobs(db)
    assert sorted(job.status for job in jobs) == [JobStatus.COMPLETED.value, JobStatus.PENDING.value]
    next_job = next(job for job in jobs if job.status == JobStatus.PENDING.value)
    assert as_utc(next_job.run_at) > utcnow() + timedelta(seconds=100)


@pytest.mark.asyncio
async def test_job_failing_all_attempts_fails_execution_once(
    db, make_workflow, make_execution, test_form, monkeypatch
):
    execution = make_execution(make_workflow(test_form, NODES, EDGES), current_node_id="wait")
    job = workflow_jobs.dispatch_workflow_step(db, execution)
    db.commit()
    logs_before = len(execution.logs)

    def _explode(db, execution):
        raise RuntimeError("engine unavailable")

    monkeypatch.setattr(workflow_engine.engine, "execute_step", _explode)

    for attempt in range(1, 4):
        _make_due(db, job)
        await run_pending_jobs(db)
        db.refresh(job)
        db.refresh(execution)
        assert job.attempts == attempt
        if attempt < 3:
            # Retries leave the execution untouched
            assert job.status == JobStatus.PENDING.value
            assert execution.status == WorkflowExecutionStatus.RUNNING.value
            assert len(execution.logs) == logs_before

    assert job.status == JobStatus.FAILED.value
    assert job.last_error == "engine unavailable"
    assert execution.status == WorkflowExecutionStatus.FAILED.value
    assert execution.completed_at is not None
    assert len(execution.logs) == logs_before + 1
    assert execution.logs[-1]["message"] == "Job failed: engine unavailable"


@pytest.mark.asyncio
async def test_failure_hook_ignores_finished_execution(db, make_workflow, make_execution, test_form):
    execution = make_execution(
        make_workflow(test_form, NODES, EDGES),
        status=WorkflowExecutionStatus.STOPPED,
    )
    job = workflow_jobs.dispatch_workflow_step(db, execution)
    db.commit()

    await workflow_jobs.on_workflow_step_failed(db, job, RuntimeError("late"))

    db.refresh(execution)
    assert execution.status == WorkflowExecutionStatus.STOPPED.value
    assert execution.logs == []


@pytest.mark.asyncio
async def test_process_workflow_step_requires_execution(db):
    job = Job(job_type=JobType.WORKFLOW_STEP.value, payload={"execution_id": "00000000-0000-0000-0000-000000000000"})
    db.add(job)
    db.commit()

    with pytest.raises(Exception, match="not found"):
        await workflow_jobs.process_workflow_step(db, job)


@pytest.mark.asyncio
async def test_send_email_job_delivers_rendered_message(db, mail_outbox):
    from app.jobs.handlers.email import queue_email
    from app.services.email_sender import MailMessage

    queue_email(db, "someone@example.com", MailMessage(subject="Ahoj", html="<p>Ahoj</p>", text="Ahoj"))

    await run_pending_jobs(db)

    assert mail_outbox.sent == [
        ("someone@example.com", MailMessage(subject="Ahoj", html="<p>Ahoj</p>", text="Ahoj"))
    ]
