"""Workflow-related job handlers."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from app.db.enums import JobType
from app.db.models import WorkflowExecution
from app.services import job_service
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

WORKFLOW_STEP_MAX_ATTEMPTS = 3
WORKFLOW_STEP_BACKOFF_SECONDS = 60


def dispatch_workflow_step(db, execution: WorkflowExecution, delay_seconds: int = 0):
    """Queue the execution's current node (in the caller's transaction)."""
    run_at = utcnow() + timedelta(seconds=delay_seconds) if delay_seconds > 0 else None
    return job_service.schedule_job(
        db,
        JobType.WORKFLOW_STEP,
        {"execution_id": str(execution.id)},
        run_at=run_at,
        max_attempts=WORKFLOW_STEP_MAX_ATTEMPTS,
        backoff_seconds=WORKFLOW_STEP_BACKOFF_SECONDS,
        commit=False,
    )


def _load_execution(db, job) -> WorkflowExecution:
    execution_id = (job.payload or {}).get("execution_id")
    if not execution_id:
        raise Exception("Missing execution_id in job payload")
    execution = db.get(WorkflowExecution, UUID(execution_id))
    if not execution:
        raise Exception(f"WorkflowExecution {execution_id} not found")
    return execution


async def process_workflow_step(db, job) -> None:
    """
    Process a WORKFLOW_STEP job - run one node of a workflow execution.

    Payload:
        - execution_id: UUID of the WorkflowExecution
    """
    from app.services.workflow_engine import engine

    execution = _load_execution(db, job)
    engine.execute_step(db, execution)


async def on_workflow_step_failed(db, job, exc: Exception) -> None:
    """Final failure (retries exhausted): fail the execution with one log entry."""
    from app.services.workflow_engine import TERMINAL_STATUSES, engine

    execution = _load_execution(db, job)
    if execution.status in TERMINAL_STATUSES:
        logger.warning(
            "Workflow step job %s exhausted retries but execution %s is already %s",
            job.id,
            execution.id,
            execution.status,
        )
        return

    engine.fail(db, execution, f"Job failed: {exc}")
    db.commit()
    logger.error("Workflow execution %s failed after %s attempts", execution.id, job.attempts)
