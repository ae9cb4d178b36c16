"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from app.db.enums import JobType
from app.jobs.handlers import email, workflows

JobHandler = Callable[[object, object], Awaitable[None]]
FailureHook = Callable[[object, object, Exception], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.SEND_EMAIL.value: email.process_send_email,
    JobType.WORKFLOW_STEP.value: workflows.process_workflow_step,
}

# Called once, after the final attempt fails
FAILURE_HOOKS: Mapping[str, FailureHook] = {
    JobType.WORKFLOW_STEP.value: workflows.on_workflow_step_failed,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler


def resolve_failure_hook(job_type: str) -> FailureHook | None:
    return FAILURE_HOOKS.get(job_type)
