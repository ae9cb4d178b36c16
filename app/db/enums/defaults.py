"""Centralized defaults for enums."""

from app.db.enums.forms import SubmissionStatus
from app.db.enums.jobs import JobStatus
from app.db.enums.workflows import ApprovalStatus, WorkflowExecutionStatus


DEFAULT_JOB_STATUS: JobStatus = JobStatus.PENDING
DEFAULT_SUBMISSION_STATUS: SubmissionStatus = SubmissionStatus.PENDING
DEFAULT_EXECUTION_STATUS: WorkflowExecutionStatus = WorkflowExecutionStatus.PENDING
DEFAULT_APPROVAL_STATUS: ApprovalStatus = ApprovalStatus.PENDING
