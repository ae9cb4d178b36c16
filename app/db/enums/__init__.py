"""Enum definitions for application constants."""

from app.db.enums.audit import AuditAction
from app.db.enums.backups import BackupDestination
from app.db.enums.defaults import (
    DEFAULT_APPROVAL_STATUS,
    DEFAULT_EXECUTION_STATUS,
    DEFAULT_JOB_STATUS,
    DEFAULT_SUBMISSION_STATUS,
)
from app.db.enums.forms import SubmissionStatus
from app.db.enums.jobs import JobStatus, JobType
from app.db.enums.workflows import (
    ApprovalStatus,
    TransformOperation,
    WorkflowConditionOperator,
    WorkflowExecutionStatus,
    WorkflowNodeType,
    WorkflowTrigger,
)

__all__ = [
    "ApprovalStatus",
    "AuditAction",
    "BackupDestination",
    "DEFAULT_APPROVAL_STATUS",
    "DEFAULT_EXECUTION_STATUS",
    "DEFAULT_JOB_STATUS",
    "DEFAULT_SUBMISSION_STATUS",
    "JobStatus",
    "JobType",
    "SubmissionStatus",
    "TransformOperation",
    "WorkflowConditionOperator",
    "WorkflowExecutionStatus",
    "WorkflowNodeType",
    "WorkflowTrigger",
]
