"""Audit enums."""

from enum import Enum


class AuditAction(str, Enum):
    """Actions recorded in the audit log."""

    FORM_SUBMITTED = "form_submitted"
    SUBMISSION_APPROVED = "submission_approved"
    SUBMISSION_REJECTED = "submission_rejected"
    WORKFLOW_EXECUTED = "workflow_executed"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    SETTINGS_UPDATED = "settings_updated"
    SCHEDULED_BACKUP = "scheduled_backup"
