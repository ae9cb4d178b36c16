"""Audit logging service - admin, workflow and system event tracking.

Security guidelines:
- NEVER log secrets (passwords, keys, client secrets)
- Hash emails in metadata (use hash_email)
- Use IDs instead of raw data where possible
- IP: proxy headers are resolved by ProxyHeadersMiddleware, read request.client
"""

import hashlib
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from app.db.enums import AuditAction
from app.db.models import AuditLog


def hash_email(email: str) -> str:
    """Hash email for audit log (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def get_client_ip(request: Request | None) -> str | None:
    """Extract client IP from request."""
    if not request or not request.client:
        return None
    return request.client.host


def get_user_agent(request: Request | None) -> str | None:
    """Extract user agent from request."""
    if not request:
        return None
    ua = request.headers.get("user-agent", "")
    # Truncate to 500 chars (DB limit)
    return ua[:500] if ua else None


def log_event(
    db: Session,
    action: AuditAction,
    model: Any = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: UUID | None = None,
    request: Request | None = None,
) -> AuditLog:
    """
    Log an audit event.

    Args:
        db: Database session
        action: Type of event (from AuditAction)
        model: Affected ORM instance, if any (type and id are recorded)
        old_values: State before the change
        new_values: State after the change (must be redacted - no secrets)
        metadata: Additional context
        user_id: User who performed the action (None for system)
        request: FastAPI request for IP/user-agent extraction

    Returns:
        The created audit log entry (flushed, caller commits)
    """
    entry = AuditLog(
        user_id=user_id,
        action=action.value,
        model_type=type(model).__name__ if model is not None else None,
        model_id=str(model.id) if model is not None else None,
        old_values=old_values,
        new_values=new_values,
        event_metadata=metadata,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    db.add(entry)
    db.flush()
    return entry


# =============================================================================
# Submission Events
# =============================================================================

def log_form_submitted(db: Session, submission, request: Request | None = None) -> AuditLog:
    return log_event(
        db,
        AuditAction.FORM_SUBMITTED,
        model=submission,
        new_values={"form_id": str(submission.form_id), "status": submission.status},
        user_id=submission.user_id,
        request=request,
    )


def log_submission_reviewed(
    db: Session,
    submission,
    old_status: str,
    reviewer_id: UUID | None = None,
    request: Request | None = None,
) -> AuditLog:
    """Log approve/reject; any other status is logged as a rejection."""
    action = (
        AuditAction.SUBMISSION_APPROVED
        if submission.status == "approved"
        else AuditAction.SUBMISSION_REJECTED
    )
    return log_event(
        db,
        action,
        model=submission,
        old_values={"status": old_status},
        new_values={
            "status": submission.status,
            "has_admin_response": bool(submission.admin_response),
        },
        user_id=reviewer_id,
        request=request,
    )


# =============================================================================
# Workflow Events
# =============================================================================

def log_workflow_executed(db: Session, execution) -> AuditLog:
    return log_event(
        db,
        AuditAction.WORKFLOW_EXECUTED,
        model=execution,
        new_values={
            "workflow_id": str(execution.workflow_id),
            "submission_id": str(execution.submission_id) if execution.submission_id else None,
            "status": execution.status,
        },
    )


def log_approval_action(
    db: Session,
    approval,
    approved: bool,
    request: Request | None = None,
) -> AuditLog:
    return log_event(
        db,
        AuditAction.APPROVAL_APPROVED if approved else AuditAction.APPROVAL_REJECTED,
        model=approval,
        new_values={
            "workflow_execution_id": str(approval.workflow_execution_id),
            "node_id": approval.node_id,
            "approver": hash_email(approval.approver_email),
        },
        request=request,
    )


# =============================================================================
# System Events
# =============================================================================

def log_settings_updated(
    db: Session,
    group: str,
    keys: list[str],
    user_id: UUID | None = None,
    request: Request | None = None,
) -> AuditLog:
    """Only key names are recorded, never values."""
    return log_event(
        db,
        AuditAction.SETTINGS_UPDATED,
        new_values={"group": group, "keys": sorted(keys)},
        user_id=user_id,
        request=request,
    )


def log_scheduled_backup(db: Session, payload: dict[str, Any]) -> AuditLog:
    """
    Record a backup run.

    payload: {include_submissions, destinations, errors, stats}
    """
    return log_event(
        db,
        AuditAction.SCHEDULED_BACKUP,
        new_values={
            "include_submissions": payload.get("include_submissions", False),
            "destinations": list(payload.get("destinations", [])),
            "errors": list(payload.get("errors", [])),
            "stats": payload.get("stats", {}),
        },
    )
