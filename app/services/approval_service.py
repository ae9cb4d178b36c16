"""Approval service - resolve approval tokens raised by workflow approval nodes."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import ApprovalStatus, WorkflowExecutionStatus
from app.db.models import ApprovalRequest
from app.services import audit_service
from app.services.email_template_service import strip_tags
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


class ApprovalNotFound(Exception):
    pass


class ApprovalExpired(Exception):
    pass


def get_by_token(db: Session, token: str) -> ApprovalRequest | None:
    return db.query(ApprovalRequest).filter(ApprovalRequest.token == token).first()


def resolve(
    db: Session,
    token: str,
    approved: bool,
    comment: str | None = None,
    user_id: UUID | None = None,
    request=None,
) -> ApprovalRequest:
    """
    Approve or reject a pending approval request.

    Approving resumes the workflow execution; rejecting stops it.
    Raises ApprovalNotFound for unknown or already-answered tokens and for
    executions no longer waiting on this approval. Raises ApprovalExpired
    once the token is past its expiry.
    """
    from app.services.workflow_engine import engine

    approval = (
        db.query(ApprovalRequest)
        .filter(
            ApprovalRequest.token == token,
            ApprovalRequest.status == ApprovalStatus.PENDING.value,
        )
        .first()
    )
    if not approval:
        raise ApprovalNotFound("Approval request not found")
    if approval.is_expired():
        raise ApprovalExpired("Approval link has expired")

    execution = approval.execution
    if execution.status != WorkflowExecutionStatus.WAITING_APPROVAL.value:
        raise ApprovalNotFound("Workflow is no longer waiting for this approval")

    clean_comment = strip_tags(comment or "")[:MAX_COMMENT_LENGTH]
    approval.status = (ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED).value
    approval.comment = clean_comment or None
    approval.approved_by = user_id
    approval.responded_at = utcnow()
    audit_service.log_approval_action(db, approval, approved, request=request)

    if approved:
        engine.continue_execution(db, execution)
    else:
        engine.stop(db, execution, "Approval rejected")
        db.commit()

    logger.info(
        "Approval resolved approval_id=%s execution_id=%s approved=%s",
        approval.id,
        execution.id,
        approved,
    )
    return approval


def cleanup_expired(db: Session) -> int:
    """Delete expired pending approval requests. Returns the number removed."""
    deleted = (
        db.query(ApprovalRequest)
        .filter(
            ApprovalRequest.status == ApprovalStatus.PENDING.value,
            ApprovalRequest.expires_at.is_not(None),
            ApprovalRequest.expires_at < utcnow(),
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
