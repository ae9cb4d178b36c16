"""Submission service - submit forms and record admin reviews."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import SubmissionStatus
from app.db.models import EmailTemplate, Form, FormSubmission, User
from app.jobs.handlers import email as email_jobs
from app.jobs.utils import mask_email
from app.services import audit_service, email_sender, email_template_service
from app.services.mailables import FormSubmissionConfirmation
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

REVIEW_STATUSES = frozenset({SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value})


def get_submission(db: Session, submission_id: UUID) -> FormSubmission | None:
    return db.get(FormSubmission, submission_id)


def submit(
    db: Session,
    form: Form,
    user: User | None,
    data: dict,
    request=None,
) -> FormSubmission:
    """
    Store a submission, then run its side effects.

    Side effects after commit: audit entry, workflow triggers and the
    optional confirmation mail.
    """
    from app.services.workflow_engine import engine

    submission = FormSubmission(
        form_id=form.id,
        user_id=user.id if user else None,
        data=data,
        status=SubmissionStatus.PENDING.value,
        ip_address=audit_service.get_client_ip(request),
        user_agent=audit_service.get_user_agent(request),
    )
    db.add(submission)
    db.flush()
    audit_service.log_form_submitted(db, submission, request=request)
    db.commit()
    db.refresh(submission)

    engine.trigger_for_submission(db, submission)
    send_confirmation(db, submission)
    return submission


def _confirmation_template(db: Session, form: Form) -> EmailTemplate | None:
    template = None
    if form.email_template_id:
        template = email_template_service.get_template(db, form.email_template_id)
        if template and not template.is_active:
            template = None
    return template or email_template_service.get_default_template(db)


def send_confirmation(db: Session, submission: FormSubmission) -> bool:
    """Send the confirmation mail when the form asks for one. Never raises."""
    form = submission.form
    if not form.send_confirmation_email:
        return False

    to_email = submission.user.email if submission.user else None
    if not to_email:
        return False

    template = _confirmation_template(db, form)
    if not template:
        return False

    try:
        return email_sender.send_email(to_email, FormSubmissionConfirmation(submission, template).build())
    except Exception as e:
        # The submission is already stored; a mail failure must not undo it
        logger.error(
            "Failed to send confirmation email submission=%s recipient=%s error=%s",
            submission.id,
            mask_email(to_email),
            type(e).__name__,
        )
        return False


def review(
    db: Session,
    submission: FormSubmission,
    status: SubmissionStatus,
    admin_response: str | None = None,
    reviewer: User | None = None,
    request=None,
) -> FormSubmission:
    """Approve or reject a submission and queue the status mail."""
    if status.value not in REVIEW_STATUSES:
        raise ValueError(f"Invalid review status: {status.value}")

    old_status = submission.status
    submission.status = status.value
    submission.admin_response = admin_response
    submission.reviewed_by = reviewer.id if reviewer else None
    submission.reviewed_at = utcnow()
    audit_service.log_submission_reviewed(
        db,
        submission,
        old_status,
        reviewer_id=reviewer.id if reviewer else None,
        request=request,
    )

    if submission.user and submission.user.email:
        email_jobs.queue_status_changed_email(db, submission, commit=False)

    db.commit()
    db.refresh(submission)
    return submission
