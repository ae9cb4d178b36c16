"""Email-related job handlers."""

from __future__ import annotations

import logging
from uuid import UUID

from app.db.enums import JobType
from app.db.models import FormSubmission
from app.jobs.utils import mask_email
from app.services import email_sender, job_service
from app.services.email_sender import MailMessage

logger = logging.getLogger(__name__)

MAILABLE_SUBMISSION_STATUS_CHANGED = "submission_status_changed"


def queue_email(db, to_email: str, message: MailMessage, commit: bool = True):
    """Queue an already-rendered message."""
    return job_service.schedule_job(
        db,
        JobType.SEND_EMAIL,
        {
            "to": to_email,
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        },
        commit=commit,
    )


def queue_status_changed_email(db, submission: FormSubmission, commit: bool = True):
    """Queue the status-changed mail; it is rendered when the job runs."""
    return job_service.schedule_job(
        db,
        JobType.SEND_EMAIL,
        {
            "mailable": MAILABLE_SUBMISSION_STATUS_CHANGED,
            "submission_id": str(submission.id),
        },
        commit=commit,
    )


async def process_send_email(db, job) -> None:
    """
    Process a SEND_EMAIL job.

    Payload is either a rendered message (to, subject, html, text) or a
    mailable reference (mailable, submission_id) rendered at send time.
    """
    from app.services.mailables import SubmissionStatusChanged

    payload = job.payload or {}

    if payload.get("mailable") == MAILABLE_SUBMISSION_STATUS_CHANGED:
        submission_id = payload.get("submission_id")
        submission = db.get(FormSubmission, UUID(submission_id)) if submission_id else None
        if not submission:
            raise Exception(f"FormSubmission {submission_id} not found")
        to_email = submission.user.email if submission.user else None
        if not to_email:
            logger.info("Status mail skipped for submission=%s (no recipient)", submission.id)
            return
        message = SubmissionStatusChanged(submission).build(db)
    else:
        to_email = payload.get("to")
        if not to_email:
            raise Exception("Missing recipient in email job payload")
        message = MailMessage(
            subject=payload.get("subject") or "",
            html=payload.get("html") or "",
            text=payload.get("text"),
        )

    email_sender.send_email(to_email, message)
    logger.info("Email job %s delivered to %s", job.id, mask_email(to_email))
