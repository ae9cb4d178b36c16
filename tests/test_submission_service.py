"""Tests for submitting forms and reviewing submissions."""

import pytest

from app.db.enums import AuditAction, JobType, SubmissionStatus
from app.db.models import AuditLog, Job
from app.services import email_sender, submission_service
from app.worker import run_pending_jobs


def _jobs(db, job_type: JobType) -> list[Job]:
    return db.query(Job).filter(Job.job_type == job_type.value).all()


def test_submit_stores_pending_submission_and_audits(db, test_form, test_user):
    submission = submission_service.submit(db, test_form, test_user, {"days": 2})

    assert submission.status == SubmissionStatus.PENDING.value
    assert submission.data == {"days": 2}
    entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.FORM_SUBMITTED.value).one()
    assert entry.model_id == str(submission.id)
    assert entry.user_id == test_user.id


def test_submit_starts_bound_workflows(db, test_form, test_user, make_workflow):
    make_workflow(
        test_form,
        [{"id": "start", "type": "start", "data": {}}, {"id": "end", "type": "end", "data": {}}],
        [{"source": "start", "target": "end"}],
    )

    submission = submission_service.submit(db, test_form, test_user, {"days": 1})

    jobs = _jobs(db, JobType.WORKFLOW_STEP)
    assert len(jobs) == 1
    assert submission.id is not None


def test_submit_sends_confirmation_when_enabled(db, test_form, test_user, test_template, mail_outbox):
    test_form.send_confirmation_email = True
    db.commit()

    submission_service.submit(db, test_form, test_user, {"days": 3})

    assert len(mail_outbox.sent) == 1
    to, message = mail_outbox.sent[0]
    assert to == test_user.email
    assert message.subject == "Prijali sme: Žiadosť o dovolenku"


def test_submit_without_confirmation_flag_sends_nothing(db, test_form, test_user, test_template, mail_outbox):
    submission_service.submit(db, test_form, test_user, {"days": 3})

    assert mail_outbox.sent == []


def test_confirmation_failure_does_not_undo_submission(db, test_form, test_user, test_template, monkeypatch):
    test_form.send_confirmation_email = True
    db.commit()

    def _broken(to_email, message):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(email_sender, "send_email", _broken)

    submission = submission_service.submit(db, test_form, test_user, {"days": 3})

    assert submission_service.get_submission(db, submission.id) is not None


def test_confirmation_prefers_active_form_template(db, test_form, test_submission, test_template, mail_outbox):
    from app.db.models import EmailTemplate

    form_template = EmailTemplate(
        name="Vlastná",
        slug="custom-confirmation",
        subject="Vlastná: {{form_name}}",
        body_html="<p>OK</p>",
        is_active=True,
    )
    db.add(form_template)
    db.commit()
    test_form.email_template_id = form_template.id
    test_form.send_confirmation_email = True
    db.commit()

    assert submission_service.send_confirmation(db, test_submission) is True
    assert mail_outbox.sent[0][1].subject == "Vlastná: Žiadosť o dovolenku"

    form_template.is_active = False
    db.commit()
    submission_service.send_confirmation(db, test_submission)
    assert mail_outbox.sent[1][1].subject == "Prijali sme: Žiadosť o dovolenku"


def test_review_rejects_non_review_status(db, test_submission):
    with pytest.raises(ValueError):
        submission_service.review(db, test_submission, SubmissionStatus.PENDING)


@pytest.mark.asyncio
async def test_review_queues_status_mail(db, test_submission, test_user, mail_outbox):
    submission_service.review(
        db, test_submission, SubmissionStatus.REJECTED, admin_response="Chýba príloha", reviewer=test_user
    )

    assert test_submission.status == SubmissionStatus.REJECTED.value
    assert test_submission.reviewed_at is not None
    jobs = _jobs(db, JobType.SEND_EMAIL)
    assert [job.payload["submission_id"] for job in jobs] == [str(test_submission.id)]
    assert mail_outbox.sent == []

    await run_pending_jobs(db)

    to, message = mail_outbox.sent[0]
    assert to == test_user.email
    assert message.subject == "Vasa ziadost bola zamietnuta - Žiadosť o dovolenku"
    assert "Chýba príloha" in message.text

    entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.SUBMISSION_REJECTED.value).one()
    assert entry.old_values == {"status": "pending"}


def test_review_of_anonymous_submission_queues_nothing(db, test_submission):
    test_submission.user_id = None
    db.commit()
    db.refresh(test_submission)

    submission_service.review(db, test_submission, SubmissionStatus.APPROVED)

    assert _jobs(db, JobType.SEND_EMAIL) == []
