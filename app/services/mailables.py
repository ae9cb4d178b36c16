"""Submission notification mail (confirmation, status change)."""

from __future__ import annotations

import html

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import SubmissionStatus
from app.db.models import EmailTemplate, FormSubmission
from app.services import email_template_service
from app.services.email_sender import MailMessage
from app.utils.dates import format_display
from app.utils.normalization import localized_text


class FormSubmissionConfirmation:
    """Sent to the submitter right after a form is submitted."""

    def __init__(self, submission: FormSubmission, template: EmailTemplate):
        self.submission = submission
        self.template = template

    def subject(self) -> str:
        # Only {{form_name}} is substituted in the subject line
        form_name = localized_text(self.submission.form.name if self.submission.form else None)
        return (self.template.subject or "").replace("{{form_name}}", form_name)

    def build(self) -> MailMessage:
        return MailMessage(
            subject=self.subject(),
            html=email_template_service.render_html(self.template, self.submission),
            text=email_template_service.render_text(self.template, self.submission),
        )


class SubmissionStatusChanged:
    """
    Sent to the submitter after an admin approves or rejects.

    The form's approval/rejection template owns subject and body when set;
    otherwise a built-in message is used.
    """

    def __init__(self, submission: FormSubmission):
        self.submission = submission

    @property
    def is_approved(self) -> bool:
        return self.submission.status == SubmissionStatus.APPROVED.value

    def get_email_template(self, db: Session) -> EmailTemplate | None:
        form = self.submission.form
        if self.submission.status == SubmissionStatus.APPROVED.value and form.approval_email_template_id:
            return email_template_service.get_template(db, form.approval_email_template_id)
        if self.submission.status == SubmissionStatus.REJECTED.value and form.rejection_email_template_id:
            return email_template_service.get_template(db, form.rejection_email_template_id)
        return None

    def detail_url(self) -> str:
        return f"{settings.APP_URL.rstrip('/')}/my/submissions/{self.submission.id}"

    def fallback_subject(self) -> str:
        status = "schvalena" if self.is_approved else "zamietnuta"
        return f"Vasa ziadost bola {status} - {self.submission.form.localized_name}"

    def _fallback_text(self) -> str:
        status = "schvalena" if self.is_approved else "zamietnuta"
        form_name = self.submission.form.localized_name
        lines = [
            f"Vasa ziadost bola {status}",
            "",
            "Dobry den,",
            "",
            f"Vasa ziadost z formulara {form_name} bola {status}.",
            "",
        ]
        if self.submission.admin_response:
            lines += ["Odpoved administratora:", self.submission.admin_response, ""]
        lines += [
            "Detaily ziadosti:",
            f"- Formular: {form_name}",
            f"- Datum odoslania: {format_display(self.submission.created_at)}",
            f"- Datum rozhodnutia: {format_display(self.submission.reviewed_at) or '-'}",
            f"- Stav: {'Schvalena' if self.is_approved else 'Zamietnuta'}",
            "",
            f"Zobrazit detail ziadosti: {self.detail_url()}",
            "",
            "S pozdravom,",
            settings.APP_NAME,
        ]
        return "\n".join(lines)

    def _fallback_html(self) -> str:
        status = "schvalena" if self.is_approved else "zamietnuta"
        form_name = html.escape(self.submission.form.localized_name)
        response = ""
        if self.submission.admin_response:
            escaped = html.escape(self.submission.admin_response).replace("\n", "<br>")
            response = f"<h2>Odpoved administratora</h2><p>{escaped}</p>"
        return (
            f"<h1>Vasa ziadost bola {status}</h1>"
            "<p>Dobry den,</p>"
            f"<p>Vasa ziadost z formulara <strong>{form_name}</strong> bola {status}.</p>"
            f"{response}"
            "<h2>Detaily ziadosti</h2>"
            "<ul>"
            f"<li><strong>Formular:</strong> {form_name}</li>"
            f"<li><strong>Datum odoslania:</strong> {format_display(self.submission.created_at)}</li>"
            f"<li><strong>Datum rozhodnutia:</strong> {format_display(self.submission.reviewed_at) or '-'}</li>"
            f"<li><strong>Stav:</strong> {'Schvalena' if self.is_approved else 'Zamietnuta'}</li>"
            "</ul>"
            f'<p><a href="{html.escape(self.detail_url(), quote=True)}">Zobrazit detail ziadosti</a></p>'
            f"<p>S pozdravom,<br>{html.escape(settings.APP_NAME)}</p>"
        )

    def build(self, db: Session) -> MailMessage:
        template = self.get_email_template(db)
        if template is not None:
            return MailMessage(
                subject=email_template_service.render_subject(template, self.submission),
                html=email_template_service.render_html(template, self.submission),
                text=email_template_service.render_text(template, self.submission),
            )
        return MailMessage(
            subject=self.fallback_subject(),
            html=self._fallback_html(),
            text=self._fallback_text(),
        )
