"""Email template rendering for submission mail.

Placeholders are replaced literally (no template engine):
{{form_name}}, {{submission_id}}, {{submission_date}}, {{user_name}},
{{user_email}}, {{admin_response}}, {{status}}, {{reviewed_at}},
{{submission_url}} and {{submission.<field>}} for each answer.
"""

from __future__ import annotations

import html
from typing import Any

import nh3
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import SubmissionStatus
from app.db.models import EmailTemplate, FormSubmission
from app.utils.dates import format_display
from app.utils.normalization import localized_text

ANONYMOUS_USER_NAME = "Anonymný používateľ"
STATUS_LABELS = {
    SubmissionStatus.APPROVED.value: "Schválené",
    SubmissionStatus.REJECTED.value: "Zamietnuté",
}
ANSWERS_HEADING = "Prehľad vašich odpovedí"


def strip_tags(value: str) -> str:
    """Plain text of an HTML fragment (script/style content dropped)."""
    return html.unescape(nh3.clean(value or "", tags=set()))


def _display_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


def submission_url(submission: FormSubmission) -> str:
    return f"{settings.APP_URL.rstrip('/')}/admin/submissions/{submission.id}"


def build_replacements(submission: FormSubmission) -> dict[str, str]:
    form = submission.form
    user = submission.user

    replacements = {
        "{{form_name}}": form.localized_name if form else "",
        "{{submission_id}}": str(submission.id),
        "{{submission_date}}": format_display(submission.created_at),
        "{{user_name}}": (user.name if user and user.name else ANONYMOUS_USER_NAME),
        "{{user_email}}": (user.email if user else "") or "",
        "{{admin_response}}": submission.admin_response or "",
        "{{status}}": STATUS_LABELS.get(submission.status, submission.status or ""),
        "{{reviewed_at}}": format_display(submission.reviewed_at),
        "{{submission_url}}": submission_url(submission),
    }
    for key, value in (submission.data or {}).items():
        replacements[f"{{{{submission.{key}}}}}"] = _display_value(value)
    return replacements


def replace_placeholders(body: str, submission: FormSubmission) -> str:
    result = body or ""
    for token, value in build_replacements(submission).items():
        result = result.replace(token, value)
    return result


def _field_labels(submission: FormSubmission) -> dict[str, str]:
    fields = submission.form.fields if submission.form else []
    labels = {}
    for field in fields:
        name = field.get("name")
        if name:
            labels[name] = localized_text(field.get("label") or name)
    return labels


def _answers_html(submission: FormSubmission) -> str:
    labels = _field_labels(submission)
    rows = []
    for key, value in (submission.data or {}).items():
        label = html.escape(labels.get(key, key))
        display = html.escape(_display_value(value))
        rows.append(
            '<tr style="border-bottom: 1px solid #f3f4f6;">'
            f'<td style="padding: 12px 8px; color: #6b7280; font-weight: 500; width: 40%;">{label}</td>'
            f'<td style="padding: 12px 8px; color: #111827;">{display}</td>'
            "</tr>"
        )
    return (
        '<div style="margin-top: 24px; border-top: 1px solid #e5e7eb; padding-top: 24px;">'
        f'<h3 style="margin: 0 0 16px 0; color: #374151; font-size: 16px;">{ANSWERS_HEADING}</h3>'
        '<table style="width: 100%; border-collapse: collapse;">'
        f"{''.join(rows)}"
        "</table>"
        "</div>"
    )


def _answers_text(submission: FormSubmission) -> str:
    labels = _field_labels(submission)
    lines = [
        f"{labels.get(key, key)}: {_display_value(value)}\n"
        for key, value in (submission.data or {}).items()
    ]
    return f"\n\n--- {ANSWERS_HEADING} ---\n\n" + "".join(lines)


def render_subject(template: EmailTemplate, submission: FormSubmission) -> str:
    return replace_placeholders(template.subject, submission)


def render_html(template: EmailTemplate, submission: FormSubmission) -> str:
    body = replace_placeholders(template.body_html, submission)
    if template.include_submission_data:
        body += _answers_html(submission)
    return body


def render_text(template: EmailTemplate, submission: FormSubmission) -> str:
    source = template.body_text if template.body_text is not None else strip_tags(template.body_html)
    body = replace_placeholders(source, submission)
    if template.include_submission_data:
        body += _answers_text(submission)
    return body


def get_template(db: Session, template_id) -> EmailTemplate | None:
    if not template_id:
        return None
    return db.get(EmailTemplate, template_id)


def get_default_template(db: Session) -> EmailTemplate | None:
    return (
        db.query(EmailTemplate)
        .filter(EmailTemplate.is_default.is_(True), EmailTemplate.is_active.is_(True))
        .first()
    )
