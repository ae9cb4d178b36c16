"""Submission exports (CSV, semicolon-separated for Excel)."""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app.db.models import Form, FormSubmission
from app.utils.dates import app_timezone, format_display, utcnow
from app.utils.normalization import localized_text, slugify


CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")
CSV_DELIMITER = ";"
UTF8_BOM = "\ufeff"

STATUS_TRANSLATIONS = {
    "submitted": "Odoslaný",
    "approved": "Schválený",
    "rejected": "Zamietnutý",
    "pending": "Čakajúci",
}


def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def translate_status(status: str | None) -> str:
    return STATUS_TRANSLATIONS.get(status or "", status or "")


def _field_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Áno" if value else "Nie"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


def export_headers(form: Form) -> list[str]:
    headers = ["ID", "Dátum odoslania", "Stav", "Používateľ", "Email"]
    for field in form.fields:
        headers.append(localized_text(field.get("label")) or field.get("name", ""))
    headers += ["Odpoveď admina", "Schválil", "Dátum schválenia", "IP adresa"]
    return headers


def submission_row(submission: FormSubmission, form: Form) -> list[str]:
    data = submission.data or {}
    row = [
        str(submission.id),
        format_display(submission.created_at),
        translate_status(submission.status),
        submission.user.name if submission.user else "Anonymný",
        submission.user.email if submission.user else "-",
    ]
    row += [_field_value(data.get(field.get("name"))) for field in form.fields]
    row += [
        submission.admin_response or "",
        submission.reviewer.name if submission.reviewer else "",
        format_display(submission.reviewed_at),
        submission.ip_address or "",
    ]
    return row


def write_csv(form: Form, submissions: Iterable[FormSubmission]) -> str:
    output = io.StringIO()
    output.write(UTF8_BOM)
    writer = csv.writer(output, delimiter=CSV_DELIMITER)
    writer.writerow(export_headers(form))
    for submission in submissions:
        writer.writerow([_csv_safe(value) for value in submission_row(submission, form)])
    return output.getvalue()


def submissions_csv(db: Session, form: Form) -> str:
    """All submissions of a form, newest first."""
    submissions = (
        db.query(FormSubmission)
        .filter(FormSubmission.form_id == form.id)
        .order_by(FormSubmission.created_at.desc())
        .all()
    )
    return write_csv(form, submissions)


def export_filename(form: Form, extension: str = "csv", now: datetime | None = None) -> str:
    date = (now or utcnow()).astimezone(app_timezone()).strftime("%Y-%m-%d")
    return f"odpovede-{slugify(form.localized_name)}-{date}.{extension}"
