"""
Monthly submission report.

Collects per-status and per-form counts for one calendar month and renders
them as a PDF with reportlab.
"""

import io
import os
import unicodedata
from calendar import monthrange
from datetime import datetime, timezone
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import SubmissionStatus
from app.db.models import Form, FormSubmission
from app.services.export_service import translate_status
from app.utils.dates import app_timezone, utcnow
from app.utils.normalization import localized_text

HEADER_COLOR = colors.HexColor("#3b82f6")
GRID_COLOR = colors.HexColor("#e2e8f0")
STRIPE_COLOR = colors.HexColor("#f8fafc")

REPORT_FONT = "ReportSans"
REPORT_FONT_BOLD = "ReportSans-Bold"
# Built-in Type1 fonts only cover WinAnsi (no Č, Ž, ť ...)
FALLBACK_FONTS = ("Helvetica", "Helvetica-Bold")


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First and last instant of the month in the application timezone, as UTC."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    tz = app_timezone()
    start = datetime(year, month, 1, tzinfo=tz)
    last_day = monthrange(year, month)[1]
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def collect_monthly_stats(db: Session, year: int, month: int) -> dict[str, Any]:
    """Submission counts for the month: total, by status, by form."""
    start, end = month_bounds(year, month)
    in_month = (
        FormSubmission.created_at >= start,
        FormSubmission.created_at <= end,
    )

    by_status = {status.value: 0 for status in SubmissionStatus}
    for status, count in (
        db.query(FormSubmission.status, func.count(FormSubmission.id))
        .filter(*in_month)
        .group_by(FormSubmission.status)
        .all()
    ):
        by_status[status] = count

    by_form = [
        {"form": localized_text(name), "count": count}
        for name, count in (
            db.query(Form.name, func.count(FormSubmission.id))
            .join(FormSubmission, FormSubmission.form_id == Form.id)
            .filter(*in_month)
            .group_by(Form.id, Form.name)
            .order_by(func.count(FormSubmission.id).desc())
            .all()
        )
    ]

    return {
        "year": year,
        "month": month,
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_form": by_form,
    }


def report_fonts() -> tuple[str, str]:
    """
    Register the configured TTF and return (regular, bold) font names.

    Falls back to the built-in Helvetica pair when the file is missing.
    """
    path = settings.REPORT_FONT_PATH
    if not path or not os.path.isfile(path):
        return FALLBACK_FONTS

    bold_path = f"{os.path.splitext(path)[0]}-Bold.ttf"
    pdfmetrics.registerFont(TTFont(REPORT_FONT, path))
    pdfmetrics.registerFont(TTFont(REPORT_FONT_BOLD, bold_path if os.path.isfile(bold_path) else path))
    return REPORT_FONT, REPORT_FONT_BOLD


def fold_to_ascii(value: str) -> str:
    """Strip diacritics ("Čakajúci" -> "Cakajuci") for fonts without them."""
    decomposed = unicodedata.normalize("NFKD", value)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def _table(rows: list[list[str]], col_widths: list[float], fonts: tuple[str, str]) -> Table:
    table = Table(rows, colWidths=col_widths)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, -1), fonts[0]),
                ("FONTNAME", (0, 0), (-1, 0), fonts[1]),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (1, 0), (-1, -1), "CENTER"),
                ("GRID", (0, 0), (-1, -1), 0.5, GRID_COLOR),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, STRIPE_COLOR]),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    return table


def build_monthly_report_pdf(stats: dict[str, Any]) -> bytes:
    """Render collect_monthly_stats() output as PDF bytes."""
    fonts = report_fonts()
    text = (lambda value: value) if fonts[0] == REPORT_FONT else fold_to_ascii

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=50,
        leftMargin=50,
        topMargin=50,
        bottomMargin=50,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Heading1"], fontName=fonts[1])
    heading_style = ParagraphStyle(
        "ReportHeading",
        parent=styles["Heading2"],
        fontName=fonts[1],
        fontSize=14,
        spaceBefore=15,
        spaceAfter=10,
    )
    subheading_style = ParagraphStyle(
        "ReportSubHeading",
        parent=styles["Normal"],
        fontName=fonts[0],
        fontSize=10,
        textColor=colors.HexColor("#64748b"),
    )

    generated_at = utcnow().astimezone(app_timezone()).strftime("%d.%m.%Y %H:%M")
    title = escape(text(f"{settings.APP_NAME} - {stats['month']:02d}/{stats['year']}"))
    elements = [
        Paragraph(title, title_style),
        Paragraph(f"Generated: {generated_at} | Submissions: {stats['total']}", subheading_style),
        Spacer(1, 10),
        Paragraph("Submissions by status", heading_style),
    ]

    status_rows = [["Status", "Count"]]
    status_rows += [
        [text(translate_status(status)), str(count)] for status, count in stats["by_status"].items()
    ]
    elements.append(_table(status_rows, [3 * inch, 1.2 * inch], fonts))

    if stats["by_form"]:
        elements.append(Paragraph("Submissions by form", heading_style))
        form_rows = [["Form", "Count"]]
        form_rows += [[text(item["form"]), str(item["count"])] for item in stats["by_form"]]
        elements.append(_table(form_rows, [4.5 * inch, 1.2 * inch], fonts))

    doc.build(elements)
    return buffer.getvalue()


def save_monthly_report(db: Session, year: int, month: int) -> str:
    """Write the month's PDF under REPORT_DIR and return its path."""
    pdf = build_monthly_report_pdf(collect_monthly_stats(db, year, month))
    os.makedirs(settings.REPORT_DIR, exist_ok=True)
    path = os.path.join(settings.REPORT_DIR, f"report-{year}-{month:02d}.pdf")
    with open(path, "wb") as f:
        f.write(pdf)
    return path
