"""Datetime helpers shared by models, mail rendering and reports."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings

DISPLAY_FORMAT = "%d.%m.%Y %H:%M"
FILENAME_FORMAT = "%Y-%m-%d_%H%M%S"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def app_timezone() -> ZoneInfo | timezone:
    try:
        return ZoneInfo(settings.APP_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def format_display(value: datetime | None) -> str:
    """Format a timestamp as d.m.Y H:i in the application timezone."""
    if value is None:
        return ""
    return as_utc(value).astimezone(app_timezone()).strftime(DISPLAY_FORMAT)
