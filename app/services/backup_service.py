"""Backup service - snapshot of forms configuration to local disk, FTP and S3.

Each destination is attempted independently; a failure in one never stops
the others. FTP/S3 failures are logged with non-secret fields only and
re-raised as BackupError with a generic message, since library error strings
may embed credentials.
"""

from __future__ import annotations

import ftplib
import io
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import BackupError, InvalidBackupFilename
from app.core.structured_logging import build_log_context
from app.db.enums import BackupDestination
from app.db.models import EmailTemplate, Form, FormCategory, FormSubmission, Workflow
from app.services import audit_service, setting_service
from app.services.storage_client import get_backup_s3_client
from app.utils.dates import FILENAME_FORMAT, app_timezone, utcnow

logger = logging.getLogger(__name__)


BACKUP_FORMAT_VERSION = "1.0"
LOCAL_RETENTION = 10
FTP_TIMEOUT_SECONDS = 30
BACKUP_FILE_RE = re.compile(r"^backup_.*\.json$")
SAFE_FILENAME_RE = re.compile(r"^[a-zA-Z0-9_\-.]+$")


@dataclass
class BackupResult:
    """Outcome of one backup run across all selected destinations."""

    data: dict[str, Any]
    destinations: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    local_path: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.errors


# =============================================================================
# Snapshot
# =============================================================================

def _workflow_data(workflow: Workflow) -> dict[str, Any]:
    return {
        "name": workflow.name,
        "description": workflow.description,
        "trigger_on": workflow.trigger_on,
        "is_active": workflow.is_active,
        "nodes": workflow.nodes,
        "edges": workflow.edges,
    }


def _form_data(form: Form) -> dict[str, Any]:
    data = {
        "name": form.name,
        "slug": form.slug,
        "description": form.description,
        "schema": form.schema,
        "settings": form.settings,
        "is_public": form.is_public,
        "is_active": form.is_active,
        "prevent_duplicates": form.prevent_duplicates,
        "duplicate_message": form.duplicate_message,
        "tags": form.tags,
        "keywords": form.keywords,
        "send_confirmation_email": form.send_confirmation_email,
        "category_slug": form.category.slug if form.category else None,
    }
    if form.workflow:
        data["workflow"] = _workflow_data(form.workflow)
    return data


def create_backup_data(db: Session, include_submissions: bool = False) -> dict[str, Any]:
    """Build the JSON-serialisable snapshot."""
    backup: dict[str, Any] = {
        "backup_type": "full",
        "backup_date": utcnow().isoformat(),
        "version": BACKUP_FORMAT_VERSION,
        "app_version": settings.APP_VERSION,
    }

    backup["categories"] = [
        {
            "name": category.name,
            "slug": category.slug,
            "description": category.description,
            "color": category.color,
            "icon": category.icon,
            "order": category.order,
        }
        for category in db.query(FormCategory).order_by(FormCategory.order).all()
    ]

    backup["email_templates"] = [
        {
            "name": template.name,
            "slug": template.slug,
            "subject": template.subject,
            "body_html": template.body_html,
            "body_text": template.body_text,
            "variables": template.variables,
            "is_active": template.is_active,
            "is_default": template.is_default,
        }
        for template in db.query(EmailTemplate).all()
    ]

    # Standalone workflows only; form-bound ones travel with their form
    backup["workflows"] = [
        _workflow_data(workflow)
        for workflow in db.query(Workflow).filter(Workflow.form_id.is_(None)).all()
    ]

    forms = (
        db.query(Form)
        .options(selectinload(Form.category), selectinload(Form.workflow))
        .all()
    )
    backup["forms"] = [_form_data(form) for form in forms]

    backup["settings"] = {"branding": setting_service.get_branding_settings(db)}

    if include_submissions:
        submissions = (
            db.query(FormSubmission)
            .options(selectinload(FormSubmission.form), selectinload(FormSubmission.user))
            .all()
        )
        backup["submissions"] = [
            {
                "form_slug": submission.form.slug if submission.form else None,
                "data": submission.data,
                "status": submission.status,
                "response": submission.admin_response,
                "user_email": submission.user.email if submission.user else None,
                "submitted_at": submission.created_at.isoformat(),
            }
            for submission in submissions
        ]

    backup["stats"] = {
        "categories_count": len(backup["categories"]),
        "forms_count": len(backup["forms"]),
        "email_templates_count": len(backup["email_templates"]),
        "workflows_count": len(backup["workflows"]),
        "submissions_count": (
            len(backup["submissions"]) if include_submissions else "not_included"
        ),
    }
    return backup


def backup_filename(now: datetime | None = None) -> str:
    local_now = (now or utcnow()).astimezone(app_timezone())
    return f"backup_{local_now.strftime(FILENAME_FORMAT)}.json"


def encode_backup(data: dict[str, Any]) -> bytes:
    return json.dumps(data, indent=4, ensure_ascii=False, default=str).encode("utf-8")


def _files_beyond_retention(names: list[str], keep: int) -> list[str]:
    # Names embed the timestamp, so lexical order is chronological
    return sorted(names, reverse=True)[max(keep, 0):]


# =============================================================================
# Local
# =============================================================================

def local_backup_dir() -> Path:
    return Path(settings.BACKUP_LOCAL_DIR)


def save_to_local(data: dict[str, Any], filename: str | None = None) -> str:
    """Write the backup to BACKUP_LOCAL_DIR and return its path."""
    directory = local_backup_dir()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / (filename or backup_filename())
    path.write_bytes(encode_backup(data))

    cleanup_local_backups(LOCAL_RETENTION)
    return str(path)


def cleanup_local_backups(keep: int) -> None:
    try:
        names = [p.name for p in local_backup_dir().iterdir() if BACKUP_FILE_RE.match(p.name)]
        for name in _files_beyond_retention(names, keep):
            (local_backup_dir() / name).unlink()
    except OSError as exc:
        logger.warning("Failed to cleanup old local backups: %s", exc)


def list_local_backups() -> list[dict[str, Any]]:
    """Local backups, newest first."""
    directory = local_backup_dir()
    if not directory.is_dir():
        return []

    backups = []
    for path in directory.iterdir():
        if not path.is_file() or not BACKUP_FILE_RE.match(path.name):
            continue
        stat = path.stat()
        backups.append(
            {
                "filename": path.name,
                "path": str(path),
                "size": stat.st_size,
                "created_at": datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S"),
            }
        )
    backups.sort(key=lambda item: (item["created_at"], item["filename"]), reverse=True)
    return backups


def sanitize_backup_filename(filename: str) -> str:
    """
    Reduce a user-supplied name to a safe file inside the backup directory.

    Raises InvalidBackupFilename on anything that is not a plain *.json name.
    """
    sanitized = Path((filename or "").replace("\\", "/")).name
    if not sanitized:
        raise InvalidBackupFilename("Invalid backup filename")
    if not SAFE_FILENAME_RE.match(sanitized):
        raise InvalidBackupFilename("Invalid characters in backup filename")
    if not sanitized.endswith(".json"):
        raise InvalidBackupFilename("Invalid backup file extension")

    directory = local_backup_dir().resolve()
    if (directory / sanitized).resolve().parent != directory:
        raise InvalidBackupFilename("Invalid backup path")
    return sanitized


def get_local_backup_content(filename: str) -> str | None:
    try:
        path = local_backup_dir() / sanitize_backup_filename(filename)
    except InvalidBackupFilename:
        return None
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def delete_local_backup(filename: str) -> bool:
    try:
        path = local_backup_dir() / sanitize_backup_filename(filename)
    except InvalidBackupFilename:
        return False
    if not path.is_file():
        return False
    path.unlink()
    return True


# =============================================================================
# FTP
# =============================================================================

def _ftp_cleanup(ftp: ftplib.FTP, keep: int) -> None:
    try:
        names = [name.rsplit("/", 1)[-1] for name in ftp.nlst()]
        backups = [name for name in names if BACKUP_FILE_RE.match(name)]
        for name in _files_beyond_retention(backups, keep):
            ftp.delete(name)
    except ftplib.all_errors as exc:
        logger.warning("Failed to cleanup old FTP backups: %s", type(exc).__name__)


def upload_to_ftp(data: dict[str, Any], ftp_config: dict[str, Any], filename: str | None = None) -> bool:
    """
    Upload the backup over FTP (FTPS when ssl is set).

    ftp_config: host, port, username, password, path, passive, ssl, retention
    """
    filename = filename or backup_filename()
    host = ftp_config.get("host") or ""
    port = int(ftp_config.get("port") or 21)
    use_ssl = bool(ftp_config.get("ssl", False))

    ftp: ftplib.FTP | None = None
    try:
        ftp = ftplib.FTP_TLS() if use_ssl else ftplib.FTP()
        ftp.connect(host, port, timeout=FTP_TIMEOUT_SECONDS)
        ftp.login(ftp_config.get("username") or "", ftp_config.get("password") or "")
        if use_ssl:
            ftp.prot_p()
        ftp.set_pasv(bool(ftp_config.get("passive", True)))

        path = ftp_config.get("path") or "/"
        if path != "/":
            ftp.cwd(path)

        ftp.storbinary(f"STOR {filename}", io.BytesIO(encode_backup(data)))
        _ftp_cleanup(ftp, int(ftp_config.get("retention") or 10))
    except Exception as exc:
        logger.error(
            "FTP backup upload failed %s",
            build_log_context(
                filename=filename, host=host or "unknown", port=port, error_type=type(exc).__name__
            ),
        )
        raise BackupError("FTP backup upload failed") from None
    finally:
        if ftp is not None:
            try:
                ftp.quit()
            except ftplib.all_errors:
                ftp.close()

    logger.info("Backup uploaded to FTP successfully filename=%s", filename)
    return True


# =============================================================================
# S3
# =============================================================================

def _s3_cleanup(client, bucket: str, prefix: str, keep: int) -> None:
    try:
        response = client.list_objects_v2(Bucket=bucket, Prefix=f"{prefix}/" if prefix else "")
        keys = [
            item["Key"]
            for item in response.get("Contents", [])
            if BACKUP_FILE_RE.match(item["Key"].rsplit("/", 1)[-1])
        ]
        for key in _files_beyond_retention(keys, keep):
            client.delete_object(Bucket=bucket, Key=key)
    except Exception as exc:
        logger.warning("Failed to cleanup old S3 backups: %s", type(exc).__name__)


def upload_to_s3(data: dict[str, Any], s3_config: dict[str, Any], filename: str | None = None) -> bool:
    """
    Upload the backup to an S3 (or S3-compatible) bucket.

    s3_config: key, secret, region, bucket, endpoint, path, use_path_style, retention
    """
    filename = filename or backup_filename()
    prefix = (s3_config.get("path") or "").strip("/")
    key = f"{prefix}/{filename}" if prefix else filename
    bucket = s3_config.get("bucket") or ""

    try:
        client = get_backup_s3_client(s3_config)
        client.put_object(
            Bucket=bucket,
            Key=key,
            Body=encode_backup(data),
            ContentType="application/json",
        )
        _s3_cleanup(client, bucket, prefix, int(s3_config.get("retention") or 10))
    except Exception as exc:
        logger.error(
            "S3 backup upload failed %s",
            build_log_context(
                filename=key,
                bucket=bucket or "unknown",
                region=s3_config.get("region") or "unknown",
                error_type=type(exc).__name__,
            ),
        )
        raise BackupError("S3 backup upload failed") from None

    logger.info("Backup uploaded to S3 successfully filename=%s", key)
    return True


# =============================================================================
# Orchestration
# =============================================================================

def ftp_config_from_settings(backup_settings: dict[str, Any]) -> dict[str, Any]:
    return {
        "host": backup_settings["ftp_host"],
        "username": backup_settings["ftp_username"],
        "password": backup_settings["ftp_password"],
        "port": backup_settings.get("ftp_port") or 21,
        "path": backup_settings.get("ftp_path") or "/",
        "passive": backup_settings.get("ftp_passive", True),
        "ssl": backup_settings.get("ftp_ssl", False),
        "retention": backup_settings.get("ftp_retention") or 10,
    }


def s3_config_from_settings(backup_settings: dict[str, Any]) -> dict[str, Any]:
    return {
        "key": backup_settings["s3_key"],
        "secret": backup_settings["s3_secret"],
        "region": backup_settings.get("s3_region") or "eu-central-1",
        "bucket": backup_settings["s3_bucket"],
        "endpoint": backup_settings.get("s3_endpoint") or None,
        "path": backup_settings.get("s3_path") or "",
        "use_path_style": backup_settings.get("s3_use_path_style", False),
        "retention": backup_settings.get("s3_retention") or 10,
    }


def run_backup(
    db: Session,
    include_submissions: bool = False,
    local: bool = False,
    ftp: bool = False,
    s3: bool = False,
    all_destinations: bool = False,
) -> BackupResult:
    """
    Create a snapshot and send it to every selected destination.

    Local runs when asked for, with all_destinations, or when no remote
    destination was selected. Remote destinations missing their enablement
    flag or host/bucket are skipped with a warning. A single
    scheduled_backup audit entry is always written.
    """
    result = BackupResult(data=create_backup_data(db, include_submissions))
    filename = backup_filename()
    backup_settings = setting_service.get_backup_settings(db)

    if local or all_destinations or (not ftp and not s3):
        try:
            result.local_path = save_to_local(result.data, filename)
            result.destinations.append(BackupDestination.LOCAL.value)
        except Exception as exc:
            logger.error("Local backup failed: %s", exc)
            result.errors.append(f"{BackupDestination.LOCAL.value}: {exc}")

    if ftp or all_destinations:
        if backup_settings.get("ftp_enabled") and backup_settings.get("ftp_host"):
            try:
                upload_to_ftp(result.data, ftp_config_from_settings(backup_settings), filename)
                result.destinations.append(BackupDestination.FTP.value)
            except Exception as exc:
                result.errors.append(f"{BackupDestination.FTP.value}: {exc}")
        else:
            result.warnings.append("FTP backup skipped - not configured")

    if s3 or all_destinations:
        if backup_settings.get("s3_enabled") and backup_settings.get("s3_bucket"):
            try:
                upload_to_s3(result.data, s3_config_from_settings(backup_settings), filename)
                result.destinations.append(BackupDestination.S3.value)
            except Exception as exc:
                result.errors.append(f"{BackupDestination.S3.value}: {exc}")
        else:
            result.warnings.append("S3 backup skipped - not configured")

    for warning in result.warnings:
        logger.warning(warning)

    audit_service.log_scheduled_backup(
        db,
        {
            "include_submissions": include_submissions,
            "destinations": result.destinations,
            "errors": result.errors,
            "stats": result.data["stats"],
        },
    )
    db.commit()
    return result
