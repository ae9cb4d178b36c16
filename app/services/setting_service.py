"""Settings store - key/value configuration with encrypted secrets.

Values are stored as text. Sensitive keys are Fernet-encrypted when APP_KEY
is configured; values that fail to decrypt (stored before encryption was
enabled) are returned unchanged.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.encryption import decrypt_secret, encrypt_secret, is_encryption_configured
from app.db.models import Setting
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


ENCRYPTED_KEYS = frozenset(
    {
        "mail_password",
        "keycloak_client_secret",
        "backup_ftp_password",
        "backup_s3_secret",
    }
)

_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


def should_encrypt(key: str) -> bool:
    return key in ENCRYPTED_KEYS


def _to_storage(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() not in _FALSE_STRINGS


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def get(db: Session, key: str, default: Any = None) -> Any:
    """Get a setting value by key (auto-decrypts sensitive values)."""
    row = db.query(Setting).filter(Setting.key == key).first()
    if row is None:
        return default

    value = row.value
    if should_encrypt(key) and value and is_encryption_configured():
        try:
            return decrypt_secret(value)
        except ValueError:
            # Stored before encryption was enabled
            return value
    return value


def set(db: Session, key: str, value: Any, commit: bool = True) -> Setting:
    """Create or update a setting (auto-encrypts sensitive values)."""
    stored = _to_storage(value)
    if should_encrypt(key) and stored and is_encryption_configured():
        stored = encrypt_secret(stored)

    row = db.query(Setting).filter(Setting.key == key).first()
    if row is None:
        row = Setting(key=key, value=stored)
        db.add(row)
    else:
        row.value = stored
        row.updated_at = utcnow()
    if commit:
        db.commit()
    else:
        db.flush()
    return row


def _save_group(db: Session, prefix: str, values: dict[str, Any]) -> list[str]:
    keys = []
    for key, value in values.items():
        full_key = f"{prefix}_{key}"
        set(db, full_key, value, commit=False)
        keys.append(full_key)
    db.commit()
    return keys


# =============================================================================
# Mail
# =============================================================================

def get_mail_settings(db: Session) -> dict[str, Any]:
    """Mail settings, falling back to environment values when empty."""
    return {
        "host": get(db, "mail_host") or settings.MAIL_HOST,
        "port": _as_int(get(db, "mail_port") or settings.MAIL_PORT, 587),
        "username": get(db, "mail_username") or settings.MAIL_USERNAME,
        "password": get(db, "mail_password") or settings.MAIL_PASSWORD,
        "encryption": get(db, "mail_encryption") or settings.MAIL_ENCRYPTION,
        "from_address": get(db, "mail_from_address") or settings.MAIL_FROM_ADDRESS,
        "from_name": get(db, "mail_from_name") or settings.MAIL_FROM_NAME,
    }


def save_mail_settings(db: Session, values: dict[str, Any]) -> list[str]:
    return _save_group(db, "mail", values)


# =============================================================================
# Keycloak
# =============================================================================

def get_keycloak_settings(db: Session) -> dict[str, Any]:
    """Keycloak settings, falling back to environment values when empty."""
    return {
        "base_url": get(db, "keycloak_base_url") or settings.KEYCLOAK_BASE_URL,
        "realm": get(db, "keycloak_realm") or settings.KEYCLOAK_REALM,
        "client_id": get(db, "keycloak_client_id") or settings.KEYCLOAK_CLIENT_ID,
        "client_secret": get(db, "keycloak_client_secret") or settings.KEYCLOAK_CLIENT_SECRET,
        "redirect_uri": get(db, "keycloak_redirect_uri") or settings.KEYCLOAK_REDIRECT_URI,
    }


def save_keycloak_settings(db: Session, values: dict[str, Any]) -> list[str]:
    return _save_group(db, "keycloak", values)


def has_keycloak_settings(db: Session) -> bool:
    """True only when the base URL is stored in the database (env does not count)."""
    return bool(get(db, "keycloak_base_url"))


# =============================================================================
# Branding
# =============================================================================

def get_branding_settings(db: Session) -> dict[str, Any]:
    return {
        "site_name": get(db, "branding_site_name", "Forms"),
        "site_subtitle": get(db, "branding_site_subtitle", ""),
        "organization_name": get(db, "branding_organization_name", "Your Organization"),
        "footer_text": get(db, "branding_footer_text", ""),
        "primary_color": get(db, "branding_primary_color", "#1e3a5f"),
        "accent_color": get(db, "branding_accent_color", "#c9a227"),
        "logo": get(db, "branding_logo", ""),
        "support_email": get(db, "branding_support_email", ""),
    }


def save_branding_settings(db: Session, values: dict[str, Any]) -> list[str]:
    return _save_group(db, "branding", values)


# =============================================================================
# Backup
# =============================================================================

def get_backup_settings(db: Session) -> dict[str, Any]:
    return {
        # Schedule
        "enabled": _as_bool(get(db, "backup_enabled", False)),
        "frequency": get(db, "backup_frequency", "daily"),  # daily, weekly, monthly
        "time": get(db, "backup_time", "02:00"),  # HH:MM
        "include_submissions": _as_bool(get(db, "backup_include_submissions", False)),
        "retention_local": _as_int(get(db, "backup_retention_local", 10), 10),
        # FTP
        "ftp_enabled": _as_bool(get(db, "backup_ftp_enabled", False)),
        "ftp_host": get(db, "backup_ftp_host", ""),
        "ftp_port": _as_int(get(db, "backup_ftp_port", 21), 21),
        "ftp_username": get(db, "backup_ftp_username", ""),
        "ftp_password": get(db, "backup_ftp_password", ""),
        "ftp_path": get(db, "backup_ftp_path", "/"),
        "ftp_passive": _as_bool(get(db, "backup_ftp_passive", True)),
        "ftp_ssl": _as_bool(get(db, "backup_ftp_ssl", False)),
        "ftp_retention": _as_int(get(db, "backup_ftp_retention", 10), 10),
        # S3
        "s3_enabled": _as_bool(get(db, "backup_s3_enabled", False)),
        "s3_key": get(db, "backup_s3_key", ""),
        "s3_secret": get(db, "backup_s3_secret", ""),
        "s3_region": get(db, "backup_s3_region", "eu-central-1"),
        "s3_bucket": get(db, "backup_s3_bucket", ""),
        "s3_endpoint": get(db, "backup_s3_endpoint", ""),
        "s3_path": get(db, "backup_s3_path", ""),
        "s3_use_path_style": _as_bool(get(db, "backup_s3_use_path_style", False)),
        "s3_retention": _as_int(get(db, "backup_s3_retention", 10), 10),
    }


def save_backup_settings(db: Session, values: dict[str, Any]) -> list[str]:
    return _save_group(db, "backup", values)
