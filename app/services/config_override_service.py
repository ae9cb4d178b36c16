"""
Config overrides - replace static mail/Keycloak config with values stored
in the settings table.

Each loader returns an OverrideResult instead of swallowing errors; callers
decide how to surface them. apply_all() runs once per process at startup.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.core import runtime_config
from app.services import setting_service

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "settings"


@dataclass(frozen=True)
class OverrideResult:
    applied: bool
    error: str | None = None


def _settings_table_exists(db: Session) -> bool:
    return inspect(db.get_bind()).has_table(SETTINGS_TABLE)


def apply_mail_overrides(db: Session) -> OverrideResult:
    """Override the runtime mail config when a mail host is configured."""
    try:
        if not _settings_table_exists(db):
            return OverrideResult(applied=False)

        values = setting_service.get_mail_settings(db)
        if not values.get("host"):
            return OverrideResult(applied=False)

        encryption = values.get("encryption")
        runtime_config.mail_config.__dict__.update(
            host=values["host"],
            port=values["port"],
            username=values.get("username") or "",
            password=values.get("password") or "",
            encryption=None if encryption in (None, "", "null") else encryption,
            from_address=values.get("from_address") or "",
            from_name=values.get("from_name") or "",
        )
        return OverrideResult(applied=True)
    except Exception as e:
        return OverrideResult(applied=False, error=str(e))


def apply_keycloak_overrides(db: Session) -> OverrideResult:
    """Override the runtime Keycloak config when its base URL is stored in the DB."""
    try:
        if not _settings_table_exists(db):
            return OverrideResult(applied=False)

        if not setting_service.has_keycloak_settings(db):
            return OverrideResult(applied=False)

        values = setting_service.get_keycloak_settings(db)
        runtime_config.keycloak_config.__dict__.update(
            base_url=values["base_url"],
            realm=values["realm"],
            client_id=values["client_id"],
            client_secret=values["client_secret"],
            redirect_uri=values["redirect_uri"],
        )
        return OverrideResult(applied=True)
    except Exception as e:
        return OverrideResult(applied=False, error=str(e))


def apply_all(engine: Engine) -> dict[str, OverrideResult]:
    """Apply every override; errors are logged as warnings, never raised."""
    results: dict[str, OverrideResult] = {}
    with Session(engine) as db:
        for name, loader in (
            ("mail", apply_mail_overrides),
            ("keycloak", apply_keycloak_overrides),
        ):
            result = loader(db)
            # Leave the session usable for the next loader
            db.rollback()
            results[name] = result
            if result.error:
                logger.warning("Config override %s failed: %s", name, result.error)
            elif result.applied:
                logger.info("Config override %s applied from settings table", name)
    return results
