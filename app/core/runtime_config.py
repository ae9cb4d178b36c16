"""
Runtime (overridable) configuration.

Static values come from `settings`; at boot the config override service may
replace them with values from the settings table. Consumers read these
objects at call time, never at import time.
"""

from dataclasses import dataclass

from app.core.config import settings


@dataclass
class MailConfig:
    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    encryption: str | None = "tls"
    from_address: str = ""
    from_name: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


@dataclass
class KeycloakConfig:
    base_url: str = ""
    realm: str = ""
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""


def _mail_from_settings() -> MailConfig:
    return MailConfig(
        host=settings.MAIL_HOST,
        port=settings.MAIL_PORT,
        username=settings.MAIL_USERNAME,
        password=settings.MAIL_PASSWORD,
        encryption=settings.MAIL_ENCRYPTION or None,
        from_address=settings.MAIL_FROM_ADDRESS,
        from_name=settings.MAIL_FROM_NAME,
    )


def _keycloak_from_settings() -> KeycloakConfig:
    return KeycloakConfig(
        base_url=settings.KEYCLOAK_BASE_URL,
        realm=settings.KEYCLOAK_REALM,
        client_id=settings.KEYCLOAK_CLIENT_ID,
        client_secret=settings.KEYCLOAK_CLIENT_SECRET,
        redirect_uri=settings.KEYCLOAK_REDIRECT_URI,
    )


mail_config = _mail_from_settings()
keycloak_config = _keycloak_from_settings()


def reset_runtime_config() -> None:
    """Restore static values in place (tests, reload)."""
    for target, source in (
        (mail_config, _mail_from_settings()),
        (keycloak_config, _keycloak_from_settings()),
    ):
        target.__dict__.update(source.__dict__)
