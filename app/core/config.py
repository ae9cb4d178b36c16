"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # Application
    APP_NAME: str = "Formulare"
    APP_VERSION: str = "1.0.0"
    APP_URL: str = "http://localhost"
    APP_TIMEZONE: str = "Europe/Bratislava"
    APP_LOCALE: str = "sk"
    APP_FALLBACK_LOCALE: str = "en"

    # Fernet key for sensitive rows in the settings table (empty = plaintext)
    APP_KEY: str = ""

    # Database
    DATABASE_URL: str = "sqlite:///./formulare.db"

    # Proxy/Load Balancer Settings
    # Empty trusts no proxy, "*" trusts all, otherwise comma-separated IPs/CIDRs
    TRUSTED_PROXIES: str = ""

    # CORS
    CORS_ALLOWED_ORIGIN: str = ""
    CORS_ORIGIN_PATTERN: str = ""  # e.g. ^https://.*\.example\.com$

    # Session cookie
    SESSION_SECRET: str = "change-this-in-production"
    SESSION_COOKIE: str = "formulare_session"
    SESSION_LIFETIME: int = 120  # minutes
    SESSION_DOMAIN: str = ""
    SESSION_SECURE_COOKIE: bool = True

    # Mail (static defaults, overridable from the settings table)
    MAIL_HOST: str = ""
    MAIL_PORT: int = 587
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_ENCRYPTION: str = "tls"
    MAIL_FROM_ADDRESS: str = ""
    MAIL_FROM_NAME: str = "Forms"

    # Keycloak OAuth (static defaults, overridable from the settings table)
    KEYCLOAK_BASE_URL: str = ""
    KEYCLOAK_REALM: str = ""
    KEYCLOAK_CLIENT_ID: str = ""
    KEYCLOAK_CLIENT_SECRET: str = ""
    KEYCLOAK_REDIRECT_URI: str = ""

    # Storage
    BACKUP_LOCAL_DIR: str = "./storage/backups"
    REPORT_DIR: str = "./storage/reports"
    # Unicode TTF for PDF reports; a "-Bold" sibling is used for headings when present
    REPORT_FONT_PATH: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"

    # Worker
    WORKER_POLL_INTERVAL: int = 10
    WORKER_BATCH_SIZE: int = 10

    @property
    def cors_origins_list(self) -> list[str]:
        """APP_URL plus the optional extra origin, empty values removed."""
        return [o.strip() for o in (self.APP_URL, self.CORS_ALLOWED_ORIGIN) if o and o.strip()]

    @property
    def trusted_proxies_list(self) -> list[str]:
        """Parse TRUSTED_PROXIES into a list ("*" stays a single wildcard)."""
        value = self.TRUSTED_PROXIES.strip()
        if not value:
            return []
        if value == "*":
            return ["*"]
        return [p.strip() for p in value.split(",") if p.strip()]

    @property
    def cookie_secure(self) -> bool:
        return self.SESSION_SECURE_COOKIE


settings = Settings()
