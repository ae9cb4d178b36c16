"""Encryption utilities for sensitive settings storage."""

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings


_fernet: Fernet | None = None


def is_encryption_configured() -> bool:
    return bool(settings.APP_KEY)


def get_fernet() -> Fernet:
    """Get or create Fernet instance for encryption/decryption."""
    global _fernet
    if _fernet is None:
        if not settings.APP_KEY:
            raise RuntimeError(
                "APP_KEY not configured. "
                'Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"'
            )
        _fernet = Fernet(settings.APP_KEY.encode())
    return _fernet


def reset_fernet() -> None:
    """Drop the cached instance (APP_KEY changed)."""
    global _fernet
    _fernet = None


def encrypt_secret(value: str) -> str:
    """Encrypt a secret for storage."""
    if not value:
        return ""
    return get_fernet().encrypt(value.encode()).decode()


def decrypt_secret(encrypted: str) -> str:
    """Decrypt a stored secret."""
    if not encrypted:
        return ""
    try:
        return get_fernet().decrypt(encrypted.encode()).decode()
    except InvalidToken:
        raise ValueError("Invalid or corrupted encrypted value")
