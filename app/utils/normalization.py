"""Text normalization utilities."""

import re
import unicodedata
from typing import Any

PREFERRED_LOCALES = ("sk", "en")


def slugify(value: str) -> str:
    """ASCII slug: "Žiadosť o dovolenku" -> "ziadost-o-dovolenku"."""
    normalized = unicodedata.normalize("NFKD", value or "")
    ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_only.lower())
    return slug.strip("-")


def localized_text(value: Any, locale: str | None = None) -> str:
    """
    Resolve a value that may be a plain string or a per-locale mapping.

    Mappings (dicts, or objects carrying locale attributes) prefer the
    requested locale, then Slovak, then English, then an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)

    locales = ((locale,) if locale else ()) + PREFERRED_LOCALES
    for key in locales:
        if isinstance(value, dict):
            candidate = value.get(key)
        else:
            candidate = getattr(value, key, None)
        if candidate is not None:
            return str(candidate)
    return ""
