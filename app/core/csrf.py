"""CSRF utilities for double-submit cookie protection."""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Request, Response

from app.core.config import settings

CSRF_COOKIE_NAME = "XSRF-TOKEN"
CSRF_HEADER = "X-XSRF-TOKEN"
CSRF_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
# Token links mailed to approvers carry their own credential.
CSRF_EXEMPT_PREFIXES = ("/approvals/",)


def generate_csrf_token() -> str:
    """Generate a new CSRF token."""
    return secrets.token_urlsafe(32)


def get_csrf_cookie(request: Request) -> Optional[str]:
    """Fetch CSRF token from cookie."""
    return request.cookies.get(CSRF_COOKIE_NAME)


def set_csrf_cookie(response: Response, token: Optional[str] = None) -> str:
    """Set CSRF cookie and return the token used."""
    csrf_token = token or generate_csrf_token()
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=csrf_token,
        max_age=settings.SESSION_LIFETIME * 60,
        httponly=False,  # Must be readable by JS for X-XSRF-TOKEN header.
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return csrf_token


def validate_csrf(request: Request) -> bool:
    """Validate CSRF header against cookie."""
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(cookie_token, header_token)


def is_csrf_exempt(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in CSRF_EXEMPT_PREFIXES)
