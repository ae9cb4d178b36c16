"""HTTP middleware wiring: proxies, CORS, session cookie, CSRF."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.core.config import settings
from app.core.csrf import (
    CSRF_SAFE_METHODS,
    get_csrf_cookie,
    is_csrf_exempt,
    set_csrf_cookie,
    validate_csrf,
)

logger = logging.getLogger(__name__)

CORS_ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOWED_HEADERS = [
    "Content-Type",
    "X-Requested-With",
    "Authorization",
    "X-XSRF-TOKEN",
    "X-HTTP-Method-Override",
    "Accept",
]
CORS_MAX_AGE = 86400
SESSION_USER_KEY = "user_id"


class CsrfMiddleware(BaseHTTPMiddleware):
    """
    Double-submit CSRF check for session-authenticated mutations.

    Requests without a session user and token-credentialed routes are not
    checked. Responses carry an XSRF-TOKEN cookie when the client has none.
    """

    async def dispatch(self, request: Request, call_next):
        if (
            request.method not in CSRF_SAFE_METHODS
            and not is_csrf_exempt(request.url.path)
            and request.session.get(SESSION_USER_KEY)
            and not validate_csrf(request)
        ):
            logger.info(
                "CSRF rejected method=%s path=%s", request.method, request.url.path
            )
            return JSONResponse(status_code=403, content={"detail": "CSRF token mismatch"})

        response = await call_next(request)
        if not get_csrf_cookie(request):
            set_csrf_cookie(response)
        return response


def install_middleware(app: FastAPI) -> None:
    """Register middleware. Starlette runs the last added one outermost."""
    app.add_middleware(CsrfMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_COOKIE,
        max_age=settings.SESSION_LIFETIME * 60,
        same_site="lax",
        https_only=settings.cookie_secure,
        domain=settings.SESSION_DOMAIN or None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_origin_regex=settings.CORS_ORIGIN_PATTERN or None,
        allow_credentials=True,
        allow_methods=CORS_ALLOWED_METHODS,
        allow_headers=CORS_ALLOWED_HEADERS,
        max_age=CORS_MAX_AGE,
    )
    trusted = settings.trusted_proxies_list
    if trusted:
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=trusted)
