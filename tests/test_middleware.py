"""Tests for the session/CSRF middleware stack and the health check."""

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from app.core.csrf import CSRF_COOKIE_NAME, CSRF_HEADER
from app.core.middleware import install_middleware


def _build_app() -> FastAPI:
    app = FastAPI()
    install_middleware(app)

    @app.post("/login")
    def login(request: Request):
        request.session["user_id"] = "5f0c1e3a-1111-4a2b-9c3d-000000000001"
        return {"ok": True}

    @app.post("/submissions")
    def create(request: Request):
        return {"ok": True}

    @app.post("/approvals/{token}")
    def approve(token: str):
        return {"ok": True}

    return app


@pytest.fixture
async def session_client():
    async with AsyncClient(transport=ASGITransport(app=_build_app()), base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_csrf_cookie_is_issued(session_client):
    response = await session_client.post("/submissions")

    assert response.status_code == 200
    assert CSRF_COOKIE_NAME in response.cookies


@pytest.mark.asyncio
async def test_mutation_without_session_is_not_checked(session_client):
    response = await session_client.post("/submissions")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_session_mutation_requires_matching_token(session_client):
    await session_client.post("/login")

    missing = await session_client.post("/submissions")
    wrong = await session_client.post("/submissions", headers={CSRF_HEADER: "nope"})
    token = session_client.cookies.get(CSRF_COOKIE_NAME)
    ok = await session_client.post("/submissions", headers={CSRF_HEADER: token})

    assert missing.status_code == 403
    assert missing.json() == {"detail": "CSRF token mismatch"}
    assert wrong.status_code == 403
    assert ok.status_code == 200


@pytest.mark.asyncio
async def test_approval_links_are_csrf_exempt(session_client):
    await session_client.post("/login")

    response = await session_client.post("/approvals/abc")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/up")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
