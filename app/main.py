"""FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from app.core.config import settings
from app.core.middleware import install_middleware
from app.db.session import engine
from app.routers import approvals
from app.services import config_override_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Settings-table overrides for mail/Keycloak, once per process
    app.state.config_overrides = config_override_service.apply_all(engine)
    yield


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Form submissions, approvals and workflow automation",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

install_middleware(app)

# ============================================================================
# Routers
# ============================================================================

app.include_router(approvals.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/up")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.APP_VERSION}
