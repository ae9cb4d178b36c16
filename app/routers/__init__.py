"""API routers."""

from app.routers.approvals import router as approvals_router

__all__ = ["approvals_router"]
