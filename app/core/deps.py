"""FastAPI dependencies."""

from typing import Generator
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from app.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_user_id(request: Request) -> UUID | None:
    """Logged-in user id from the session cookie, if any."""
    raw = request.session.get("user_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None
