"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.utils.dates import utcnow

if TYPE_CHECKING:
    from app.db.models import User


class AuditLog(Base):
    """
    Audit trail of admin, workflow and system actions.

    Security:
    - Never stores secrets/credentials
    - System events (scheduled backups, workers) have no user
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_action_created", "action", "created_at"),
        Index("idx_audit_model", "model_type", "model_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditAction

    model_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    user: Mapped["User | None"] = relationship()
