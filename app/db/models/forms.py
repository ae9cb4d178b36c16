"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import DEFAULT_SUBMISSION_STATUS
from app.utils.dates import utcnow
from app.utils.normalization import localized_text

if TYPE_CHECKING:
    from app.db.models import EmailTemplate, User, Workflow


class FormCategory(Base):
    """Grouping of forms shown on the public index."""

    __tablename__ = "form_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[Any] = mapped_column(JSON, nullable=False)  # str or {"sk": ..., "en": ...}
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    forms: Mapped[list["Form"]] = relationship(back_populates="category")


class Form(Base):
    """
    Form definition.

    `name` may be a plain string or a per-locale map; use `localized_name`
    whenever the name is shown to a person.
    """

    __tablename__ = "forms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[Any] = mapped_column(JSON, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    schema: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    settings: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    prevent_duplicates: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    duplicate_message: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    keywords: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    send_confirmation_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("form_categories.id", ondelete="SET NULL"), nullable=True
    )
    workflow_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="SET NULL", use_alter=True), nullable=True
    )
    email_template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )
    approval_email_template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )
    rejection_email_template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    category: Mapped["FormCategory | None"] = relationship(back_populates="forms")
    workflow: Mapped["Workflow | None"] = relationship(foreign_keys=[workflow_id])
    email_template: Mapped["EmailTemplate | None"] = relationship(
        foreign_keys=[email_template_id]
    )
    submissions: Mapped[list["FormSubmission"]] = relationship(back_populates="form")

    @property
    def localized_name(self) -> str:
        return localized_text(self.name)

    @property
    def fields(self) -> list[dict]:
        return (self.schema or {}).get("fields", [])


class FormSubmission(Base):
    """A user's answers to a form, moving through admin review."""

    __tablename__ = "form_submissions"
    __table_args__ = (
        Index("idx_submissions_form_status", "form_id", "status"),
        Index("idx_submissions_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_SUBMISSION_STATUS.value, nullable=False
    )
    admin_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    form: Mapped["Form"] = relationship(back_populates="submissions")
    user: Mapped["User | None"] = relationship(foreign_keys=[user_id])
    reviewer: Mapped["User | None"] = relationship(foreign_keys=[reviewed_by])
