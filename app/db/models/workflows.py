"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import secrets
import string
import uuid
from datetime import datetime, timedelta

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import DEFAULT_APPROVAL_STATUS, DEFAULT_EXECUTION_STATUS
from app.utils.dates import as_utc, utcnow

if TYPE_CHECKING:
    from app.db.models import FormSubmission


class Workflow(Base):
    """
    Node/edge graph executed for form submissions.

    `nodes` is a list of {"id", "type", "data"}; `edges` is a list of
    {"source", "target", "sourceHandle"?}. Workflows with no form_id are
    standalone (global) definitions.
    """

    __tablename__ = "workflows"
    __table_args__ = (Index("idx_workflows_form_trigger", "form_id", "trigger_on", "is_active"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    form_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=True
    )
    trigger_on: Mapped[str] = mapped_column(String(50), default="submission", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    nodes: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    edges: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    executions: Mapped[list["WorkflowExecution"]] = relationship(back_populates="workflow")


class WorkflowExecution(Base):
    """
    One run of a workflow for one submission.

    `logs` is append-only: use add_log(), never rewrite earlier entries.
    """

    __tablename__ = "workflow_executions"
    __table_args__ = (Index("idx_wf_exec_status", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False
    )
    submission_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("form_submissions.id", ondelete="SET NULL"), nullable=True
    )
    current_node_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), default=DEFAULT_EXECUTION_STATUS.value, nullable=False
    )
    context: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    logs: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    workflow: Mapped["Workflow"] = relationship(back_populates="executions")
    submission: Mapped["FormSubmission | None"] = relationship()
    approval_requests: Mapped[list["ApprovalRequest"]] = relationship(
        back_populates="execution", cascade="all, delete-orphan"
    )

    def add_log(self, message: str, data: dict | None = None) -> None:
        # Reassign so the JSON column is flagged dirty.
        self.logs = [
            *(self.logs or []),
            {"timestamp": utcnow().isoformat(), "message": message, "data": data or {}},
        ]


APPROVAL_TOKEN_VALIDITY = timedelta(days=7)
APPROVAL_TOKEN_LENGTH = 64
_TOKEN_ALPHABET = string.ascii_letters + string.digits


def new_approval_token() -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(APPROVAL_TOKEN_LENGTH))


def default_approval_expiry() -> datetime:
    return utcnow() + APPROVAL_TOKEN_VALIDITY


class ApprovalRequest(Base):
    """Pending human decision raised by an approval node."""

    __tablename__ = "approval_requests"
    __table_args__ = (Index("idx_approval_status_expires", "status", "expires_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_execution_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflow_executions.id", ondelete="CASCADE"), nullable=False
    )
    node_id: Mapped[str] = mapped_column(String(100), nullable=False)
    token: Mapped[str] = mapped_column(
        String(APPROVAL_TOKEN_LENGTH), unique=True, nullable=False, default=new_approval_token
    )
    approver_email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPROVAL_STATUS.value, nullable=False
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        nullable=True, default=default_approval_expiry
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    execution: Mapped["WorkflowExecution"] = relationship(back_populates="approval_requests")

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) < (now or utcnow())
