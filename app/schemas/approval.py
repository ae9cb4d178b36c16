"""Pydantic schemas for workflow approvals."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.services.approval_service import MAX_COMMENT_LENGTH


class ApprovalDecision(BaseModel):
    """Body of POST /approvals/{token}."""

    approved: bool
    comment: str | None = Field(default=None, max_length=MAX_COMMENT_LENGTH)


class ApprovalRead(BaseModel):
    """Approval request as shown on the public approval page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    node_id: str
    status: str
    comment: str | None = None
    expires_at: datetime | None = None
    responded_at: datetime | None = None
    form_name: str | None = None
    submission_data: dict | None = None
