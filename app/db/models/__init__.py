"""SQLAlchemy ORM models."""

from app.db.models.audit import AuditLog
from app.db.models.auth import User
from app.db.models.email import EmailTemplate
from app.db.models.forms import Form, FormCategory, FormSubmission
from app.db.models.jobs import Job
from app.db.models.settings import Setting
from app.db.models.workflows import ApprovalRequest, Workflow, WorkflowExecution

__all__ = [
    "ApprovalRequest",
    "AuditLog",
    "EmailTemplate",
    "Form",
    "FormCategory",
    "FormSubmission",
    "Job",
    "Setting",
    "User",
    "Workflow",
    "WorkflowExecution",
]
