"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test
- Model factories (users, forms, submissions, workflows, templates)
- Recording mail sender in place of SMTP
- HTTPX AsyncClient bound to the FastAPI app
"""
import os
import uuid
from typing import AsyncGenerator, Generator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_URL"] = "https://forms.example.com"
os.environ["APP_KEY"] = ""
os.environ["MAIL_HOST"] = ""
os.environ["SESSION_SECURE_COOKIE"] = "False"
os.environ["TRUSTED_PROXIES"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.core import runtime_config
from app.core.config import settings
from app.core.deps import get_db
from app.db.base import Base
from app.db.enums import SubmissionStatus, WorkflowExecutionStatus
from app.db.models import (
    EmailTemplate,
    Form,
    FormCategory,
    FormSubmission,
    User,
    Workflow,
    WorkflowExecution,
)
from app.db.session import SessionLocal, engine
from app.main import app
from app.services import email_sender


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session on a freshly created schema.

    The engine uses a StaticPool, so every SessionLocal() in app code sees
    the same in-memory database.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def backup_dir(tmp_path, monkeypatch) -> str:
    """Keep local backups and reports inside the test's tmp dir."""
    path = tmp_path / "backups"
    monkeypatch.setattr(settings, "BACKUP_LOCAL_DIR", str(path))
    monkeypatch.setattr(settings, "REPORT_DIR", str(tmp_path / "reports"))
    return str(path)


@pytest.fixture(autouse=True)
def _reset_runtime_config():
    runtime_config.reset_runtime_config()
    yield
    runtime_config.reset_runtime_config()


# =============================================================================
# Mail
# =============================================================================

class RecordingSender:
    """Collects messages instead of talking to SMTP."""

    key = "recording"

    def __init__(self):
        self.sent: list[tuple[str, email_sender.MailMessage]] = []

    def send(self, to_email: str, message: email_sender.MailMessage) -> bool:
        self.sent.append((to_email, message))
        return True


@pytest.fixture(autouse=True)
def mail_outbox() -> Generator[RecordingSender, None, None]:
    sender = RecordingSender()
    email_sender.set_sender(sender)
    yield sender
    email_sender.set_sender(None)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture(scope="function")
def test_user(db: Session) -> User:
    user = User(
        id=uuid.uuid4(),
        name="Ján Novák",
        email=f"user-{uuid.uuid4().hex[:8]}@example.com",
        login=f"jnovak{uuid.uuid4().hex[:4]}",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def test_category(db: Session) -> FormCategory:
    category = FormCategory(
        name={"sk": "Personálne", "en": "HR"},
        slug=f"hr-{uuid.uuid4().hex[:6]}",
        order=1,
    )
    db.add(category)
    db.commit()
    return category


@pytest.fixture(scope="function")
def test_form(db: Session, test_category: FormCategory) -> Form:
    form = Form(
        name={"sk": "Žiadosť o dovolenku", "en": "Leave request"},
        slug=f"leave-{uuid.uuid4().hex[:6]}",
        schema={
            "fields": [
                {"name": "days", "type": "number", "label": {"sk": "Počet dní", "en": "Days"}},
                {"name": "reason", "type": "text", "label": "Dôvod"},
                {"name": "tags", "type": "checkbox", "label": "Štítky"},
            ]
        },
        category_id=test_category.id,
        is_active=True,
    )
    db.add(form)
    db.commit()
    return form


@pytest.fixture(scope="function")
def test_submission(db: Session, test_form: Form, test_user: User) -> FormSubmission:
    submission = FormSubmission(
        form_id=test_form.id,
        user_id=test_user.id,
        data={"days": 5, "reason": "Rodinná dovolenka", "tags": ["leto", "more"]},
        status=SubmissionStatus.PENDING.value,
    )
    db.add(submission)
    db.commit()
    return submission


@pytest.fixture(scope="function")
def test_template(db: Session) -> EmailTemplate:
    template = EmailTemplate(
        name="Potvrdenie",
        slug=f"confirmation-{uuid.uuid4().hex[:6]}",
        subject="Prijali sme: {{form_name}}",
        body_html="<p>Dobrý deň {{user_name}}, formulár {{form_name}} bol prijatý.</p>",
        body_text=None,
        is_active=True,
        is_default=True,
    )
    db.add(template)
    db.commit()
    return template


@pytest.fixture(scope="function")
def make_workflow(db: Session):
    """Factory: make_workflow(form, nodes, edges) -> Workflow."""

    def _make(form: Form | None, nodes: list[dict], edges: list[dict]) -> Workflow:
        workflow = Workflow(
            name="Test workflow",
            form_id=form.id if form else None,
            trigger_on="submission",
            is_active=True,
            nodes=nodes,
            edges=edges,
        )
        db.add(workflow)
        db.commit()
        return workflow

    return _make


@pytest.fixture(scope="function")
def make_execution(db: Session):
    """Factory: make_execution(workflow, submission=None, current_node_id=None, context=None, status=running)."""

    def _make(
        workflow: Workflow,
        submission: FormSubmission | None = None,
        current_node_id: str | None = None,
        context: dict | None = None,
        status: WorkflowExecutionStatus = WorkflowExecutionStatus.RUNNING,
    ) -> WorkflowExecution:
        execution = WorkflowExecution(
            workflow_id=workflow.id,
            submission_id=submission.id if submission else None,
            status=status.value,
            current_node_id=current_node_id,
            context=context or {},
            logs=[],
        )
        db.add(execution)
        db.commit()
        return execution

    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
