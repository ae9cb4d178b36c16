"""Tests for the public approval endpoints."""

from datetime import timedelta

import pytest

from app.db.enums import ApprovalStatus, AuditAction, JobType, WorkflowExecutionStatus
from app.db.models import ApprovalRequest, AuditLog, Job
from app.services import approval_service
from app.utils.dates import utcnow

NODES = [
    {"id": "start", "type": "start", "data": {}},
    {"id": "ok", "type": "approval", "data": {"approver_email": "boss@example.com"}},
    {"id": "end", "type": "end", "data": {}},
]
EDGES = [{"source": "start", "target": "ok"}, {"source": "ok", "target": "end"}]


@pytest.fixture
def approval(db, make_workflow, make_execution, test_submission) -> ApprovalRequest:
    execution = make_execution(
        make_workflow(test_submission.form, NODES, EDGES),
        submission=test_submission,
        current_node_id="ok",
        status=WorkflowExecutionStatus.WAITING_APPROVAL,
    )
    request = ApprovalRequest(
        workflow_execution_id=execution.id,
        node_id="ok",
        approver_email="boss@example.com",
    )
    db.add(request)
    db.commit()
    return request


@pytest.mark.asyncio
async def test_show_approval(client, approval):
    response = await client.get(f"/approvals/{approval.token}")

    assert response.status_code == 200
    assert response.headers["Referrer-Policy"] == "no-referrer"
    body = response.json()
    assert body["status"] == "pending"
    assert body["form_name"] == "Žiadosť o dovolenku"
    assert body["submission_data"]["reason"] == "Rodinná dovolenka"


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["short", "x" * 63 + "!", "a" * 65])
async def test_malformed_token_is_not_found(client, token):
    response = await client.get(f"/approvals/{token}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_token_is_not_found(client, db):
    response = await client.get(f"/approvals/{'a' * 64}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_expired_token_is_gone(client, db, approval):
    approval.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    show = await client.get(f"/approvals/{approval.token}")
    decide = await client.post(f"/approvals/{approval.token}", json={"approved": True})

    assert show.status_code == 410
    assert show.json()["detail"] == "Platnosť odkazu vypršala"
    assert decide.status_code == 410


@pytest.mark.asyncio
async def test_approve_resumes_workflow(client, db, approval):
    response = await client.post(
        f"/approvals/{approval.token}",
        json={"approved": True, "comment": "<b>Súhlasím</b>"},
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Schválené"}

    db.expire_all()
    assert approval.status == ApprovalStatus.APPROVED.value
    assert approval.comment == "Súhlasím"
    assert approval.responded_at is not None
    assert approval.execution.status == WorkflowExecutionStatus.RUNNING.value
    assert approval.execution.current_node_id == "end"
    assert db.query(Job).filter(Job.job_type == JobType.WORKFLOW_STEP.value).count() == 1

    audit = db.query(AuditLog).filter(AuditLog.action == AuditAction.APPROVAL_APPROVED.value).one()
    assert audit.model_id == str(approval.id)


@pytest.mark.asyncio
async def test_reject_stops_workflow(client, db, approval):
    response = await client.post(f"/approvals/{approval.token}", json={"approved": False})

    assert response.status_code == 200
    assert response.json() == {"message": "Zamietnuté"}

    db.expire_all()
    assert approval.status == ApprovalStatus.REJECTED.value
    assert approval.execution.status == WorkflowExecutionStatus.STOPPED.value
    assert approval.execution.logs[-1]["message"] == "Approval rejected"


@pytest.mark.asyncio
async def test_answered_token_cannot_be_reused(client, db, approval):
    first = await client.post(f"/approvals/{approval.token}", json={"approved": False})
    second = await client.post(f"/approvals/{approval.token}", json={"approved": True})

    assert first.status_code == 200
    assert second.status_code == 404


@pytest.mark.asyncio
async def test_comment_length_is_validated(client, approval):
    response = await client.post(
        f"/approvals/{approval.token}", json={"approved": True, "comment": "x" * 5001}
    )

    assert response.status_code == 422


def test_cleanup_expired_keeps_answered_requests(db, approval):
    approval.expires_at = utcnow() - timedelta(days=1)
    approval.status = ApprovalStatus.APPROVED.value
    db.commit()

    assert approval_service.cleanup_expired(db) == 0
    assert db.query(ApprovalRequest).count() == 1


class FailingSender:
    def send(self, to_email, message):
        raise OSError("smtp connection lost")


@pytest.mark.asyncio
async def test_approval_link_closed_when_execution_fails(
    client, db, make_workflow, make_execution, test_submission
):
    from app.services import email_sender
    from app.services.workflow_engine import engine

    execution = make_execution(
        make_workflow(test_submission.form, NODES, EDGES),
        submission=test_submission,
        current_node_id="ok",
    )
    email_sender.set_sender(FailingSender())

    engine.execute_step(db, execution)

    approval = db.query(ApprovalRequest).one()
    assert execution.status == WorkflowExecutionStatus.FAILED.value
    assert approval.status == ApprovalStatus.REJECTED.value

    show = await client.get(f"/approvals/{approval.token}")
    decide = await client.post(f"/approvals/{approval.token}", json={"approved": True})

    assert show.json()["status"] == "rejected"
    assert decide.status_code == 404


@pytest.mark.asyncio
async def test_decision_requires_waiting_execution(client, db, approval):
    approval.execution.status = WorkflowExecutionStatus.STOPPED.value
    db.commit()

    response = await client.post(f"/approvals/{approval.token}", json={"approved": True})

    assert response.status_code == 404
    db.expire_all()
    assert approval.status == ApprovalStatus.PENDING.value
    assert db.query(Job).count() == 0
