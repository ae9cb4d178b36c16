"""Public approval endpoints (token from the approval e-mail link)."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_session_user_id
from app.db.models.workflows import APPROVAL_TOKEN_LENGTH
from app.schemas.approval import ApprovalDecision, ApprovalRead
from app.services import approval_service

router = APIRouter(prefix="/approvals", tags=["approvals"])

EXPIRED_MESSAGE = "Platnosť odkazu vypršala"


def _check_token_format(token: str) -> None:
    if len(token) != APPROVAL_TOKEN_LENGTH or not token.isalnum() or not token.isascii():
        raise HTTPException(status_code=404, detail="Approval request not found")


@router.get("/{token}", response_model=ApprovalRead)
def show_approval(token: str, response: Response, db: Session = Depends(get_db)) -> ApprovalRead:
    """Approval details; the token itself is the credential."""
    # Keep the token out of Referer headers on outgoing links
    response.headers["Referrer-Policy"] = "no-referrer"
    _check_token_format(token)

    approval = approval_service.get_by_token(db, token)
    if not approval:
        raise HTTPException(status_code=404, detail="Approval request not found")
    if approval.is_expired():
        raise HTTPException(status_code=410, detail=EXPIRED_MESSAGE)

    submission = approval.execution.submission
    form = submission.form if submission else None
    return ApprovalRead(
        id=approval.id,
        node_id=approval.node_id,
        status=approval.status,
        comment=approval.comment,
        expires_at=approval.expires_at,
        responded_at=approval.responded_at,
        form_name=form.localized_name if form else None,
        submission_data=submission.data if submission else None,
    )


@router.post("/{token}")
def decide_approval(
    token: str,
    data: ApprovalDecision,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    """Approve or reject a pending request."""
    response.headers["Referrer-Policy"] = "no-referrer"
    _check_token_format(token)

    try:
        approval_service.resolve(
            db,
            token,
            approved=data.approved,
            comment=data.comment,
            user_id=get_session_user_id(request),
            request=request,
        )
    except approval_service.ApprovalNotFound:
        raise HTTPException(status_code=404, detail="Approval request not found")
    except approval_service.ApprovalExpired:
        raise HTTPException(status_code=410, detail=EXPIRED_MESSAGE)

    return {"message": "Schválené" if data.approved else "Zamietnuté"}
