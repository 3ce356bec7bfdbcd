from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ....application.dto import InvitationEntry
from ....application.use_cases.invitations import (
    CheckInvitationToken,
    CreateInvitations,
    ListInvitations,
    ManageInvitation,
)
from ....domain.entities import InvitationStatus
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ....infrastructure.mailer import EmailSender, get_email_sender
from ..authz import AuthContext, require_capability
from ..responses import ok
from ..schemas import InvitationBatchReq, InvitationOut, InvitationResultOut, TokenCheckOut

router = APIRouter(prefix="/invitations", tags=["invitations"])

manager = require_capability(Capability.MANAGE_INVITATIONS)


@router.get("")
def list_invitations(
    ctx: AuthContext = Depends(manager),
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
):
    result = ListInvitations(db).execute(
        ctx.user,
        page=page,
        limit=limit,
        status=status_filter.value if status_filter else None,
        search=search,
    )
    return ok(
        "Invitations retrieved successfully",
        {
            "invitations": [InvitationOut.model_validate(r) for r in result.items],
            "pagination": {
                "total": result.total,
                "page": result.page,
                "pages": result.pages,
                "limit": result.limit,
            },
        },
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_invitations(
    payload: InvitationBatchReq,
    ctx: AuthContext = Depends(manager),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    entries = [InvitationEntry(email=u.email, role=u.role, school_id=u.school_id) for u in payload.users]
    result = CreateInvitations(db=db, sender=sender).execute(ctx.user, entries)
    return ok(
        f"Created {len(result.created)} invitation(s)",
        {
            "invitations": [InvitationOut.model_validate(o.invitation) for o in result.created],
            "results": [
                InvitationResultOut(
                    email=o.email,
                    role=o.role,
                    status=o.status,
                    invitation_id=o.invitation.id if o.invitation else None,
                    reason=o.reason,
                )
                for o in result.outcomes
            ],
        },
        status.HTTP_201_CREATED,
    )


@router.get("/validate-token/{token}")
def validate_token(token: str, db: Session = Depends(get_db)):
    check = CheckInvitationToken(db).execute(token)
    return ok("Invitation token is valid", TokenCheckOut.model_validate(check))


@router.get("/{invitation_id}")
def get_invitation(invitation_id: int, ctx: AuthContext = Depends(manager), db: Session = Depends(get_db)):
    invitation = ManageInvitation(db).get(ctx.user, invitation_id)
    return ok("Invitation retrieved successfully", {"invitation": InvitationOut.model_validate(invitation)})


@router.post("/{invitation_id}/resend")
def resend_invitation(
    invitation_id: int,
    ctx: AuthContext = Depends(manager),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    invitation = ManageInvitation(db, sender).resend(ctx.user, invitation_id)
    return ok("Invitation resent", {"invitation": InvitationOut.model_validate(invitation)})


@router.delete("/{invitation_id}")
def revoke_invitation(invitation_id: int, ctx: AuthContext = Depends(manager), db: Session = Depends(get_db)):
    ManageInvitation(db).revoke(ctx.user, invitation_id)
    return ok("Invitation revoked")
