from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ....application.dto import AuthResult, InvitationEntry
from ....application.use_cases.auth import (
    ActivateAccount,
    GoogleAuth,
    Login,
    SignUp,
    ValidateActivationToken,
)
from ....application.use_cases.invitations import CreateInvitations
from ....application.use_cases.sessions import Logout, RefreshSession
from ....config import settings
from ....domain.errors import ValidationError
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ....infrastructure.mailer import EmailSender, get_email_sender
from ....infrastructure.rate_limit import limiter
from ....infrastructure.security import PasswordHasher, TokenService
from ..authz import AuthContext, authenticate, get_token_service, require_capability
from ..responses import ok
from ..schemas import (
    ActivateReq,
    GoogleAuthReq,
    InvitationBatchReq,
    InvitationResultOut,
    LoginReq,
    RefreshReq,
    SignupReq,
    TokenCheckOut,
    UserOut,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def auth_payload(result: AuthResult) -> dict:
    return {
        "user": UserOut.model_validate(result.user),
        "accessToken": result.tokens.access_token,
        "refreshToken": result.tokens.refresh_token,
        "expiresIn": result.tokens.expires_in,
    }


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def signup(
    request: Request,
    payload: SignupReq,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    uc = SignUp(db=db, hasher=PasswordHasher(), tokens=tokens)
    result = uc.execute(
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        signup_type=payload.signup_type,
        phone=payload.phone,
    )
    return ok("Account created successfully", auth_payload(result), status.HTTP_201_CREATED)


@router.post("/login")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(
    request: Request,
    payload: LoginReq,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    uc = Login(db=db, hasher=PasswordHasher(), tokens=tokens)
    result = uc.execute(payload.email, payload.password, payload.role)
    return ok("Login successful", auth_payload(result))


@router.post("/google")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def google(
    request: Request,
    payload: GoogleAuthReq,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    result = GoogleAuth(db=db, tokens=tokens).execute(payload.user.model_dump(), payload.role)
    return ok("Google authentication successful", auth_payload(result))


@router.get("/activate/validate")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def validate_activation(request: Request, token: str = Query(""), db: Session = Depends(get_db)):
    check = ValidateActivationToken(db).execute(token)
    return ok("Activation token is valid", TokenCheckOut.model_validate(check))


@router.post("/activate", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def activate(
    request: Request,
    payload: ActivateReq,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    uc = ActivateAccount(db=db, hasher=PasswordHasher(), tokens=tokens)
    result = uc.execute(payload.token, payload.full_name, payload.password)
    return ok("Account activated successfully", auth_payload(result), status.HTTP_201_CREATED)


@router.post("/invitations", status_code=status.HTTP_201_CREATED)
def provision_accounts(
    payload: InvitationBatchReq,
    ctx: AuthContext = Depends(require_capability(Capability.PROVISION_ACCOUNTS)),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
):
    entries = [InvitationEntry(email=u.email, role=u.role, school_id=u.school_id) for u in payload.users]
    result = CreateInvitations(db=db, sender=sender, provisioning=True).execute(ctx.user, entries)
    credentials = [
        InvitationResultOut(
            email=o.email,
            role=o.role,
            status=o.status,
            school_id=o.invitation.school_id if o.invitation else None,
            invitation_id=o.invitation.id if o.invitation else None,
            expires_at=o.invitation.expires_at if o.invitation else None,
            reason=o.reason,
        )
        for o in result.outcomes
    ]
    return ok(
        f"Created {len(result.created)} invitation(s)",
        {"credentials": credentials},
        status.HTTP_201_CREATED,
    )


@router.post("/logout")
def logout(payload: RefreshReq, db: Session = Depends(get_db)):
    Logout(db).execute(payload.refresh_token)
    return ok("Logout successful")


@router.post("/refresh")
def refresh(
    payload: RefreshReq,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    if not payload.refresh_token:
        raise ValidationError("Refresh token is required")
    result = RefreshSession(db=db, tokens=tokens).execute(payload.refresh_token)
    return ok("Token refreshed successfully", auth_payload(result))


@router.get("/validate")
def validate_session(ctx: AuthContext = Depends(authenticate)):
    return ok("Session is valid", {"valid": True, "user": UserOut.model_validate(ctx.user)})


@router.get("/me")
def me(ctx: AuthContext = Depends(authenticate)):
    return ok("Profile retrieved successfully", {"user": UserOut.model_validate(ctx.user)})
