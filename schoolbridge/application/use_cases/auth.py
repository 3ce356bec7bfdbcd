"""
Account lifecycle: visitor signup, password login, Google sign-in and
invitation activation.

Every successful path ends the same way: a session row is opened, a token
pair is minted and ``last_login`` is stamped, all in one commit.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.entities import InviteeRole, Provider, Role
from ...domain.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ...infrastructure.metrics import auth_events_total
from ...infrastructure.models import UserORM, utcnow
from ...infrastructure.repositories import (
    InvitationRepository,
    SchoolRepository,
    UserRepository,
    classify_integrity_error,
)
from ...infrastructure.security import PasswordHasher, TokenService
from ..dto import AuthResult, TokenCheck
from .sessions import open_session

logger = structlog.get_logger()

VISITOR_SIGNUP = "visitor"
INVALID_ACTIVATION = "Invalid or expired activation token"

# Roles that only ever come into existence through an invitation or the CLI.
INVITE_ONLY_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


def split_name(full_name: str) -> tuple[Optional[str], Optional[str]]:
    parts = full_name.strip().split(None, 1)
    if not parts:
        return None, None
    return parts[0], parts[1] if len(parts) > 1 else None


class SignUp:
    def __init__(self, db: Session, hasher: PasswordHasher, tokens: TokenService):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens
        self.users = UserRepository(db)

    def execute(
        self,
        email: str,
        password: str,
        full_name: str,
        signup_type: str,
        phone: Optional[str] = None,
    ) -> AuthResult:
        if signup_type != VISITOR_SIGNUP:
            auth_events_total.labels(event="signup", outcome="forbidden").inc()
            raise AuthorizationError("Platform users must be invited")

        if self.users.get_by_email(email):
            raise ConflictError("User with this email already exists")

        first, last = split_name(full_name)
        user = UserORM(
            email=email,
            password_hash=self.hasher.hash(password),
            full_name=full_name.strip(),
            first_name=first,
            last_name=last,
            phone=phone,
            role=Role.VISITOR.value,
            provider=Provider.EMAIL.value,
            is_verified=False,
            is_active=True,
            last_login=utcnow(),
        )
        try:
            self.users.add(user)
            pair = open_session(self.db, self.tokens, user)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise classify_integrity_error(e)

        auth_events_total.labels(event="signup", outcome="success").inc()
        logger.info("user_signed_up", user_id=user.id, role=user.role)
        return AuthResult(user=user, tokens=pair)


class Login:
    def __init__(self, db: Session, hasher: PasswordHasher, tokens: TokenService):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens
        self.users = UserRepository(db)

    def execute(self, email: str, password: str, role: str) -> AuthResult:
        user = self.users.get_by_email(email)
        if user is None:
            auth_events_total.labels(event="login", outcome="unknown_email").inc()
            raise NotFoundError("No account found with this email address")
        if not user.is_active:
            auth_events_total.labels(event="login", outcome="deactivated").inc()
            raise AuthorizationError("Account has been deactivated. Please contact support.")
        if user.role != Role(role).value:
            auth_events_total.labels(event="login", outcome="role_mismatch").inc()
            raise ValidationError(
                f"Account exists but not with the selected role. Please select {user.role} role."
            )
        if not self.hasher.verify(password, user.password_hash):
            auth_events_total.labels(event="login", outcome="bad_password").inc()
            raise AuthenticationError("Invalid email or password")

        user.last_login = utcnow()
        pair = open_session(self.db, self.tokens, user)
        self.db.commit()

        auth_events_total.labels(event="login", outcome="success").inc()
        logger.info("user_logged_in", user_id=user.id, role=user.role)
        return AuthResult(user=user, tokens=pair)


class GoogleAuth:
    """
    Sign in with a Google profile already verified by the client SDK.

    Existing accounts are matched by email or Google id and must be used with
    their own role. New accounts are created without a password.
    """

    def __init__(self, db: Session, tokens: TokenService):
        self.db = db
        self.tokens = tokens
        self.users = UserRepository(db)

    def execute(self, profile: dict, role: str) -> AuthResult:
        role = Role(role)
        email = profile["email"].strip().lower()
        google_id = profile["google_id"]

        user = self.users.find_for_google(email, google_id)
        if user is not None:
            if user.role != role.value:
                auth_events_total.labels(event="google", outcome="role_mismatch").inc()
                raise ValidationError(f"Account exists as {user.role}. Please select {user.role} role.")
            if not user.is_active:
                raise AuthorizationError("Account has been deactivated. Please contact support.")
            if not user.google_id:
                user.google_id = google_id
                user.provider = Provider.GOOGLE.value
            if profile.get("avatar"):
                user.avatar = profile["avatar"]
            if profile.get("verified") is not None:
                user.is_verified = bool(profile["verified"])
        else:
            if role in INVITE_ONLY_ROLES:
                raise AuthorizationError("Platform users must be invited")
            full_name = (
                profile.get("full_name")
                or profile.get("name")
                or " ".join(p for p in (profile.get("first_name"), profile.get("last_name")) if p)
                or email.split("@")[0]
            )
            user = UserORM(
                email=email,
                google_id=google_id,
                full_name=full_name,
                first_name=profile.get("first_name"),
                last_name=profile.get("last_name"),
                avatar=profile.get("avatar"),
                role=role.value,
                provider=Provider.GOOGLE.value,
                is_verified=True if profile.get("verified") is None else bool(profile["verified"]),
                is_active=True,
            )
            self.users.add(user)

        user.last_login = utcnow()
        try:
            pair = open_session(self.db, self.tokens, user)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise classify_integrity_error(e)

        auth_events_total.labels(event="google", outcome="success").inc()
        logger.info("google_sign_in", user_id=user.id, role=user.role)
        return AuthResult(user=user, tokens=pair)


class ValidateActivationToken:
    """Read-only pre-fill lookup; every failure looks the same to the caller."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, token: str) -> TokenCheck:
        invitation = InvitationRepository(self.db).get_pending(token, utcnow()) if token else None
        if invitation is None:
            raise ValidationError(INVALID_ACTIVATION)
        school = SchoolRepository(self.db).get(invitation.school_id) if invitation.school_id else None
        return TokenCheck(
            email=invitation.email,
            role=invitation.role,
            school_id=invitation.school_id,
            school_name=school.name if school else None,
        )


class ActivateAccount:
    def __init__(self, db: Session, hasher: PasswordHasher, tokens: TokenService):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens
        self.users = UserRepository(db)
        self.invitations = InvitationRepository(db)

    def execute(self, token: str, full_name: str, password: str) -> AuthResult:
        now = utcnow()
        invitation = self.invitations.get_pending(token, now)
        if invitation is None or not self.invitations.claim(token, now):
            self.db.rollback()
            auth_events_total.labels(event="activate", outcome="invalid_token").inc()
            raise ValidationError(INVALID_ACTIVATION)

        if self.users.get_by_email(invitation.email):
            self.db.rollback()
            raise ConflictError("Account already activated")

        first, last = split_name(full_name)
        user = UserORM(
            email=invitation.email,
            password_hash=self.hasher.hash(password),
            full_name=full_name.strip(),
            first_name=first,
            last_name=last,
            role=InviteeRole(invitation.role).account_role.value,
            school_id=invitation.school_id,
            provider=Provider.EMAIL.value,
            is_verified=True,
            is_active=True,
            last_login=now,
        )
        try:
            self.users.add(user)
            pair = open_session(self.db, self.tokens, user)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Account already activated")

        auth_events_total.labels(event="activate", outcome="success").inc()
        logger.info("account_activated", user_id=user.id, role=user.role, invitation_id=invitation.id)
        return AuthResult(user=user, tokens=pair)
