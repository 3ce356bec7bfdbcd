"""
Invitation management: batch creation, listing, resend and revoke.

Rows are committed before the email goes out. A delivery failure marks the
row ``failed`` instead of undoing it, so a batch can partially succeed and
every entry is reported back individually.
"""

from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from ...config import settings
from ...domain.entities import Identity, InvitationStatus, InviteeRole, Role
from ...domain.errors import ConflictError, NotFoundError, ValidationError
from ...domain.roles import (
    invitation_policy_for,
    resolve_invitation_school,
    visible_invitee_roles,
)
from ...infrastructure.mailer import (
    INVITATION_SUBJECT,
    EmailDeliveryError,
    EmailSender,
    render_invitation_email,
)
from ...infrastructure.metrics import invitations_total
from ...infrastructure.models import InvitationORM, UserORM, utcnow
from ...infrastructure.repositories import InvitationRepository, SchoolRepository, UserRepository
from ...infrastructure.security import new_invitation_token
from ..dto import InvitationBatchResult, InvitationEntry, InvitationOutcome, Page, TokenCheck

logger = structlog.get_logger()

REJECTED = "rejected"


def identity_of(user: UserORM) -> Identity:
    return Identity(id=user.id, email=user.email, role=Role(user.role), school_id=user.school_id)


def deliver(db: Session, sender: EmailSender, invitation: InvitationORM) -> None:
    """Send the activation email; on failure flag the row and keep it."""
    school = invitation.school
    text, html = render_invitation_email(
        invitation.role, school.name if school else None, invitation.token
    )
    try:
        sender.send(invitation.email, INVITATION_SUBJECT, text, html)
    except EmailDeliveryError as e:
        invitation.status = InvitationStatus.FAILED.value
        invitation.error = str(e)
        db.commit()
        invitations_total.labels(status="failed").inc()
        logger.warning("invitation_delivery_failed", invitation_id=invitation.id, error=str(e))
        return
    invitations_total.labels(status="pending").inc()


class CreateInvitations:
    def __init__(self, db: Session, sender: EmailSender, provisioning: bool = False):
        self.db = db
        self.sender = sender
        self.provisioning = provisioning
        self.users = UserRepository(db)
        self.schools = SchoolRepository(db)

    def _reject(self, entry: InvitationEntry, reason: str) -> InvitationOutcome:
        invitations_total.labels(status=REJECTED).inc()
        return InvitationOutcome(email=entry.email, role=entry.role, status=REJECTED, reason=reason)

    def _pending_exists(self, email: str) -> bool:
        return self.db.execute(
            select(InvitationORM.id).where(
                InvitationORM.email == email,
                InvitationORM.status == InvitationStatus.PENDING.value,
                InvitationORM.expires_at > utcnow(),
            )
        ).first() is not None

    def execute(self, issuer: UserORM, entries: list[InvitationEntry]) -> InvitationBatchResult:
        if not entries:
            raise ValidationError("Users array is required")
        identity = identity_of(issuer)
        policy = invitation_policy_for(identity.role, provisioning=self.provisioning)

        result = InvitationBatchResult()
        for entry in entries:
            email = entry.email.strip().lower()
            try:
                role = InviteeRole(entry.role)
            except ValueError:
                result.outcomes.append(self._reject(entry, f"Unknown role {entry.role}"))
                continue
            if not policy.allows(role):
                result.outcomes.append(
                    self._reject(entry, f"{identity.role.value} cannot invite {role.value}")
                )
                continue
            try:
                school_id = resolve_invitation_school(policy, identity, role, entry.school_id)
            except ValidationError as e:
                result.outcomes.append(self._reject(entry, e.message))
                continue
            if school_id is not None and self.schools.get(school_id) is None:
                result.outcomes.append(self._reject(entry, "School not found"))
                continue
            if self.users.get_by_email(email):
                result.outcomes.append(self._reject(entry, "User with this email already exists"))
                continue
            if self._pending_exists(email):
                result.outcomes.append(self._reject(entry, "A pending invitation already exists"))
                continue

            invitation = InvitationORM(
                email=email,
                role=role.value,
                school_id=school_id,
                token=new_invitation_token(),
                status=InvitationStatus.PENDING.value,
                expires_at=utcnow() + timedelta(hours=settings.INVITATION_TTL_HOURS),
                created_by=issuer.id,
            )
            self.db.add(invitation)
            self.db.commit()
            logger.info(
                "invitation_created",
                invitation_id=invitation.id,
                role=invitation.role,
                school_id=school_id,
                issuer_id=issuer.id,
            )
            deliver(self.db, self.sender, invitation)
            result.outcomes.append(
                InvitationOutcome(
                    email=email, role=role.value, status=invitation.status, invitation=invitation
                )
            )

        if not result.created:
            raise ValidationError(
                "Failed to create any invitations",
                [{"email": o.email, "reason": o.reason} for o in result.outcomes],
            )
        return result


class InvitationScope:
    """The slice of invitations a given issuer may see and manage."""

    def __init__(self, issuer: UserORM):
        identity = identity_of(issuer)
        self.roles = sorted(r.value for r in visible_invitee_roles(identity.role))
        self.school_id: Optional[int] = None
        if identity.role is Role.ADMIN:
            if identity.school_id is None:
                raise ValidationError("School ID missing for admin.")
            self.school_id = identity.school_id

    def covers(self, invitation: InvitationORM) -> bool:
        if invitation.role not in self.roles:
            return False
        return self.school_id is None or invitation.school_id == self.school_id


class ListInvitations:
    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        issuer: UserORM,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Page:
        scope = InvitationScope(issuer)
        rows, total = InvitationRepository(self.db).list_page(
            roles=scope.roles,
            school_id=scope.school_id,
            status=status,
            search=search,
            page=page,
            limit=limit,
        )
        return Page(items=rows, total=total, page=page, limit=limit)


class ManageInvitation:
    """get / resend / revoke of a single invitation inside the issuer's scope."""

    def __init__(self, db: Session, sender: Optional[EmailSender] = None):
        self.db = db
        self.sender = sender
        self.invitations = InvitationRepository(db)

    def get(self, issuer: UserORM, invitation_id: int) -> InvitationORM:
        invitation = self.invitations.get(invitation_id)
        # out-of-scope rows are indistinguishable from missing ones
        if invitation is None or not InvitationScope(issuer).covers(invitation):
            raise NotFoundError("Invitation not found")
        return invitation

    def resend(self, issuer: UserORM, invitation_id: int) -> InvitationORM:
        invitation = self.get(issuer, invitation_id)
        if invitation.is_used:
            raise ConflictError("Invitation has already been accepted")
        invitation.token = new_invitation_token()
        invitation.expires_at = utcnow() + timedelta(hours=settings.INVITATION_TTL_HOURS)
        invitation.status = InvitationStatus.PENDING.value
        invitation.error = None
        self.db.commit()
        logger.info("invitation_resent", invitation_id=invitation.id, issuer_id=issuer.id)
        deliver(self.db, self.sender, invitation)
        return invitation

    def revoke(self, issuer: UserORM, invitation_id: int) -> InvitationORM:
        invitation = self.get(issuer, invitation_id)
        if invitation.is_used:
            raise ConflictError("Invitation has already been accepted")
        invitation.status = InvitationStatus.EXPIRED.value
        invitation.expires_at = utcnow()
        self.db.commit()
        invitations_total.labels(status="revoked").inc()
        logger.info("invitation_revoked", invitation_id=invitation.id, issuer_id=issuer.id)
        return invitation


class CheckInvitationToken:
    """Public token lookup used by the activation screen."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, token: str) -> TokenCheck:
        invitation = InvitationRepository(self.db).get_pending(token, utcnow())
        if invitation is None:
            raise NotFoundError("Invalid or expired invitation token")
        school = invitation.school
        return TokenCheck(
            email=invitation.email,
            role=invitation.role,
            school_id=invitation.school_id,
            school_name=school.name if school else None,
        )
