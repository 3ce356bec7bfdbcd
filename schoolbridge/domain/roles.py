"""
Role permissions and invitation policies.

Both are plain lookup tables so that access rules live in one place and can
be tested without the HTTP layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .entities import Identity, InviteeRole, Role
from .errors import AuthorizationError, ValidationError


class Capability(str, Enum):
    VIEW_CLASSES = "view_classes"
    MANAGE_CLASSES = "manage_classes"
    MANAGE_ASSIGNMENTS = "manage_assignments"
    SUBMIT_ASSIGNMENTS = "submit_assignments"
    VIEW_STUDENTS = "view_students"
    MANAGE_STUDENTS = "manage_students"
    MANAGE_INVITATIONS = "manage_invitations"
    PROVISION_ACCOUNTS = "provision_accounts"
    MANAGE_SCHOOLS = "manage_schools"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.STUDENT: frozenset({Capability.VIEW_CLASSES, Capability.SUBMIT_ASSIGNMENTS}),
    Role.TEACHER: frozenset({
        Capability.VIEW_CLASSES,
        Capability.MANAGE_CLASSES,
        Capability.MANAGE_ASSIGNMENTS,
        Capability.VIEW_STUDENTS,
    }),
    Role.PARENT: frozenset({Capability.VIEW_CLASSES}),
    Role.ADMIN: frozenset({
        Capability.VIEW_CLASSES,
        Capability.VIEW_STUDENTS,
        Capability.MANAGE_STUDENTS,
        Capability.MANAGE_INVITATIONS,
        Capability.MANAGE_USERS,
    }),
    Role.SUPER_ADMIN: frozenset({
        Capability.VIEW_CLASSES,
        Capability.VIEW_STUDENTS,
        Capability.MANAGE_STUDENTS,
        Capability.MANAGE_INVITATIONS,
        Capability.PROVISION_ACCOUNTS,
        Capability.MANAGE_SCHOOLS,
        Capability.MANAGE_USERS,
    }),
    Role.VISITOR: frozenset(),
    Role.PLATFORM_USER: frozenset({Capability.VIEW_CLASSES}),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(Role(role), frozenset())


class SchoolScope(str, Enum):
    # school_id comes from the invitation entry (optional for Admin invitees)
    REQUESTED = "requested"
    # school_id is always the issuer's own school
    ISSUER = "issuer"


@dataclass(frozen=True)
class InvitationPolicy:
    invitee_roles: frozenset[InviteeRole]
    school_scope: SchoolScope

    def allows(self, role: InviteeRole) -> bool:
        return InviteeRole(role) in self.invitee_roles


SCHOOL_ROLES = frozenset({
    InviteeRole.STUDENT,
    InviteeRole.TEACHER,
    InviteeRole.PARENT,
    InviteeRole.STAFF,
})

# Day-to-day invitation management (/invitations): SuperAdmins onboard school
# Admins, Admins onboard people into their own school.
MANAGED_INVITATION_POLICIES: dict[Role, InvitationPolicy] = {
    Role.SUPER_ADMIN: InvitationPolicy(frozenset({InviteeRole.ADMIN}), SchoolScope.REQUESTED),
    Role.ADMIN: InvitationPolicy(SCHOOL_ROLES, SchoolScope.ISSUER),
}

# Bulk account provisioning (/auth/invitations) is SuperAdmin only and may
# target any invitee role in any school.
PROVISIONING_INVITATION_POLICIES: dict[Role, InvitationPolicy] = {
    Role.SUPER_ADMIN: InvitationPolicy(frozenset(InviteeRole), SchoolScope.REQUESTED),
}


def invitation_policy_for(role: Role, provisioning: bool = False) -> InvitationPolicy:
    table = PROVISIONING_INVITATION_POLICIES if provisioning else MANAGED_INVITATION_POLICIES
    policy = table.get(Role(role))
    if policy is None:
        raise AuthorizationError("Access denied. Your role cannot manage invitations.")
    return policy


def resolve_invitation_school(
    policy: InvitationPolicy,
    issuer: Identity,
    invitee_role: InviteeRole,
    requested_school_id: Optional[int],
) -> Optional[int]:
    """Pick the school an invitation is bound to, or raise ValidationError."""
    if policy.school_scope is SchoolScope.ISSUER:
        if issuer.school_id is None:
            raise ValidationError("School ID missing for admin.")
        return issuer.school_id
    if requested_school_id is None and InviteeRole(invitee_role) is not InviteeRole.ADMIN:
        raise ValidationError("School is required for non-admin roles")
    return requested_school_id


def visible_invitee_roles(role: Role) -> frozenset[InviteeRole]:
    return invitation_policy_for(role).invitee_roles
