import pytest

from schoolbridge.domain.entities import Identity, InviteeRole, Role
from schoolbridge.domain.errors import AuthorizationError, ValidationError
from schoolbridge.domain.roles import (
    Capability,
    has_capability,
    invitation_policy_for,
    resolve_invitation_school,
    visible_invitee_roles,
)

ADMIN = Identity(id=2, email="a@school.edu", role=Role.ADMIN, school_id=10)
ROOT = Identity(id=1, email="root@schoolbridge.edu", role=Role.SUPER_ADMIN)


@pytest.mark.parametrize(
    "role, capability, expected",
    [
        (Role.TEACHER, Capability.MANAGE_CLASSES, True),
        (Role.STUDENT, Capability.SUBMIT_ASSIGNMENTS, True),
        (Role.STUDENT, Capability.MANAGE_CLASSES, False),
        (Role.ADMIN, Capability.MANAGE_INVITATIONS, True),
        (Role.ADMIN, Capability.PROVISION_ACCOUNTS, False),
        (Role.SUPER_ADMIN, Capability.MANAGE_SCHOOLS, True),
        (Role.VISITOR, Capability.VIEW_CLASSES, False),
        ("Teacher", Capability.MANAGE_ASSIGNMENTS, True),
    ],
)
def test_capabilities(role, capability, expected):
    assert has_capability(role, capability) is expected


def test_staff_invitees_become_platform_users():
    assert InviteeRole.STAFF.account_role is Role.PLATFORM_USER
    assert InviteeRole.TEACHER.account_role is Role.TEACHER


def test_managed_policies():
    assert invitation_policy_for(Role.SUPER_ADMIN).allows(InviteeRole.ADMIN)
    assert not invitation_policy_for(Role.SUPER_ADMIN).allows(InviteeRole.TEACHER)
    assert invitation_policy_for(Role.ADMIN).allows("Teacher")
    assert not invitation_policy_for(Role.ADMIN).allows(InviteeRole.ADMIN)
    with pytest.raises(AuthorizationError):
        invitation_policy_for(Role.TEACHER)


def test_provisioning_policy_is_superadmin_only():
    policy = invitation_policy_for(Role.SUPER_ADMIN, provisioning=True)
    assert all(policy.allows(role) for role in InviteeRole)
    with pytest.raises(AuthorizationError):
        invitation_policy_for(Role.ADMIN, provisioning=True)


def test_admin_invitations_are_bound_to_their_school():
    policy = invitation_policy_for(Role.ADMIN)
    assert resolve_invitation_school(policy, ADMIN, InviteeRole.TEACHER, 99) == 10

    orphan = Identity(id=3, email="x@school.edu", role=Role.ADMIN)
    with pytest.raises(ValidationError):
        resolve_invitation_school(policy, orphan, InviteeRole.TEACHER, None)


def test_requested_school_scope():
    policy = invitation_policy_for(Role.SUPER_ADMIN, provisioning=True)
    assert resolve_invitation_school(policy, ROOT, InviteeRole.ADMIN, None) is None
    assert resolve_invitation_school(policy, ROOT, InviteeRole.STUDENT, 4) == 4
    with pytest.raises(ValidationError):
        resolve_invitation_school(policy, ROOT, InviteeRole.STUDENT, None)


def test_visible_invitee_roles():
    assert visible_invitee_roles(Role.SUPER_ADMIN) == frozenset({InviteeRole.ADMIN})
    assert InviteeRole.STAFF in visible_invitee_roles(Role.ADMIN)
