from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    STUDENT = "Student"
    TEACHER = "Teacher"
    PARENT = "Parent"
    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"
    VISITOR = "Visitor"
    PLATFORM_USER = "PlatformUser"


class InviteeRole(str, Enum):
    TEACHER = "Teacher"
    STUDENT = "Student"
    PARENT = "Parent"
    ADMIN = "Admin"
    STAFF = "Staff"

    @property
    def account_role(self) -> Role:
        """Role given to the account created when this invitation is accepted."""
        if self is InviteeRole.STAFF:
            return Role.PLATFORM_USER
        return Role(self.value)


class Provider(str, Enum):
    EMAIL = "email"
    GOOGLE = "google"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    FAILED = "failed"


class GradeSystem(str, Enum):
    LETTER = "letter"
    PERCENTAGE = "percentage"
    POINTS = "points"


@dataclass(frozen=True)
class Identity:
    """Who is making the request, as resolved by the auth dependency."""
    id: int
    email: str
    role: Role
    school_id: int | None = None
