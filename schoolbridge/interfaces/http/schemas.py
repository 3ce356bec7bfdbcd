import re
from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from ...domain.entities import GradeSystem, Role
from ...infrastructure.repositories import ensure_aware

UtcDatetime = Annotated[datetime, AfterValidator(ensure_aware)]

PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not PASSWORD_RULE.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


def not_null(value):
    """Partial updates may omit a field but not blank out a required one."""
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case accepted too."""
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- auth

class SignupReq(ApiModel):
    email: EmailStr
    password: str
    full_name: str = Field(min_length=2, max_length=100)
    role: Optional[str] = None
    phone: Optional[str] = None
    signup_type: str

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password(value)


class LoginReq(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)
    role: Role


class GoogleUserIn(ApiModel):
    email: EmailStr
    google_id: str = Field(min_length=1)
    full_name: Optional[str] = Field(default=None, min_length=2)
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    verified: Optional[bool] = None


class GoogleAuthReq(ApiModel):
    user: GoogleUserIn
    role: Role


class ActivateReq(ApiModel):
    token: str = Field(min_length=1)
    full_name: str = Field(min_length=2, max_length=100)
    password: str

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password(value)


class RefreshReq(ApiModel):
    refresh_token: Optional[str] = None


class UserOut(ApiModel):
    """Public profile; credentials and token bookkeeping never leave the server."""
    id: int
    email: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    role: str
    provider: str
    is_verified: bool
    is_active: bool
    last_login: Optional[UtcDatetime] = None
    school_id: Optional[int] = Field(default=None, alias="school_id")
    student_id: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None
    employee_id: Optional[str] = None
    subjects: list[str] = []
    created_at: Optional[UtcDatetime] = None


class ProfileUpdate(ApiModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    phone: Optional[str] = None
    avatar: Optional[str] = None
    subjects: Optional[list[str]] = None

    @field_validator("full_name", "subjects")
    @classmethod
    def required_when_present(cls, value):
        return not_null(value)


class StatusUpdate(ApiModel):
    is_active: bool


# --- invitations

class InvitationEntryIn(ApiModel):
    email: EmailStr
    role: str
    school_id: Optional[int] = Field(default=None, alias="school_id")


class InvitationBatchReq(ApiModel):
    users: list[InvitationEntryIn] = Field(min_length=1)


class InvitationOut(ApiModel):
    id: int
    email: str
    role: str
    school_id: Optional[int] = Field(default=None, alias="school_id")
    status: str
    is_used: bool
    expires_at: UtcDatetime
    created_by: Optional[int] = None
    error: Optional[str] = None
    accepted_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


class InvitationResultOut(ApiModel):
    email: str
    role: str
    status: str
    school_id: Optional[int] = Field(default=None, alias="school_id")
    invitation_id: Optional[int] = None
    expires_at: Optional[UtcDatetime] = None
    reason: Optional[str] = None


class TokenCheckOut(ApiModel):
    email: str
    role: str
    school_id: Optional[int] = Field(default=None, alias="school_id")
    school_name: Optional[str] = None


# --- schools

class AddressIn(ApiModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class ContactIn(ApiModel):
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None


class AcademicYearIn(ApiModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SchoolSettingsIn(ApiModel):
    grade_system: GradeSystem = GradeSystem.LETTER
    timezone: str = "America/New_York"
    academic_year: Optional[AcademicYearIn] = None


class SchoolCreate(ApiModel):
    name: str = Field(min_length=1, max_length=255)
    address: AddressIn = AddressIn()
    contact: ContactIn = ContactIn()
    settings: SchoolSettingsIn = SchoolSettingsIn()


class SchoolOut(ApiModel):
    id: int
    name: str
    address: dict[str, Any] = {}
    contact: dict[str, Any] = {}
    grade_system: str
    timezone: str
    academic_year_start: Optional[UtcDatetime] = None
    academic_year_end: Optional[UtcDatetime] = None
    is_active: bool


# --- classes

TIME_OF_DAY = r"^([01]\d|2[0-3]):[0-5]\d$"


class ScheduleIn(ApiModel):
    days: list[str] = []
    start_time: Optional[str] = Field(default=None, pattern=TIME_OF_DAY)
    end_time: Optional[str] = Field(default=None, pattern=TIME_OF_DAY)


class ClassCreate(ApiModel):
    name: str = Field(min_length=1, max_length=50)
    subject: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    schedule: Optional[ScheduleIn] = None
    room: Optional[str] = Field(default=None, max_length=50)


class ClassUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    schedule: Optional[ScheduleIn] = None
    room: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None

    @field_validator("name", "subject", "schedule", "is_active")
    @classmethod
    def required_when_present(cls, value):
        return not_null(value)


class ClassOut(ApiModel):
    id: int
    name: str
    subject: str
    description: Optional[str] = None
    teacher_id: int
    schedule: dict[str, Any] = {}
    room: Optional[str] = None
    is_active: bool
    created_at: Optional[UtcDatetime] = None


class StudentSummary(ApiModel):
    id: int
    email: str
    full_name: str
    student_id: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None


class EnrolReq(ApiModel):
    student_id: Optional[int] = None
    email: Optional[EmailStr] = None


# --- assignments

class AttachmentIn(ApiModel):
    url: str
    name: str
    type: Optional[str] = None


class AssignmentCreate(ApiModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    due_date: datetime
    class_id: int
    max_points: int = Field(default=100, ge=1)
    attachments: list[AttachmentIn] = []
    is_published: bool = False


class AssignmentUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[datetime] = None
    max_points: Optional[int] = Field(default=None, ge=1)
    attachments: Optional[list[AttachmentIn]] = None
    is_published: Optional[bool] = None

    @field_validator("title", "description", "due_date", "max_points", "attachments", "is_published")
    @classmethod
    def required_when_present(cls, value):
        return not_null(value)


class AssignmentOut(ApiModel):
    id: int
    title: str
    description: str
    due_date: UtcDatetime
    class_id: int
    teacher_id: int
    max_points: int
    attachments: list[dict[str, Any]] = []
    is_published: bool
    created_at: Optional[UtcDatetime] = None


class SubmissionCreate(ApiModel):
    content: str = Field(min_length=1)


class GradeReq(ApiModel):
    grade: int = Field(ge=0)
    feedback: Optional[str] = None


class SubmissionOut(ApiModel):
    id: int
    assignment_id: int
    student_id: int
    content: str
    submitted_at: UtcDatetime
    grade: Optional[int] = None
    feedback: Optional[str] = None


# --- students

class StudentUpdate(ApiModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = None
    avatar: Optional[str] = None
    student_id: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def required_when_present(cls, value):
        return not_null(value)
