import re
from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.entities import InvitationStatus, Role
from ..domain.errors import ConflictError, InternalError, SchoolBridgeError
from .models import (
    AssignmentORM,
    ClassORM,
    InvitationORM,
    SchoolORM,
    SessionORM,
    SubmissionORM,
    UserORM,
    class_students,
)


def ensure_aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
_PG_UNIQUE = re.compile(r"Key \((\w+)\)=")


def classify_integrity_error(exc: IntegrityError) -> SchoolBridgeError:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    match = _SQLITE_UNIQUE.search(text) or _PG_UNIQUE.search(text)
    if match:
        field = match.group(1)
        return ConflictError(f"{field.replace('_', ' ').capitalize()} already exists", {"field": field})
    if "duplicate key" in text or "UNIQUE" in text:
        return ConflictError("Duplicate value", None)
    return InternalError("Internal server error")


class UserRepository:
    def __init__(self, db: Session): self.db = db

    def get(self, user_id: int) -> UserORM | None:
        return self.db.get(UserORM, user_id)

    def get_by_email(self, email: str) -> UserORM | None:
        return self.db.execute(
            select(UserORM).where(UserORM.email == email.strip().lower())
        ).scalar_one_or_none()

    def find_for_google(self, email: str, google_id: str) -> UserORM | None:
        return self.db.execute(
            select(UserORM)
            .where(or_(UserORM.email == email.strip().lower(), UserORM.google_id == google_id))
            .limit(1)
        ).scalar_one_or_none()

    def add(self, row: UserORM) -> UserORM:
        row.email = row.email.strip().lower()
        self.db.add(row)
        self.db.flush()
        return row

    def bump_token_version(self, user_id: int) -> None:
        self.db.execute(
            update(UserORM)
            .where(UserORM.id == user_id)
            .values(token_version=UserORM.token_version + 1)
        )

    def list_students(self, school_id: int | None = None, search: str | None = None) -> list[UserORM]:
        q = select(UserORM).where(UserORM.role == Role.STUDENT.value)
        if school_id is not None:
            q = q.where(UserORM.school_id == school_id)
        if search:
            like = f"%{search.lower()}%"
            q = q.where(or_(func.lower(UserORM.full_name).like(like), UserORM.email.like(like)))
        return list(self.db.execute(q.order_by(UserORM.full_name)).scalars())


class SessionRepository:
    def __init__(self, db: Session): self.db = db

    def create(self, session_id: str, user_id: int, token_hash: str, expires_at: datetime) -> SessionORM:
        row = SessionORM(id=session_id, user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, session_id: str) -> SessionORM | None:
        return self.db.get(SessionORM, session_id)

    def rotate(self, session_id: str, old_hash: str, new_hash: str, expires_at: datetime, now: datetime) -> bool:
        """Swap the stored hash only if it is still the one presented."""
        result = self.db.execute(
            update(SessionORM)
            .where(
                SessionORM.id == session_id,
                SessionORM.token_hash == old_hash,
                SessionORM.expires_at > now,
            )
            .values(token_hash=new_hash, expires_at=expires_at, last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_by_hash(self, token_hash: str) -> int:
        return self.db.execute(delete(SessionORM).where(SessionORM.token_hash == token_hash)).rowcount

    def delete_for_user(self, user_id: int) -> int:
        return self.db.execute(delete(SessionORM).where(SessionORM.user_id == user_id)).rowcount

    def count_for_user(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count()).select_from(SessionORM).where(SessionORM.user_id == user_id)
        ).scalar_one()

    def purge_expired(self, now: datetime) -> int:
        return self.db.execute(delete(SessionORM).where(SessionORM.expires_at < now)).rowcount


class InvitationRepository:
    def __init__(self, db: Session): self.db = db

    def add(self, row: InvitationORM) -> InvitationORM:
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, invitation_id: int) -> InvitationORM | None:
        return self.db.get(InvitationORM, invitation_id)

    def get_pending(self, token: str, now: datetime) -> InvitationORM | None:
        return self.db.execute(
            select(InvitationORM).where(
                InvitationORM.token == token,
                InvitationORM.status == InvitationStatus.PENDING.value,
                InvitationORM.expires_at > now,
            )
        ).scalar_one_or_none()

    def claim(self, token: str, now: datetime) -> bool:
        """pending -> accepted, only while unexpired; True if this caller won."""
        result = self.db.execute(
            update(InvitationORM)
            .where(
                InvitationORM.token == token,
                InvitationORM.status == InvitationStatus.PENDING.value,
                InvitationORM.expires_at > now,
            )
            .values(status=InvitationStatus.ACCEPTED.value, accepted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_by_token(self, token: str) -> InvitationORM | None:
        return self.db.execute(
            select(InvitationORM).where(InvitationORM.token == token)
        ).scalar_one_or_none()

    def list_page(
        self,
        roles: list[str],
        school_id: int | None,
        status: str | None,
        search: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[InvitationORM], int]:
        conditions = [InvitationORM.role.in_(roles)]
        if school_id is not None:
            conditions.append(InvitationORM.school_id == school_id)
        if status:
            conditions.append(InvitationORM.status == status)
        if search:
            conditions.append(InvitationORM.email.like(f"%{search.strip().lower()}%"))
        total = self.db.execute(
            select(func.count()).select_from(InvitationORM).where(*conditions)
        ).scalar_one()
        rows = self.db.execute(
            select(InvitationORM)
            .where(*conditions)
            .order_by(InvitationORM.created_at.desc(), InvitationORM.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).scalars()
        return list(rows), total

    def delete_stale(self, now: datetime) -> int:
        return self.db.execute(
            delete(InvitationORM).where(
                InvitationORM.expires_at < now,
                InvitationORM.status != InvitationStatus.ACCEPTED.value,
            )
        ).rowcount


class SchoolRepository:
    def __init__(self, db: Session): self.db = db

    def get(self, school_id: int) -> SchoolORM | None:
        return self.db.get(SchoolORM, school_id)

    def list_active(self) -> list[SchoolORM]:
        return list(self.db.execute(
            select(SchoolORM).where(SchoolORM.is_active.is_(True)).order_by(SchoolORM.name)
        ).scalars())

    def add(self, row: SchoolORM) -> SchoolORM:
        self.db.add(row)
        self.db.flush()
        return row


class ClassRepository:
    def __init__(self, db: Session): self.db = db

    def get(self, class_id: int) -> ClassORM | None:
        return self.db.get(ClassORM, class_id)

    def add(self, row: ClassORM) -> ClassORM:
        self.db.add(row)
        self.db.flush()
        return row

    def list_for_teacher(self, teacher_id: int) -> list[ClassORM]:
        return list(self.db.execute(
            select(ClassORM).where(ClassORM.teacher_id == teacher_id).order_by(ClassORM.name)
        ).scalars())

    def list_for_student(self, student_id: int) -> list[ClassORM]:
        return list(self.db.execute(
            select(ClassORM)
            .join(class_students, class_students.c.class_id == ClassORM.id)
            .where(class_students.c.student_id == student_id)
            .order_by(ClassORM.name)
        ).scalars())

    def list_for_school(self, school_id: int) -> list[ClassORM]:
        return list(self.db.execute(
            select(ClassORM)
            .join(UserORM, UserORM.id == ClassORM.teacher_id)
            .where(UserORM.school_id == school_id)
            .order_by(ClassORM.name)
        ).scalars())

    def list_all(self) -> list[ClassORM]:
        return list(self.db.execute(select(ClassORM).order_by(ClassORM.name)).scalars())

    def is_enrolled(self, class_id: int, student_id: int) -> bool:
        return self.db.execute(
            select(class_students.c.class_id).where(
                class_students.c.class_id == class_id,
                class_students.c.student_id == student_id,
            )
        ).first() is not None

    def delete_cascade(self, row: ClassORM) -> None:
        """Submissions, assignments, enrolments and the class itself, in one unit."""
        assignment_ids = select(AssignmentORM.id).where(AssignmentORM.class_id == row.id)
        self.db.execute(delete(SubmissionORM).where(SubmissionORM.assignment_id.in_(assignment_ids)))
        self.db.execute(delete(AssignmentORM).where(AssignmentORM.class_id == row.id))
        self.db.execute(delete(class_students).where(class_students.c.class_id == row.id))
        self.db.execute(delete(ClassORM).where(ClassORM.id == row.id))


class AssignmentRepository:
    def __init__(self, db: Session): self.db = db

    def get(self, assignment_id: int) -> AssignmentORM | None:
        return self.db.get(AssignmentORM, assignment_id)

    def add(self, row: AssignmentORM) -> AssignmentORM:
        self.db.add(row)
        self.db.flush()
        return row

    def list_for_teacher(self, teacher_id: int) -> list[AssignmentORM]:
        return list(self.db.execute(
            select(AssignmentORM)
            .where(AssignmentORM.teacher_id == teacher_id)
            .order_by(AssignmentORM.due_date)
        ).scalars())

    def delete_cascade(self, row: AssignmentORM) -> None:
        self.db.execute(delete(SubmissionORM).where(SubmissionORM.assignment_id == row.id))
        self.db.execute(delete(AssignmentORM).where(AssignmentORM.id == row.id))

    def get_submission(self, assignment_id: int, submission_id: int) -> SubmissionORM | None:
        return self.db.execute(
            select(SubmissionORM).where(
                SubmissionORM.id == submission_id,
                SubmissionORM.assignment_id == assignment_id,
            )
        ).scalar_one_or_none()

    def find_submission(self, assignment_id: int, student_id: int) -> SubmissionORM | None:
        return self.db.execute(
            select(SubmissionORM).where(
                SubmissionORM.assignment_id == assignment_id,
                SubmissionORM.student_id == student_id,
            )
        ).scalar_one_or_none()

    def add_submission(self, row: SubmissionORM) -> SubmissionORM:
        self.db.add(row)
        self.db.flush()
        return row
