"""
Class CRUD and roster management.

The owning teacher is always the authenticated caller; only the owner may
change, delete or re-roster a class.
"""

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ...domain.entities import Role
from ...domain.errors import AuthorizationError, NotFoundError, ValidationError
from ...infrastructure.models import ClassORM, UserORM
from ...infrastructure.repositories import ClassRepository

logger = structlog.get_logger()

CLASS_FIELDS = ("name", "subject", "description", "schedule", "room", "is_active")


def owned_class(repo: ClassRepository, class_id: int, user: UserORM) -> ClassORM:
    row = repo.get(class_id)
    if row is None:
        raise NotFoundError("Class not found")
    if row.teacher_id != user.id:
        raise AuthorizationError("Only the class owner can modify this class")
    return row


class ClassService:
    def __init__(self, db: Session):
        self.db = db
        self.classes = ClassRepository(db)

    def create(self, teacher: UserORM, data: dict) -> ClassORM:
        row = ClassORM(teacher_id=teacher.id, **{k: v for k, v in data.items() if k in CLASS_FIELDS})
        self.classes.add(row)
        self.db.commit()
        logger.info("class_created", class_id=row.id, teacher_id=teacher.id)
        return row

    def get(self, class_id: int) -> ClassORM:
        row = self.classes.get(class_id)
        if row is None:
            raise NotFoundError("Class not found")
        return row

    def list_visible(self, user: UserORM) -> list[ClassORM]:
        role = Role(user.role)
        if role is Role.TEACHER:
            return self.classes.list_for_teacher(user.id)
        if role is Role.STUDENT:
            return self.classes.list_for_student(user.id)
        if role is Role.PARENT:
            seen: dict[int, ClassORM] = {}
            for child in user.children:
                for c in self.classes.list_for_student(child.id):
                    seen[c.id] = c
            return sorted(seen.values(), key=lambda c: c.name)
        if role is Role.SUPER_ADMIN:
            return self.classes.list_all()
        if user.school_id is not None:
            return self.classes.list_for_school(user.school_id)
        return []

    def list_for_teacher(self, teacher_id: int) -> list[ClassORM]:
        return self.classes.list_for_teacher(teacher_id)

    def update(self, user: UserORM, class_id: int, changes: dict) -> ClassORM:
        row = owned_class(self.classes, class_id, user)
        for key, value in changes.items():
            if key in CLASS_FIELDS:
                setattr(row, key, value)
        self.db.commit()
        return row

    def delete(self, user: UserORM, class_id: int) -> None:
        row = owned_class(self.classes, class_id, user)
        self.classes.delete_cascade(row)
        self.db.commit()
        logger.info("class_deleted", class_id=class_id, teacher_id=user.id)

    # --- roster

    def roster(self, class_id: int) -> list[UserORM]:
        return list(self.get(class_id).students)

    def enrol(self, user: UserORM, class_id: int, student_id: int | None, email: str | None) -> UserORM:
        row = owned_class(self.classes, class_id, user)
        if student_id is None and not email:
            raise ValidationError("Provide a student_id or an email")
        q = select(UserORM).where(UserORM.role == Role.STUDENT.value)
        conditions = []
        if student_id is not None:
            conditions.append(UserORM.id == student_id)
        if email:
            conditions.append(UserORM.email == email.strip().lower())
        student = self.db.execute(q.where(or_(*conditions)).limit(1)).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student not found")
        if not self.classes.is_enrolled(row.id, student.id):
            row.students.append(student)
            self.db.commit()
        return student

    def unenrol(self, user: UserORM, class_id: int, student_id: int) -> None:
        row = owned_class(self.classes, class_id, user)
        student = next((s for s in row.students if s.id == student_id), None)
        if student is None:
            raise NotFoundError("Student is not enrolled in this class")
        row.students.remove(student)
        self.db.commit()
