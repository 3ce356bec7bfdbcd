from sqlalchemy.orm import Session

from ...domain.entities import Role
from ...domain.errors import AuthorizationError, NotFoundError, ValidationError
from ...infrastructure.models import ClassORM, UserORM
from ...infrastructure.repositories import ClassRepository, UserRepository

STUDENT_FIELDS = ("full_name", "phone", "avatar", "student_id", "grade", "section")


class StudentService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.classes = ClassRepository(db)

    def list_students(self, caller: UserORM, search: str | None = None) -> list[UserORM]:
        role = Role(caller.role)
        if role is Role.SUPER_ADMIN:
            return self.users.list_students(search=search)
        if role is Role.ADMIN:
            if caller.school_id is None:
                raise ValidationError("School ID missing for admin.")
            return self.users.list_students(school_id=caller.school_id, search=search)
        if role is Role.TEACHER:
            if caller.school_id is not None:
                return self.users.list_students(school_id=caller.school_id, search=search)
            seen = {s.id: s for c in self.classes.list_for_teacher(caller.id) for s in c.students}
            return sorted(seen.values(), key=lambda s: s.full_name)
        raise AuthorizationError("Access denied. Insufficient permissions.")

    def _can_view(self, caller: UserORM, student: UserORM) -> bool:
        role = Role(caller.role)
        if caller.id == student.id or role is Role.SUPER_ADMIN:
            return True
        if role is Role.PARENT:
            return any(child.id == student.id for child in caller.children)
        same_school = caller.school_id is not None and caller.school_id == student.school_id
        if role is Role.ADMIN:
            return same_school
        if role is Role.TEACHER:
            return same_school or any(
                c.teacher_id == caller.id for c in self.classes.list_for_student(student.id)
            )
        return False

    def get(self, caller: UserORM, student_id: int) -> UserORM:
        student = self.users.get(student_id)
        if student is None or student.role != Role.STUDENT.value:
            raise NotFoundError("Student not found")
        if not self._can_view(caller, student):
            raise AuthorizationError("Access denied. Insufficient permissions.")
        return student

    def update(self, caller: UserORM, student_id: int, changes: dict) -> UserORM:
        student = self.get(caller, student_id)
        role = Role(caller.role)
        is_school_admin = role is Role.ADMIN and caller.school_id == student.school_id
        if caller.id != student.id and role is not Role.SUPER_ADMIN and not is_school_admin:
            raise AuthorizationError("You can only update your own profile")
        for key, value in changes.items():
            if key in STUDENT_FIELDS:
                setattr(student, key, value)
        self.db.commit()
        return student

    def classes_of(self, caller: UserORM, student_id: int) -> list[ClassORM]:
        student = self.get(caller, student_id)
        return self.classes.list_for_student(student.id)
