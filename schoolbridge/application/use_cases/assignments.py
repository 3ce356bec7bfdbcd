"""
Assignments owned by a teacher, and student submissions against them.
"""

import structlog
from sqlalchemy.orm import Session

from ...domain.errors import AuthorizationError, NotFoundError, ValidationError
from ...infrastructure.models import AssignmentORM, SubmissionORM, UserORM, utcnow
from ...infrastructure.repositories import AssignmentRepository, ClassRepository

logger = structlog.get_logger()

ASSIGNMENT_FIELDS = ("title", "description", "due_date", "max_points", "attachments", "is_published")


class AssignmentService:
    def __init__(self, db: Session):
        self.db = db
        self.assignments = AssignmentRepository(db)
        self.classes = ClassRepository(db)

    def _owned(self, user: UserORM, teacher_id: int, assignment_id: int) -> AssignmentORM:
        row = self.assignments.get(assignment_id)
        if row is None:
            raise NotFoundError("Assignment not found")
        if row.teacher_id != user.id or teacher_id != user.id:
            raise AuthorizationError("Only the assignment owner can modify this assignment")
        return row

    def list_for_teacher(self, teacher_id: int) -> list[AssignmentORM]:
        return self.assignments.list_for_teacher(teacher_id)

    def create(self, user: UserORM, teacher_id: int, class_id: int, data: dict) -> AssignmentORM:
        if user.id != teacher_id:
            raise AuthorizationError("You can only create assignments for yourself")
        target = self.classes.get(class_id)
        if target is None:
            raise NotFoundError("Class not found")
        if target.teacher_id != user.id:
            raise AuthorizationError("You can only add assignments to your own classes")
        row = AssignmentORM(
            class_id=class_id,
            teacher_id=user.id,
            **{k: v for k, v in data.items() if k in ASSIGNMENT_FIELDS},
        )
        self.assignments.add(row)
        self.db.commit()
        logger.info("assignment_created", assignment_id=row.id, class_id=class_id, teacher_id=user.id)
        return row

    def update(self, user: UserORM, teacher_id: int, assignment_id: int, changes: dict) -> AssignmentORM:
        row = self._owned(user, teacher_id, assignment_id)
        for key, value in changes.items():
            if key in ASSIGNMENT_FIELDS:
                setattr(row, key, value)
        self.db.commit()
        return row

    def delete(self, user: UserORM, teacher_id: int, assignment_id: int) -> None:
        row = self._owned(user, teacher_id, assignment_id)
        self.assignments.delete_cascade(row)
        self.db.commit()
        logger.info("assignment_deleted", assignment_id=assignment_id, teacher_id=user.id)

    def submit(self, student: UserORM, assignment_id: int, content: str) -> SubmissionORM:
        row = self.assignments.get(assignment_id)
        if row is None or not row.is_published:
            raise NotFoundError("Assignment not found")
        if not self.classes.is_enrolled(row.class_id, student.id):
            raise AuthorizationError("You are not enrolled in this class")

        submission = self.assignments.find_submission(row.id, student.id)
        if submission is None:
            submission = self.assignments.add_submission(
                SubmissionORM(assignment_id=row.id, student_id=student.id, content=content)
            )
        else:
            # resubmitting replaces the work and clears any earlier grade
            submission.content = content
            submission.submitted_at = utcnow()
            submission.grade = None
            submission.feedback = None
        self.db.commit()
        return submission

    def grade(
        self,
        user: UserORM,
        assignment_id: int,
        submission_id: int,
        grade: int,
        feedback: str | None = None,
    ) -> SubmissionORM:
        row = self.assignments.get(assignment_id)
        if row is None:
            raise NotFoundError("Assignment not found")
        if row.teacher_id != user.id:
            raise AuthorizationError("Only the assignment owner can grade submissions")
        submission = self.assignments.get_submission(assignment_id, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if not 0 <= grade <= row.max_points:
            raise ValidationError(f"Grade must be between 0 and {row.max_points}")
        submission.grade = grade
        submission.feedback = feedback
        self.db.commit()
        return submission
