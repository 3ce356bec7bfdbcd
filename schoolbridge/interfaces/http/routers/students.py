from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ....application.use_cases.students import StudentService
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ..authz import AuthContext, authenticate, require_capability
from ..responses import ok
from ..schemas import ClassOut, StudentUpdate, UserOut

router = APIRouter(prefix="/students", tags=["students"])


@router.get("")
def list_students(
    ctx: AuthContext = Depends(require_capability(Capability.VIEW_STUDENTS)),
    db: Session = Depends(get_db),
    search: Optional[str] = Query(None, max_length=100),
):
    rows = StudentService(db).list_students(ctx.user, search)
    return ok("Students retrieved successfully", {"students": [UserOut.model_validate(r) for r in rows]})


@router.get("/{student_id}")
def get_student(student_id: int, ctx: AuthContext = Depends(authenticate), db: Session = Depends(get_db)):
    student = StudentService(db).get(ctx.user, student_id)
    return ok("Student retrieved successfully", {"student": UserOut.model_validate(student)})


@router.put("/{student_id}")
def update_student(
    student_id: int,
    payload: StudentUpdate,
    ctx: AuthContext = Depends(authenticate),
    db: Session = Depends(get_db),
):
    student = StudentService(db).update(ctx.user, student_id, payload.model_dump(exclude_unset=True))
    return ok("Student updated successfully", {"student": UserOut.model_validate(student)})


@router.get("/{student_id}/classes")
def student_classes(student_id: int, ctx: AuthContext = Depends(authenticate), db: Session = Depends(get_db)):
    rows = StudentService(db).classes_of(ctx.user, student_id)
    return ok("Classes retrieved successfully", {"classes": [ClassOut.model_validate(r) for r in rows]})
