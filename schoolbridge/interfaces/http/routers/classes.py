from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....application.use_cases.classes import ClassService
from ....domain.entities import Role
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ..authz import AuthContext, authorize, require_capability
from ..responses import ok
from ..schemas import ClassCreate, ClassOut, ClassUpdate, EnrolReq, StudentSummary

router = APIRouter(prefix="/classes", tags=["classes"])

viewer = require_capability(Capability.VIEW_CLASSES)
owner = require_capability(Capability.MANAGE_CLASSES)


@router.get("")
def list_classes(ctx: AuthContext = Depends(viewer), db: Session = Depends(get_db)):
    rows = ClassService(db).list_visible(ctx.user)
    return ok("Classes retrieved successfully", {"classes": [ClassOut.model_validate(r) for r in rows]})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_class(
    payload: ClassCreate,
    ctx: AuthContext = Depends(authorize(Role.TEACHER)),
    db: Session = Depends(get_db),
):
    row = ClassService(db).create(ctx.user, payload.model_dump(exclude_none=True))
    return ok("Class created successfully", {"class": ClassOut.model_validate(row)}, status.HTTP_201_CREATED)


@router.get("/{class_id}")
def get_class(class_id: int, ctx: AuthContext = Depends(viewer), db: Session = Depends(get_db)):
    row = ClassService(db).get(class_id)
    return ok("Class retrieved successfully", {"class": ClassOut.model_validate(row)})


@router.put("/{class_id}")
def update_class(
    class_id: int,
    payload: ClassUpdate,
    ctx: AuthContext = Depends(owner),
    db: Session = Depends(get_db),
):
    row = ClassService(db).update(ctx.user, class_id, payload.model_dump(exclude_unset=True))
    return ok("Class updated successfully", {"class": ClassOut.model_validate(row)})


@router.delete("/{class_id}")
def delete_class(class_id: int, ctx: AuthContext = Depends(owner), db: Session = Depends(get_db)):
    ClassService(db).delete(ctx.user, class_id)
    return ok("Class deleted successfully")


@router.get("/{class_id}/students")
def list_roster(class_id: int, ctx: AuthContext = Depends(viewer), db: Session = Depends(get_db)):
    students = ClassService(db).roster(class_id)
    return ok(
        "Students retrieved successfully",
        {"students": [StudentSummary.model_validate(s) for s in students]},
    )


@router.post("/{class_id}/students", status_code=status.HTTP_201_CREATED)
def enrol_student(
    class_id: int,
    payload: EnrolReq,
    ctx: AuthContext = Depends(owner),
    db: Session = Depends(get_db),
):
    student = ClassService(db).enrol(ctx.user, class_id, payload.student_id, payload.email)
    return ok(
        "Student added to class",
        {"student": StudentSummary.model_validate(student)},
        status.HTTP_201_CREATED,
    )


@router.delete("/{class_id}/students/{student_id}")
def remove_student(
    class_id: int,
    student_id: int,
    ctx: AuthContext = Depends(owner),
    db: Session = Depends(get_db),
):
    ClassService(db).unenrol(ctx.user, class_id, student_id)
    return ok("Student removed from class")
