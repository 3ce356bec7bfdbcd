from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....application.use_cases.assignments import AssignmentService
from ....application.use_cases.classes import ClassService
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ..authz import AuthContext, require_capability
from ..responses import ok
from ..schemas import AssignmentCreate, AssignmentOut, AssignmentUpdate, ClassOut

router = APIRouter(prefix="/teachers", tags=["teachers"])

viewer = require_capability(Capability.VIEW_CLASSES)
author = require_capability(Capability.MANAGE_ASSIGNMENTS)


@router.get("/{teacher_id}/classes")
def teacher_classes(teacher_id: int, ctx: AuthContext = Depends(viewer), db: Session = Depends(get_db)):
    rows = ClassService(db).list_for_teacher(teacher_id)
    return ok("Classes retrieved successfully", {"classes": [ClassOut.model_validate(r) for r in rows]})


@router.get("/{teacher_id}/assignments")
def list_assignments(teacher_id: int, ctx: AuthContext = Depends(viewer), db: Session = Depends(get_db)):
    rows = AssignmentService(db).list_for_teacher(teacher_id)
    return ok(
        "Assignments retrieved successfully",
        {"assignments": [AssignmentOut.model_validate(r) for r in rows]},
    )


@router.post("/{teacher_id}/assignments", status_code=status.HTTP_201_CREATED)
def create_assignment(
    teacher_id: int,
    payload: AssignmentCreate,
    ctx: AuthContext = Depends(author),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude={"class_id"})
    row = AssignmentService(db).create(ctx.user, teacher_id, payload.class_id, data)
    return ok(
        "Assignment created successfully",
        {"assignment": AssignmentOut.model_validate(row)},
        status.HTTP_201_CREATED,
    )


@router.put("/{teacher_id}/assignments/{assignment_id}")
def update_assignment(
    teacher_id: int,
    assignment_id: int,
    payload: AssignmentUpdate,
    ctx: AuthContext = Depends(author),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    row = AssignmentService(db).update(ctx.user, teacher_id, assignment_id, changes)
    return ok("Assignment updated successfully", {"assignment": AssignmentOut.model_validate(row)})


@router.delete("/{teacher_id}/assignments/{assignment_id}")
def delete_assignment(
    teacher_id: int,
    assignment_id: int,
    ctx: AuthContext = Depends(author),
    db: Session = Depends(get_db),
):
    AssignmentService(db).delete(ctx.user, teacher_id, assignment_id)
    return ok("Assignment deleted successfully")
