from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....application.use_cases.assignments import AssignmentService
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ..authz import AuthContext, require_capability
from ..responses import ok
from ..schemas import GradeReq, SubmissionCreate, SubmissionOut

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("/{assignment_id}/submissions", status_code=status.HTTP_201_CREATED)
def submit(
    assignment_id: int,
    payload: SubmissionCreate,
    ctx: AuthContext = Depends(require_capability(Capability.SUBMIT_ASSIGNMENTS)),
    db: Session = Depends(get_db),
):
    submission = AssignmentService(db).submit(ctx.user, assignment_id, payload.content)
    return ok(
        "Assignment submitted successfully",
        {"submission": SubmissionOut.model_validate(submission)},
        status.HTTP_201_CREATED,
    )


@router.put("/{assignment_id}/submissions/{submission_id}/grade")
def grade(
    assignment_id: int,
    submission_id: int,
    payload: GradeReq,
    ctx: AuthContext = Depends(require_capability(Capability.MANAGE_ASSIGNMENTS)),
    db: Session = Depends(get_db),
):
    submission = AssignmentService(db).grade(
        ctx.user, assignment_id, submission_id, payload.grade, payload.feedback
    )
    return ok("Submission graded successfully", {"submission": SubmissionOut.model_validate(submission)})
