from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....application.use_cases.schools import CreateSchool, ListSchools
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ..authz import AuthContext, authenticate, require_capability
from ..responses import ok
from ..schemas import SchoolCreate, SchoolOut

router = APIRouter(prefix="/schools", tags=["schools"])


@router.get("")
def list_schools(ctx: AuthContext = Depends(authenticate), db: Session = Depends(get_db)):
    rows = ListSchools(db).execute()
    return ok("Schools retrieved successfully", {"schools": [SchoolOut.model_validate(r) for r in rows]})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_school(
    payload: SchoolCreate,
    ctx: AuthContext = Depends(require_capability(Capability.MANAGE_SCHOOLS)),
    db: Session = Depends(get_db),
):
    year = payload.settings.academic_year
    row = CreateSchool(db).execute({
        "name": payload.name,
        "address": payload.address.model_dump(exclude_none=True),
        "contact": payload.contact.model_dump(exclude_none=True, mode="json"),
        "grade_system": payload.settings.grade_system.value,
        "timezone": payload.settings.timezone,
        "academic_year_start": year.start if year else None,
        "academic_year_end": year.end if year else None,
    })
    return ok("School created successfully", {"school": SchoolOut.model_validate(row)}, status.HTTP_201_CREATED)
