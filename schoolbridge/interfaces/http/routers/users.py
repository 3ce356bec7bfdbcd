from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ....application.use_cases.users import SetUserStatus, UpdateProfile
from ....domain.roles import Capability
from ....infrastructure.db import get_db
from ..authz import AuthContext, authenticate, require_capability
from ..responses import ok
from ..schemas import ProfileUpdate, StatusUpdate, UserOut

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile")
def get_profile(ctx: AuthContext = Depends(authenticate)):
    return ok("Profile retrieved successfully", {"user": UserOut.model_validate(ctx.user)})


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    ctx: AuthContext = Depends(authenticate),
    db: Session = Depends(get_db),
):
    user = UpdateProfile(db).execute(ctx.user, payload.model_dump(exclude_unset=True))
    return ok("Profile updated successfully", {"user": UserOut.model_validate(user)})


@router.patch("/{user_id}/status")
def set_status(
    user_id: int,
    payload: StatusUpdate,
    ctx: AuthContext = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    user = SetUserStatus(db).execute(ctx.user, user_id, payload.is_active)
    state = "activated" if user.is_active else "deactivated"
    return ok(f"User {state} successfully", {"user": UserOut.model_validate(user)})
