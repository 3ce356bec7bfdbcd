import structlog
from sqlalchemy.orm import Session

from ...domain.entities import Role
from ...domain.errors import AuthorizationError, NotFoundError, ValidationError
from ...infrastructure.models import UserORM
from ...infrastructure.repositories import UserRepository
from .sessions import RevokeAllSessions

logger = structlog.get_logger()

PROFILE_FIELDS = ("full_name", "first_name", "last_name", "phone", "avatar", "subjects")


class UpdateProfile:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, user: UserORM, changes: dict) -> UserORM:
        for key, value in changes.items():
            if key in PROFILE_FIELDS:
                setattr(user, key, value)
        self.db.commit()
        return user


class SetUserStatus:
    """Activate or deactivate an account; deactivation signs it out everywhere."""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def execute(self, caller: UserORM, user_id: int, is_active: bool) -> UserORM:
        target = self.users.get(user_id)
        if target is None:
            raise NotFoundError("User not found")
        if target.id == caller.id:
            raise ValidationError("You cannot change your own status")

        role = Role(caller.role)
        if role is Role.ADMIN:
            if target.school_id is None or target.school_id != caller.school_id:
                raise AuthorizationError("Access denied. User belongs to another school.")
            if target.role in (Role.ADMIN.value, Role.SUPER_ADMIN.value):
                raise AuthorizationError("Access denied. Insufficient permissions.")
        elif role is not Role.SUPER_ADMIN:
            raise AuthorizationError("Access denied. Insufficient permissions.")

        target.is_active = is_active
        if not is_active:
            RevokeAllSessions(self.db).execute(target.id)
        self.db.commit()
        self.db.refresh(target)
        logger.info("user_status_changed", user_id=target.id, is_active=is_active, by=caller.id)
        return target
