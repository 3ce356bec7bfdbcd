from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ...application.use_cases.sessions import ResolveAccessToken
from ...domain.entities import Role
from ...domain.errors import AuthenticationError, AuthorizationError
from ...domain.roles import Capability, has_capability
from ...infrastructure.db import get_db
from ...infrastructure.models import UserORM
from ...infrastructure.security import TokenService

# auto_error=False: a missing header is our 401, not FastAPI's 403
bearer = HTTPBearer(auto_error=False)

_token_service = TokenService()


def get_token_service() -> TokenService:
    return _token_service


@dataclass
class AuthContext:
    claims: dict
    user: UserORM


def authenticate(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthContext:
    if creds is None or not creds.credentials:
        raise AuthenticationError("Access token is required")
    claims, user = ResolveAccessToken(db, tokens).execute(creds.credentials)
    return AuthContext(claims=claims, user=user)


def authorize(*roles: Role):
    """Dependency factory: 403 unless the caller holds one of ``roles``."""
    allowed = {Role(r).value for r in roles}

    def dependency(ctx: AuthContext = Depends(authenticate)) -> AuthContext:
        if ctx.user.role not in allowed:
            raise AuthorizationError("Access denied. Insufficient permissions.")
        return ctx

    return dependency


def require_capability(capability: Capability):
    def dependency(ctx: AuthContext = Depends(authenticate)) -> AuthContext:
        if not has_capability(ctx.user.role, capability):
            raise AuthorizationError("Access denied. Insufficient permissions.")
        return ctx

    return dependency
