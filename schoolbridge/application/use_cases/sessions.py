"""
Sessions: opening, rotating, closing and resolving the bearer of a token.

A session row is the server-side half of a refresh token. Rotation is one
conditional UPDATE, so of two concurrent refreshes with the same token only
one can win.
"""

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...domain.errors import InvalidTokenError
from ...infrastructure.metrics import auth_events_total
from ...infrastructure.models import UserORM, utcnow
from ...infrastructure.repositories import SessionRepository, UserRepository, ensure_aware
from ...infrastructure.security import TokenService, hash_token, new_session_id
from ..dto import AuthResult, TokenPair

logger = structlog.get_logger()


def open_session(db: Session, tokens: TokenService, user: UserORM) -> TokenPair:
    """Create a session row for ``user`` and mint its token pair. Caller commits."""
    sid = new_session_id()
    pair = tokens.issue(user, sid)
    SessionRepository(db).create(
        session_id=sid,
        user_id=user.id,
        token_hash=hash_token(pair.refresh_token),
        expires_at=tokens.refresh_expires_at(),
    )
    return pair


def load_active_user(db: Session, claims: dict) -> UserORM:
    user = UserRepository(db).get(claims["sub"])
    if user is None or not user.is_active or claims.get("tv") != user.token_version:
        raise InvalidTokenError()
    return user


class ResolveAccessToken:
    """Access token -> (claims, user), or InvalidTokenError."""

    def __init__(self, db: Session, tokens: TokenService):
        self.db = db
        self.tokens = tokens

    def execute(self, token: str) -> tuple[dict, UserORM]:
        claims = self.tokens.verify(token, is_refresh=False)
        return claims, load_active_user(self.db, claims)


class RefreshSession:
    def __init__(self, db: Session, tokens: TokenService):
        self.db = db
        self.tokens = tokens
        self.sessions = SessionRepository(db)

    def execute(self, refresh_token: str) -> AuthResult:
        claims = self.tokens.verify(refresh_token, is_refresh=True)
        user = load_active_user(self.db, claims)

        sid = claims["sid"]
        now = utcnow()
        current = self.sessions.get(sid)
        if current is None or ensure_aware(current.expires_at) <= now or current.user_id != user.id:
            auth_events_total.labels(event="refresh", outcome="rejected").inc()
            raise InvalidTokenError()

        pair = self.tokens.issue(user, sid)
        rotated = self.sessions.rotate(
            session_id=sid,
            old_hash=hash_token(refresh_token),
            new_hash=hash_token(pair.refresh_token),
            expires_at=self.tokens.refresh_expires_at(),
            now=now,
        )
        if not rotated:
            # already rotated by someone else: the presented token is spent
            self.db.rollback()
            auth_events_total.labels(event="refresh", outcome="rejected").inc()
            logger.warning("refresh_token_reuse", user_id=user.id, session_id=sid)
            raise InvalidTokenError()

        self.db.commit()
        auth_events_total.labels(event="refresh", outcome="success").inc()
        return AuthResult(user=user, tokens=pair)


class Logout:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, refresh_token: str | None) -> None:
        if not refresh_token:
            return
        try:
            removed = SessionRepository(self.db).delete_by_hash(hash_token(refresh_token))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("logout_failed", error=str(e))
            return
        auth_events_total.labels(event="logout", outcome="success").inc()
        logger.info("logout", sessions_removed=removed)


class RevokeAllSessions:
    """Invalidate every token of a user: bump token_version, drop sessions."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: int) -> int:
        UserRepository(self.db).bump_token_version(user_id)
        return SessionRepository(self.db).delete_for_user(user_id)
