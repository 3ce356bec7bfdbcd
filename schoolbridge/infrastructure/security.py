import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..application.dto import TokenPair
from ..config import settings
from ..domain.errors import InvalidTokenError

pwd = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__truncate_error=False,
)


class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)

    def verify(self, plain: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        return pwd.verify(plain, hashed)


def hash_token(token: str) -> str:
    """Refresh tokens are stored only as their SHA-256 digest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_session_id() -> str:
    return uuid.uuid4().hex


def new_invitation_token() -> str:
    return secrets.token_hex(32)


class TokenService:
    """Issues and verifies the access / refresh JWT pair."""

    def __init__(
        self,
        secret: str | None = None,
        refresh_secret: str | None = None,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
    ):
        self.secret = secret or settings.SECRET_KEY
        self.refresh_secret = refresh_secret or settings.REFRESH_SECRET_KEY
        self.access_ttl = access_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE

    def _encode(self, claims: dict, key: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + ttl,
            # two tokens minted in the same second must still differ
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, key, algorithm=self.algorithm)

    def issue(self, user, session_id: str) -> TokenPair:
        access = self._encode(
            {
                "sub": str(user.id),
                "email": user.email,
                "role": user.role,
                "full_name": user.full_name,
                "tv": user.token_version,
                "type": "access",
            },
            self.secret,
            self.access_ttl,
        )
        refresh = self._encode(
            {
                "sub": str(user.id),
                "sid": session_id,
                "tv": user.token_version,
                "type": "refresh",
            },
            self.refresh_secret,
            self.refresh_ttl,
        )
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_in=int(self.access_ttl.total_seconds()),
        )

    def refresh_expires_at(self) -> datetime:
        return datetime.now(timezone.utc) + self.refresh_ttl

    def verify(self, token: str, is_refresh: bool = False) -> dict:
        key = self.refresh_secret if is_refresh else self.secret
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except JWTError:
            raise InvalidTokenError()
        expected = "refresh" if is_refresh else "access"
        if claims.get("type") != expected or not claims.get("sub"):
            raise InvalidTokenError()
        if is_refresh and not claims.get("sid"):
            raise InvalidTokenError()
        try:
            claims["sub"] = int(claims["sub"])
        except (TypeError, ValueError):
            raise InvalidTokenError()
        return claims
