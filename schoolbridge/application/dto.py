from dataclasses import dataclass, field
from typing import Any, Optional

from ..infrastructure.models import InvitationORM, UserORM


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass
class AuthResult:
    """What every sign-in style operation hands back to the router."""
    user: UserORM
    tokens: TokenPair


@dataclass
class InvitationEntry:
    email: str
    role: str
    school_id: Optional[int] = None


@dataclass
class InvitationOutcome:
    email: str
    role: str
    status: str
    invitation: Optional[InvitationORM] = None
    reason: Optional[str] = None


@dataclass
class InvitationBatchResult:
    outcomes: list[InvitationOutcome] = field(default_factory=list)

    @property
    def created(self) -> list[InvitationOutcome]:
        return [o for o in self.outcomes if o.invitation is not None]


@dataclass
class TokenCheck:
    email: str
    role: str
    school_id: Optional[int]
    school_name: Optional[str]


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
