from enum import Enum
from typing import Optional

from pydantic import Field

from app.schemas.base import BaseSchema


class UserRole(str, Enum):
    """Organisational roles, highest first."""
    SUPER_ADMIN = "super_admin"
    BRANCH_ADMIN = "branch_admin"
    MC_LEADER = "mc_leader"
    MEMBER = "member"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def outranks(self, other: "UserRole") -> bool:
        return self.rank > other.rank


_ROLE_RANKS = {
    UserRole.SUPER_ADMIN: 4,
    UserRole.BRANCH_ADMIN: 3,
    UserRole.MC_LEADER: 2,
    UserRole.MEMBER: 1,
}


class DirectoryUser(BaseSchema):
    """A user as seen by the chat core: identity, role and organisational placement."""
    id: int
    name: str
    email: Optional[str] = None
    role: UserRole = UserRole.MEMBER
    branch_id: Optional[int] = None
    mc_id: Optional[int] = None
    avatar: Optional[str] = None
    is_active: bool = True

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_branch_admin(self) -> bool:
        return self.role == UserRole.BRANCH_ADMIN

    @property
    def is_mc_leader(self) -> bool:
        return self.role == UserRole.MC_LEADER

    @property
    def is_admin(self) -> bool:
        """Admins see the headquarters branch channel."""
        return self.role in (UserRole.SUPER_ADMIN, UserRole.BRANCH_ADMIN)


class MCRecord(BaseSchema):
    id: int
    name: str
    branch_id: int


class BranchRecord(BaseSchema):
    id: int
    name: str
    is_headquarters: bool = Field(default=False)
