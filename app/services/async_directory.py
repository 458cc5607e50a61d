"""
Read-only directory lookups.

The chat core never writes users, branches or MCs. Everything it needs to
know about them (role, branch, MC, display name) comes through this module.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.branch import Branch, MissionalCommunity
from app.models.user import User
from app.schemas.directory import BranchRecord, DirectoryUser, MCRecord
from app.services.async_error_handler import handle_async_db_errors


class AsyncDirectoryService:
    """Async lookups over the user, branch and MC directory."""

    @staticmethod
    @handle_async_db_errors("get user")
    async def get_user(db: AsyncSession, user_id: int) -> Optional[DirectoryUser]:
        """Get a user by id, or None if unknown."""
        user = await db.get(User, user_id)
        if user is None:
            return None
        return DirectoryUser.model_validate(user)

    @staticmethod
    @handle_async_db_errors("get users")
    async def get_users(db: AsyncSession, user_ids: List[int]) -> List[DirectoryUser]:
        """Get the users that exist among ``user_ids``."""
        if not user_ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        return [DirectoryUser.model_validate(user) for user in result.scalars().all()]

    @staticmethod
    @handle_async_db_errors("list branch users")
    async def list_users_by_branch(db: AsyncSession, branch_id: int) -> List[DirectoryUser]:
        result = await db.execute(
            select(User).where(User.branch_id == branch_id, User.is_active.is_(True)).order_by(User.id)
        )
        return [DirectoryUser.model_validate(user) for user in result.scalars().all()]

    @staticmethod
    @handle_async_db_errors("list MC users")
    async def list_users_by_mc(db: AsyncSession, mc_id: int) -> List[DirectoryUser]:
        result = await db.execute(
            select(User).where(User.mc_id == mc_id, User.is_active.is_(True)).order_by(User.id)
        )
        return [DirectoryUser.model_validate(user) for user in result.scalars().all()]

    @staticmethod
    @handle_async_db_errors("list users")
    async def list_all_users(db: AsyncSession) -> List[DirectoryUser]:
        result = await db.execute(select(User).where(User.is_active.is_(True)).order_by(User.id))
        return [DirectoryUser.model_validate(user) for user in result.scalars().all()]

    @staticmethod
    async def get_branch(db: AsyncSession, branch_id: int) -> Optional[BranchRecord]:
        branch = await db.get(Branch, branch_id)
        return BranchRecord.model_validate(branch) if branch else None

    @staticmethod
    async def get_mc(db: AsyncSession, mc_id: int) -> Optional[MCRecord]:
        mc = await db.get(MissionalCommunity, mc_id)
        return MCRecord.model_validate(mc) if mc else None
