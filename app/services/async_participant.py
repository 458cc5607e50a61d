"""
Conversation membership and unread bookkeeping.

Methods here flush but never commit; the calling service owns the
transaction. Counter updates run as single UPDATE statements so that
concurrent senders never lose increments. Those statements do not
synchronise the session, so row lookups here always repopulate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation_participant import ConversationParticipant
from app.schemas.directory import DirectoryUser
from app.services.async_directory import AsyncDirectoryService

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningResult:
    """Outcome of a bulk add."""
    added: int = 0
    skipped: int = 0
    failed: int = 0


class AsyncParticipantService:
    """Async participant registry."""

    @staticmethod
    async def get_participant(
        db: AsyncSession, conversation_id: int, user_id: int
    ) -> Optional[ConversationParticipant]:
        """Get the membership row for a pair, active or not."""
        result = await db.execute(
            select(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_participant(
        db: AsyncSession, conversation_id: int, user_id: int
    ) -> Optional[ConversationParticipant]:
        result = await db.execute(
            select(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.left_at.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_participants(
        db: AsyncSession, conversation_id: int
    ) -> List[ConversationParticipant]:
        result = await db.execute(
            select(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.left_at.is_(None),
            )
            .order_by(ConversationParticipant.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def active_user_ids(db: AsyncSession, conversation_id: int) -> Set[int]:
        result = await db.execute(
            select(ConversationParticipant.user_id).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.left_at.is_(None),
            )
        )
        return set(result.scalars().all())

    @classmethod
    async def add_participant(
        cls,
        db: AsyncSession,
        conversation_id: int,
        user_id: int,
        *,
        is_admin: bool = False,
        can_add_members: bool = False,
        notifications_enabled: bool = True,
    ) -> ConversationParticipant:
        """
        Add a user to a conversation.

        An active membership is returned unchanged. A membership that was
        left is reactivated in place: left_at cleared, joined_at reset and
        the unread counter zeroed, so the (conversation, user) pair keeps
        exactly one row.
        """
        now = datetime.now(timezone.utc)
        existing = await cls.get_participant(db, conversation_id, user_id)

        if existing is not None:
            if existing.left_at is None:
                return existing
            async with db.begin_nested():
                existing.left_at = None
                existing.joined_at = now
                existing.unread_count = 0
                existing.is_admin = is_admin
                existing.can_add_members = can_add_members
                existing.notifications_enabled = notifications_enabled
            logger.info(f"Reactivated participant {user_id} in conversation {conversation_id}")
            return existing

        participant = ConversationParticipant(
            conversation_id=conversation_id,
            user_id=user_id,
            joined_at=now,
            is_admin=is_admin,
            can_add_members=can_add_members,
            notifications_enabled=notifications_enabled,
            unread_count=0,
        )
        try:
            async with db.begin_nested():
                db.add(participant)
        except IntegrityError:
            # Another request inserted the same pair first
            existing = await cls.get_participant(db, conversation_id, user_id)
            if existing is None:
                raise
            return existing

        return participant

    @staticmethod
    async def remove_participant(db: AsyncSession, conversation_id: int, user_id: int) -> bool:
        """Soft-leave: stamp left_at on the active row. Returns False if none."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.left_at.is_(None),
            )
            .values(left_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    async def mark_read(
        db: AsyncSession, conversation_id: int, user_id: int, now: Optional[datetime] = None
    ) -> bool:
        """
        Zero the unread counter and advance last_read_at.

        last_read_at only ever moves forward, even if an older read marker
        lands after a newer one.
        """
        now = now or datetime.now(timezone.utc)
        result = await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .values(
                unread_count=0,
                last_read_at=case(
                    (
                        or_(
                            ConversationParticipant.last_read_at.is_(None),
                            ConversationParticipant.last_read_at < now,
                        ),
                        now,
                    ),
                    else_=ConversationParticipant.last_read_at,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    async def increment_unread(db: AsyncSession, conversation_id: int, user_id: int) -> bool:
        """Atomically add one to a single active participant's counter."""
        result = await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.left_at.is_(None),
            )
            .values(unread_count=ConversationParticipant.unread_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    async def increment_unread_for_recipients(
        db: AsyncSession, conversation_id: int, sender_id: int
    ) -> int:
        """Atomically bump every active participant except the sender. Returns rows touched."""
        result = await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id != sender_id,
                ConversationParticipant.left_at.is_(None),
            )
            .values(unread_count=ConversationParticipant.unread_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @classmethod
    async def add_users(
        cls, db: AsyncSession, conversation_id: int, users: Iterable[DirectoryUser]
    ) -> ProvisioningResult:
        """
        Add every user who is not already an active participant.

        Best effort: a failure for one user is logged and counted, and the
        remaining users are still processed.
        """
        outcome = ProvisioningResult()
        already_active = await cls.active_user_ids(db, conversation_id)

        for user in users:
            if user.id in already_active:
                outcome.skipped += 1
                continue
            try:
                await cls.add_participant(db, conversation_id, user.id)
                outcome.added += 1
                already_active.add(user.id)
            except SQLAlchemyError as e:
                outcome.failed += 1
                logger.warning(f"Could not add user {user.id} to conversation {conversation_id}: {e}")

        logger.info(
            f"Provisioned conversation {conversation_id}: "
            f"added={outcome.added} skipped={outcome.skipped} failed={outcome.failed}"
        )
        return outcome

    @classmethod
    async def add_all_branch_users(cls, db: AsyncSession, conversation_id: int, branch_id: int) -> ProvisioningResult:
        users = await AsyncDirectoryService.list_users_by_branch(db, branch_id)
        return await cls.add_users(db, conversation_id, users)

    @classmethod
    async def add_all_mc_users(cls, db: AsyncSession, conversation_id: int, mc_id: int) -> ProvisioningResult:
        users = await AsyncDirectoryService.list_users_by_mc(db, mc_id)
        return await cls.add_users(db, conversation_id, users)

    @classmethod
    async def add_all_users(cls, db: AsyncSession, conversation_id: int) -> ProvisioningResult:
        users = await AsyncDirectoryService.list_all_users(db)
        return await cls.add_users(db, conversation_id, users)
