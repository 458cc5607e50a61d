"""
Conversation store.

Branch, MC and announcement conversations are unique per category. Each one
carries a ``category_key`` backed by a unique index, and creation runs inside
a SAVEPOINT so that a concurrent creator's insert fails cleanly and the
winner's row is read back instead.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation import Conversation
from app.models.conversation_participant import ConversationParticipant
from app.models.user import User
from app.schemas.chat import (
    CategoryType,
    ConversationCreate,
    ConversationDetail,
    ConversationType,
    ParticipantSummary,
)
from app.schemas.directory import DirectoryUser
from app.services.access_control import (
    ConversationFacts,
    CreationTarget,
    can_access_category,
    can_create_conversation,
)
from app.services.async_directory import AsyncDirectoryService
from app.services.async_error_handler import NotFoundError, PermissionDeniedError, ValidationError
from app.services.async_participant import AsyncParticipantService

logger = logging.getLogger(__name__)

ANNOUNCEMENT_CATEGORY_KEY = "announcement"


def branch_category_key(branch_id: int) -> str:
    return f"branch:{branch_id}"


def mc_category_key(mc_id: int) -> str:
    return f"mc:{mc_id}"


class AsyncConversationService:
    """Async service for creating and provisioning conversations."""

    @staticmethod
    async def get_by_category_key(db: AsyncSession, category_key: str) -> Optional[Conversation]:
        result = await db.execute(select(Conversation).where(Conversation.category_key == category_key))
        return result.scalar_one_or_none()

    @classmethod
    async def _find_or_create_category(
        cls, db: AsyncSession, category_key: str, **fields
    ) -> Conversation:
        existing = await cls.get_by_category_key(db, category_key)
        if existing is not None:
            return existing

        conversation = Conversation(category_key=category_key, **fields)
        try:
            async with db.begin_nested():
                db.add(conversation)
        except IntegrityError:
            existing = await cls.get_by_category_key(db, category_key)
            if existing is None:
                raise
            logger.info(f"Conversation {category_key} was created concurrently, reusing id {existing.id}")
            return existing

        logger.info(f"Created {fields.get('type')} conversation {conversation.id} for {category_key}")
        return conversation

    @classmethod
    async def get_or_create_branch_conversation(
        cls,
        db: AsyncSession,
        branch_id: int,
        created_by: Optional[int] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Conversation:
        """Get the branch-wide conversation, creating it on first access."""
        branch = await AsyncDirectoryService.get_branch(db, branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")

        return await cls._find_or_create_category(
            db,
            branch_category_key(branch_id),
            name=name or f"{branch.name} Chat",
            description=description or "Branch-wide conversation",
            type=ConversationType.BRANCH.value,
            branch_id=branch_id,
            created_by=created_by,
        )

    @classmethod
    async def get_or_create_mc_conversation(
        cls,
        db: AsyncSession,
        mc_id: int,
        created_by: Optional[int] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Conversation:
        """Get the MC conversation, creating it on first access."""
        mc = await AsyncDirectoryService.get_mc(db, mc_id)
        if mc is None:
            raise NotFoundError("MC not found")

        return await cls._find_or_create_category(
            db,
            mc_category_key(mc_id),
            name=name or f"{mc.name} Chat",
            description=description or "MC conversation",
            type=ConversationType.MC.value,
            mc_id=mc_id,
            created_by=created_by,
        )

    @classmethod
    async def get_or_create_announcement_conversation(
        cls,
        db: AsyncSession,
        created_by: Optional[int] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Conversation:
        """Get the single church-wide announcement conversation."""
        return await cls._find_or_create_category(
            db,
            ANNOUNCEMENT_CATEGORY_KEY,
            name=name or "Announcements",
            description=description or "Church-wide announcements",
            type=ConversationType.ANNOUNCEMENT.value,
            created_by=created_by,
        )

    @staticmethod
    async def touch(db: AsyncSession, conversation_id: int, now: Optional[datetime] = None) -> None:
        """Bump updated_at so the conversation sorts to the top of listings."""
        now = now or datetime.now(timezone.utc)
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def load_participant_summaries(
        db: AsyncSession, conversation_ids: Iterable[int]
    ) -> Dict[int, List[ParticipantSummary]]:
        """Active participants of each conversation, joined with their directory record."""
        ids = list(conversation_ids)
        summaries: Dict[int, List[ParticipantSummary]] = {cid: [] for cid in ids}
        if not ids:
            return summaries

        result = await db.execute(
            select(ConversationParticipant, User)
            .join(User, User.id == ConversationParticipant.user_id)
            .where(
                ConversationParticipant.conversation_id.in_(ids),
                ConversationParticipant.left_at.is_(None),
            )
            .order_by(ConversationParticipant.conversation_id, ConversationParticipant.id)
            .execution_options(populate_existing=True)
        )
        for participant, user in result.all():
            summaries[participant.conversation_id].append(
                ParticipantSummary(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    avatar=user.avatar,
                    is_admin=participant.is_admin,
                )
            )
        return summaries

    @classmethod
    async def get_detail(cls, db: AsyncSession, conversation: Conversation) -> ConversationDetail:
        summaries = await cls.load_participant_summaries(db, [conversation.id])
        return ConversationDetail(
            id=conversation.id,
            name=conversation.name,
            description=conversation.description,
            type=ConversationType(conversation.type),
            branch_id=conversation.branch_id,
            mc_id=conversation.mc_id,
            participants=summaries[conversation.id],
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    @classmethod
    async def create_conversation(
        cls, db: AsyncSession, actor: DirectoryUser, data: ConversationCreate
    ) -> ConversationDetail:
        """
        Create a conversation on behalf of ``actor``.

        Group and individual conversations are ad hoc and need at least one
        participant besides the creator. Branch, MC and announcement
        conversations are unique per category: asking for one that already
        exists returns it, after topping up its membership.
        """
        other_ids = tuple(dict.fromkeys(pid for pid in data.participant_ids if pid != actor.id))
        mc_branch_id = None

        if data.type in (ConversationType.GROUP, ConversationType.INDIVIDUAL):
            if not other_ids:
                raise ValidationError.for_field(
                    "participant_ids", "At least one other participant is required"
                )
        elif data.type == ConversationType.BRANCH:
            if data.branch_id is None:
                raise ValidationError.for_field("branch_id", "branch_id is required for branch conversations")
            if await AsyncDirectoryService.get_branch(db, data.branch_id) is None:
                raise ValidationError.for_field("branch_id", "The selected branch does not exist")
        elif data.type == ConversationType.MC:
            if data.mc_id is None:
                raise ValidationError.for_field("mc_id", "mc_id is required for MC conversations")
            mc = await AsyncDirectoryService.get_mc(db, data.mc_id)
            if mc is None:
                raise ValidationError.for_field("mc_id", "The selected MC does not exist")
            mc_branch_id = mc.branch_id

        if other_ids:
            known = {user.id for user in await AsyncDirectoryService.get_users(db, list(other_ids))}
            missing = [pid for pid in other_ids if pid not in known]
            if missing:
                raise ValidationError.for_field(
                    "participant_ids", f"Unknown user ids: {', '.join(str(pid) for pid in missing)}"
                )

        target = CreationTarget(
            type=data.type,
            branch_id=data.branch_id,
            mc_id=data.mc_id,
            mc_branch_id=mc_branch_id,
            other_participant_ids=other_ids,
        )
        if not can_create_conversation(actor, target):
            raise PermissionDeniedError("You do not have permission to create this conversation")

        if data.type == ConversationType.BRANCH:
            conversation = await cls.get_or_create_branch_conversation(
                db, data.branch_id, created_by=actor.id, name=data.name, description=data.description
            )
        elif data.type == ConversationType.MC:
            conversation = await cls.get_or_create_mc_conversation(
                db, data.mc_id, created_by=actor.id, name=data.name, description=data.description
            )
        elif data.type == ConversationType.ANNOUNCEMENT:
            conversation = await cls.get_or_create_announcement_conversation(
                db, created_by=actor.id, name=data.name, description=data.description
            )
        else:
            conversation = Conversation(
                name=data.name,
                description=data.description,
                type=data.type.value,
                created_by=actor.id,
            )
            db.add(conversation)
            await db.flush()

        await AsyncParticipantService.add_participant(
            db, conversation.id, actor.id, is_admin=True, can_add_members=True
        )
        for user_id in other_ids:
            await AsyncParticipantService.add_participant(db, conversation.id, user_id)

        if data.type == ConversationType.BRANCH:
            await AsyncParticipantService.add_all_branch_users(db, conversation.id, data.branch_id)
        elif data.type == ConversationType.MC:
            await AsyncParticipantService.add_all_mc_users(db, conversation.id, data.mc_id)
        elif data.type == ConversationType.ANNOUNCEMENT:
            await AsyncParticipantService.add_all_users(db, conversation.id)

        await db.commit()
        await db.refresh(conversation)
        logger.info(f"User {actor.id} created {data.type.value} conversation {conversation.id}")
        return await cls.get_detail(db, conversation)

    @classmethod
    async def get_or_create_category_conversation(
        cls,
        db: AsyncSession,
        actor: DirectoryUser,
        category_type: CategoryType,
        category_id: int,
    ) -> ConversationDetail:
        """
        Find or create the conversation for a branch or MC and make sure every
        current member of that unit is an active participant.

        Access is checked before anything is read or written.
        """
        if category_type == CategoryType.BRANCH:
            branch = await AsyncDirectoryService.get_branch(db, category_id)
            if branch is None:
                raise NotFoundError("Branch not found")
            facts = ConversationFacts(
                type=ConversationType.BRANCH,
                branch_id=category_id,
                is_headquarters_branch=branch.is_headquarters,
            )
        else:
            mc = await AsyncDirectoryService.get_mc(db, category_id)
            if mc is None:
                raise NotFoundError("MC not found")
            facts = ConversationFacts(
                type=ConversationType.MC,
                mc_id=category_id,
                mc_branch_id=mc.branch_id,
            )

        if not can_access_category(actor, facts):
            raise PermissionDeniedError(f"Access denied to this {category_type.value} conversation")

        if category_type == CategoryType.BRANCH:
            conversation = await cls.get_or_create_branch_conversation(db, category_id, created_by=actor.id)
            await AsyncParticipantService.add_all_branch_users(db, conversation.id, category_id)
        else:
            conversation = await cls.get_or_create_mc_conversation(db, category_id, created_by=actor.id)
            await AsyncParticipantService.add_all_mc_users(db, conversation.id, category_id)

        await db.commit()
        await db.refresh(conversation)
        return await cls.get_detail(db, conversation)
