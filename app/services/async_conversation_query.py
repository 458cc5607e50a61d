"""
Conversation listing for the chat inbox.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation import Conversation
from app.models.conversation_participant import ConversationParticipant
from app.models.message import Message
from app.schemas.chat import (
    ConversationListItem,
    ConversationType,
    ConversationTypeFilter,
    LastMessageSummary,
    ParticipantSummary,
)
from app.schemas.directory import DirectoryUser
from app.services.access_control import visible_conversations_clause
from app.services.async_conversation import AsyncConversationService

logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "Unknown User"


def display_name(
    conversation: Conversation, participants: List[ParticipantSummary], actor: DirectoryUser
) -> str:
    """Two-party direct conversations are named after the other person."""
    if conversation.type == ConversationType.INDIVIDUAL.value and len(participants) == 2:
        other = next((p for p in participants if p.id != actor.id), None)
        if other is not None:
            return other.name or UNKNOWN_USER_NAME
    return conversation.name


class AsyncConversationQueryService:
    """Builds the per-user conversation list."""

    @staticmethod
    async def _last_messages(db: AsyncSession, conversation_ids: List[int]) -> Dict[int, LastMessageSummary]:
        if not conversation_ids:
            return {}

        ranked = (
            select(
                Message.id.label("id"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
            )
            .where(Message.conversation_id.in_(conversation_ids))
            .subquery()
        )
        result = await db.execute(
            select(Message).join(ranked, ranked.c.id == Message.id).where(ranked.c.position == 1)
        )
        return {
            message.conversation_id: LastMessageSummary(
                id=message.id,
                sender_id=message.sender_id,
                sender_name=message.sender_name,
                content=message.content,
                type=message.type,
                status=message.status,
                created_at=message.created_at,
                read_at=message.read_at,
            )
            for message in result.scalars().all()
        }

    @staticmethod
    async def _unread_counts(db: AsyncSession, actor: DirectoryUser, conversation_ids: List[int]) -> Dict[int, int]:
        if not conversation_ids:
            return {}
        result = await db.execute(
            select(ConversationParticipant.conversation_id, ConversationParticipant.unread_count).where(
                ConversationParticipant.user_id == actor.id,
                ConversationParticipant.conversation_id.in_(conversation_ids),
            )
        )
        return {conversation_id: unread for conversation_id, unread in result.all()}

    @classmethod
    async def list_for_user(
        cls,
        db: AsyncSession,
        actor: DirectoryUser,
        type_filter: Optional[ConversationTypeFilter] = ConversationTypeFilter.ALL,
    ) -> List[ConversationListItem]:
        """
        Every conversation ``actor`` may see, most recently active first.

        Each entry carries its active participants, the latest message and
        the actor's own unread count.
        """
        if type_filter is None or type_filter == ConversationTypeFilter.ALL:
            types = list(ConversationType)
        else:
            types = [ConversationType(type_filter.value)]

        result = await db.execute(
            select(Conversation)
            .where(visible_conversations_clause(actor, types))
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .execution_options(populate_existing=True)
        )
        conversations = list(result.scalars().all())
        ids = [conversation.id for conversation in conversations]

        participants = await AsyncConversationService.load_participant_summaries(db, ids)
        last_messages = await cls._last_messages(db, ids)
        unread = await cls._unread_counts(db, actor, ids)

        logger.debug(f"User {actor.id} can see {len(conversations)} conversations")

        return [
            ConversationListItem(
                id=conversation.id,
                name=display_name(conversation, participants[conversation.id], actor),
                description=conversation.description,
                type=ConversationType(conversation.type),
                branch_id=conversation.branch_id,
                mc_id=conversation.mc_id,
                participants=participants[conversation.id],
                last_message=last_messages.get(conversation.id),
                unread_count=unread.get(conversation.id, 0),
                is_muted=bool(conversation.is_muted),
                is_pinned=bool(conversation.is_pinned),
                avatar=conversation.avatar,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            )
            for conversation in conversations
        ]
