"""
Message store: send, edit, delete and paged listing.

Messages can be addressed either by primary id or by the client-generated
``client_id`` the sender supplied, so optimistic client state can be
reconciled with the stored record.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.message import Message
from app.schemas.chat import (
    MessageCreate,
    MessageDeleteResult,
    MessageResponse,
    MessageStatus,
    ReplyToSummary,
)
from app.schemas.directory import DirectoryUser
from app.services.access_control import can_delete_message, can_edit_message, edit_window_open
from app.services.async_conversation import AsyncConversationService
from app.services.async_directory import AsyncDirectoryService
from app.services.async_error_handler import (
    EditWindowExpiredError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.services.async_participant import AsyncParticipantService

logger = logging.getLogger(__name__)

# Largest value a BIGINT primary key can hold
_MAX_MESSAGE_ID = 2 ** 63 - 1


def _as_message_id(identifier: str) -> Optional[int]:
    """Primary key spelled by an identifier, if it is a plain ASCII number in range."""
    if identifier.isascii() and identifier.isdecimal():
        value = int(identifier)
        if value <= _MAX_MESSAGE_ID:
            return value
    return None


class AsyncMessageService:
    """Async service for chat messages."""

    @staticmethod
    async def get_by_client_id(db: AsyncSession, client_id: str) -> Optional[Message]:
        result = await db.execute(select(Message).where(Message.client_id == client_id))
        return result.scalar_one_or_none()

    @classmethod
    async def resolve_message(cls, db: AsyncSession, identifier: Union[int, str]) -> Optional[Message]:
        """
        Find a message by primary id, falling back to client id.

        Numeric identifiers are tried as a primary key first; anything that
        does not match is then looked up as a client id.
        """
        identifier = str(identifier).strip()
        if not identifier:
            return None

        message_id = _as_message_id(identifier)
        if message_id is not None:
            message = await db.get(Message, message_id)
            if message is not None:
                return message

        return await cls.get_by_client_id(db, identifier)

    @staticmethod
    async def _load_reply_targets(db: AsyncSession, messages: Iterable[Message]) -> Dict[int, Message]:
        reply_ids = {m.reply_to_id for m in messages if m.reply_to_id is not None}
        if not reply_ids:
            return {}
        result = await db.execute(select(Message).where(Message.id.in_(reply_ids)))
        return {m.id: m for m in result.scalars().all()}

    @staticmethod
    def serialize(message: Message, reply_targets: Optional[Dict[int, Message]] = None) -> MessageResponse:
        reply_to = None
        if message.reply_to_id is not None:
            target = (reply_targets or {}).get(message.reply_to_id)
            if target is None:
                reply_to = ReplyToSummary(id=message.reply_to_id, is_available=False)
            else:
                reply_to = ReplyToSummary(id=target.id, content=target.content, sender_name=target.sender_name)

        return MessageResponse(
            id=message.id,
            client_id=message.client_id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            content=message.content,
            type=message.type,
            status=message.status,
            file_url=message.file_url,
            file_name=message.file_name,
            file_size=message.file_size,
            reply_to_id=message.reply_to_id,
            reply_to=reply_to,
            metadata=message.extra_data,
            created_at=message.created_at,
            updated_at=message.updated_at,
            read_at=message.read_at,
        )

    @classmethod
    async def _to_response(cls, db: AsyncSession, message: Message) -> MessageResponse:
        return cls.serialize(message, await cls._load_reply_targets(db, [message]))

    @classmethod
    async def _replay(cls, db: AsyncSession, actor: DirectoryUser, data: MessageCreate, existing: Message) -> MessageResponse:
        """Answer a resend of an already stored client id."""
        if existing.sender_id != actor.id or existing.conversation_id != data.conversation_id:
            raise ValidationError.for_field("client_id", "The client_id has already been taken")
        logger.info(f"Message {existing.id} resent with client_id {data.client_id}, returning stored copy")
        return await cls._to_response(db, existing)

    @classmethod
    async def send_message(cls, db: AsyncSession, actor: DirectoryUser, data: MessageCreate) -> MessageResponse:
        """
        Persist a message from ``actor``.

        Every other active participant's unread counter goes up by one and the
        conversation moves to the top of listings. The sender name is copied
        onto the message so later renames do not rewrite history.
        """
        participant = await AsyncParticipantService.get_active_participant(db, data.conversation_id, actor.id)
        if participant is None:
            raise NotFoundError("Conversation not found or access denied")

        if data.client_id:
            existing = await cls.get_by_client_id(db, data.client_id)
            if existing is not None:
                return await cls._replay(db, actor, data, existing)

        if data.reply_to_id is not None and await db.get(Message, data.reply_to_id) is None:
            raise ValidationError.for_field("reply_to_id", "The message being replied to does not exist")

        now = datetime.now(timezone.utc)
        message = Message(
            client_id=data.client_id,
            conversation_id=data.conversation_id,
            sender_id=actor.id,
            sender_name=actor.name,
            content=data.content,
            type=data.type.value,
            status=MessageStatus.SENT.value,
            file_url=data.file_url,
            file_name=data.file_name,
            file_size=data.file_size,
            reply_to_id=data.reply_to_id,
            extra_data=data.metadata,
            created_at=now,
            updated_at=now,
        )
        try:
            async with db.begin_nested():
                db.add(message)
        except IntegrityError:
            # Same client id stored by a concurrent retry
            existing = await cls.get_by_client_id(db, data.client_id) if data.client_id else None
            if existing is None:
                raise
            return await cls._replay(db, actor, data, existing)

        await AsyncParticipantService.increment_unread_for_recipients(db, data.conversation_id, actor.id)
        await AsyncConversationService.touch(db, data.conversation_id, now)
        await db.commit()
        await db.refresh(message)

        logger.info(f"User {actor.id} sent message {message.id} to conversation {data.conversation_id}")
        return await cls._to_response(db, message)

    @classmethod
    async def edit_message(
        cls,
        db: AsyncSession,
        actor: DirectoryUser,
        identifier: Union[int, str],
        content: str,
        fallback_client_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MessageResponse:
        """Change a message's content. Only the sender may, and only inside the edit window."""
        message = await cls.resolve_message(db, identifier)
        if message is None and fallback_client_id:
            message = await cls.get_by_client_id(db, fallback_client_id)
        if message is None:
            raise NotFoundError("Message not found")

        if not can_edit_message(actor, message.sender_id):
            raise PermissionDeniedError("You can only edit your own messages")

        now = now or datetime.now(timezone.utc)
        if not edit_window_open(message.created_at, now, settings.MESSAGE_EDIT_WINDOW_SECONDS):
            raise EditWindowExpiredError()

        message.content = content
        message.updated_at = now
        await db.commit()
        await db.refresh(message)

        logger.info(f"User {actor.id} edited message {message.id}")
        return await cls._to_response(db, message)

    @classmethod
    async def delete_message(
        cls, db: AsyncSession, actor: DirectoryUser, identifier: Union[int, str]
    ) -> MessageDeleteResult:
        """
        Hard-delete a message.

        A message that cannot be found is reported as already deleted rather
        than as an error, so clients can retry deletes freely.
        """
        message = await cls.resolve_message(db, identifier)
        if message is None:
            identifier = str(identifier).strip()
            message_id = _as_message_id(identifier)
            if message_id is not None:
                return MessageDeleteResult(id=message_id, deleted=False)
            return MessageDeleteResult(client_id=identifier, deleted=False)

        sender = None
        if message.sender_id != actor.id:
            sender = await AsyncDirectoryService.get_user(db, message.sender_id)

        if not can_delete_message(actor, message.sender_id, sender):
            raise PermissionDeniedError("You do not have permission to delete this message")

        outcome = MessageDeleteResult(id=message.id, client_id=message.client_id, deleted=True)
        await db.delete(message)
        await db.commit()

        logger.info(f"User {actor.id} deleted message {outcome.id}")
        return outcome

    @classmethod
    async def list_messages(
        cls,
        db: AsyncSession,
        actor: DirectoryUser,
        conversation_id: int,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[MessageResponse]:
        """
        One page of a conversation, oldest first within the page.

        Pages count back from the newest message. Listing marks the
        conversation read for ``actor``.
        """
        participant = await AsyncParticipantService.get_active_participant(db, conversation_id, actor.id)
        if participant is None:
            raise NotFoundError("Conversation not found or access denied")

        page = max(page, 1)
        limit = min(limit or settings.DEFAULT_MESSAGE_PAGE_SIZE, settings.MAX_MESSAGE_PAGE_SIZE)

        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        messages = list(reversed(result.scalars().all()))
        reply_targets = await cls._load_reply_targets(db, messages)
        responses = [cls.serialize(message, reply_targets) for message in messages]

        await AsyncParticipantService.mark_read(db, conversation_id, actor.id)
        await db.commit()

        return responses
