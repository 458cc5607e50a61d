from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_async_db, get_current_active_user
from app.core.config import settings
from app.schemas.base import SuccessEnvelope
from app.schemas.chat import (
    CategoryConversationRequest,
    ConversationCreate,
    ConversationDetail,
    ConversationListItem,
    ConversationTypeFilter,
    MessageCreate,
    MessageDeleteResult,
    MessageResponse,
    MessageUpdate,
)
from app.schemas.directory import DirectoryUser
from app.services.async_conversation import AsyncConversationService
from app.services.async_conversation_query import AsyncConversationQueryService
from app.services.async_message import AsyncMessageService
from app.utils.logger import api_logger

router = APIRouter()


# Conversation endpoints
@router.get("/conversations", response_model=SuccessEnvelope[List[ConversationListItem]])
async def list_conversations(
    type_filter: ConversationTypeFilter = Query(
        ConversationTypeFilter.ALL, alias="type", description="Restrict to one conversation type"
    ),
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """List every conversation the current user can see, most recent first."""
    api_logger.info("Listing conversations", "CONVERSATIONS", user_id=current_user.id, type=type_filter.value)
    conversations = await AsyncConversationQueryService.list_for_user(db, current_user, type_filter)
    return SuccessEnvelope(data=conversations)


@router.get("/conversations/{conversation_id}/messages", response_model=SuccessEnvelope[List[MessageResponse]])
async def list_messages(
    conversation_id: int,
    page: int = Query(1, ge=1, description="Page number, counted back from the newest message"),
    limit: int = Query(
        settings.DEFAULT_MESSAGE_PAGE_SIZE, ge=1, le=settings.MAX_MESSAGE_PAGE_SIZE, description="Messages per page"
    ),
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """Get a page of messages, oldest first, and mark the conversation read."""
    api_logger.debug(
        "Fetching messages", "MESSAGES", user_id=current_user.id, conversation_id=conversation_id, page=page
    )
    messages = await AsyncMessageService.list_messages(db, current_user, conversation_id, page, limit)
    return SuccessEnvelope(data=messages)


@router.post("/conversations", response_model=SuccessEnvelope[ConversationDetail])
async def create_conversation(
    conversation_data: ConversationCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """Create a conversation. Branch, MC and announcement channels are reused if they exist."""
    api_logger.info(
        "Creating conversation", "CONVERSATIONS",
        user_id=current_user.id, type=conversation_data.type.value,
        participants=len(conversation_data.participant_ids),
    )
    conversation = await AsyncConversationService.create_conversation(db, current_user, conversation_data)
    api_logger.success(f"Conversation ready: {conversation.id}", "CONVERSATIONS")
    return SuccessEnvelope(data=conversation)


@router.post("/conversations/category", response_model=SuccessEnvelope[ConversationDetail])
async def get_or_create_category_conversation(
    request: CategoryConversationRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """Find or create a branch/MC conversation and bring its membership up to date."""
    api_logger.info(
        "Resolving category conversation", "CONVERSATIONS",
        user_id=current_user.id, type=request.type.value, category_id=request.category_id,
    )
    conversation = await AsyncConversationService.get_or_create_category_conversation(
        db, current_user, request.type, request.category_id
    )
    return SuccessEnvelope(data=conversation)


# Message endpoints
@router.post("/messages", response_model=SuccessEnvelope[MessageResponse])
async def send_message(
    message_data: MessageCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """Send a message. A repeated client_id returns the message already stored."""
    api_logger.info(
        "Sending message", "MESSAGES",
        user_id=current_user.id, conversation_id=message_data.conversation_id, client_id=message_data.client_id,
    )
    message = await AsyncMessageService.send_message(db, current_user, message_data)
    api_logger.success(f"Message stored: {message.id}", "MESSAGES")
    return SuccessEnvelope(data=message)


@router.put("/messages/{message_id}", response_model=SuccessEnvelope[MessageResponse])
async def edit_message(
    message_id: str,
    message_update: MessageUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """Edit a message by id or client id. Only the sender, and only shortly after sending."""
    api_logger.info("Editing message", "MESSAGES", user_id=current_user.id, message_id=message_id)
    message = await AsyncMessageService.edit_message(
        db, current_user, message_id, message_update.content, fallback_client_id=message_update.client_id
    )
    return SuccessEnvelope(data=message)


@router.delete("/messages/{message_id}", response_model=SuccessEnvelope[MessageDeleteResult])
async def delete_message(
    message_id: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: DirectoryUser = Depends(get_current_active_user),
):
    """Delete a message by id or client id. Deleting a missing message still succeeds."""
    api_logger.info("Deleting message", "MESSAGES", user_id=current_user.id, message_id=message_id)
    outcome = await AsyncMessageService.delete_message(db, current_user, message_id)
    if not outcome.deleted:
        api_logger.debug("Message already gone", "MESSAGES", message_id=message_id)
    return SuccessEnvelope(data=outcome)
