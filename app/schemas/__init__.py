"""Pydantic schemas for request and response validation."""

from .base import BaseSchema, SuccessEnvelope, ErrorEnvelope

# Directory schemas
from .directory import UserRole, DirectoryUser, BranchRecord, MCRecord

# Chat schemas
from .chat import (
    ConversationType,
    ConversationTypeFilter,
    CategoryType,
    MessageType,
    MessageStatus,
    ConversationCreate,
    CategoryConversationRequest,
    ParticipantSummary,
    LastMessageSummary,
    ConversationListItem,
    ConversationDetail,
    MessageCreate,
    MessageUpdate,
    ReplyToSummary,
    MessageResponse,
    MessageDeleteResult,
)

__all__ = [
    "BaseSchema",
    "SuccessEnvelope",
    "ErrorEnvelope",
    "UserRole",
    "DirectoryUser",
    "BranchRecord",
    "MCRecord",
    "ConversationType",
    "ConversationTypeFilter",
    "CategoryType",
    "MessageType",
    "MessageStatus",
    "ConversationCreate",
    "CategoryConversationRequest",
    "ParticipantSummary",
    "LastMessageSummary",
    "ConversationListItem",
    "ConversationDetail",
    "MessageCreate",
    "MessageUpdate",
    "ReplyToSummary",
    "MessageResponse",
    "MessageDeleteResult",
]
