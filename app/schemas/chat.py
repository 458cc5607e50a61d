from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum

from app.core.config import settings


class ConversationType(str, Enum):
    """Conversation variants. Each one has its own access policy."""
    INDIVIDUAL = "individual"
    GROUP = "group"
    MC = "mc"
    BRANCH = "branch"
    ANNOUNCEMENT = "announcement"


class ConversationTypeFilter(str, Enum):
    """Filter accepted by the conversation listing."""
    ALL = "all"
    INDIVIDUAL = "individual"
    GROUP = "group"
    MC = "mc"
    BRANCH = "branch"
    ANNOUNCEMENT = "announcement"


class CategoryType(str, Enum):
    """Organisational units that own a category conversation."""
    BRANCH = "branch"
    MC = "mc"


class MessageType(str, Enum):
    """Message types supported by the chat system."""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    AUDIO = "audio"
    VIDEO = "video"
    LOCATION = "location"
    SYSTEM = "system"


class MessageStatus(str, Enum):
    """Message delivery status options."""
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# Conversation Schemas
class ConversationCreate(BaseModel):
    """Schema for creating a conversation."""
    name: str = Field(..., min_length=1, max_length=255, description="Conversation name")
    description: Optional[str] = Field(default=None, max_length=1000, description="Conversation description")
    type: ConversationType = Field(..., description="Conversation type")
    participant_ids: List[int] = Field(default_factory=list, description="Users to add besides the creator")
    branch_id: Optional[int] = Field(default=None, description="Owning branch for branch conversations")
    mc_id: Optional[int] = Field(default=None, description="Owning MC for MC conversations")


class CategoryConversationRequest(BaseModel):
    """Schema for finding or creating a branch/MC conversation."""
    type: CategoryType = Field(..., description="Category type")
    category_id: int = Field(..., description="Branch or MC id")


class ParticipantSummary(BaseModel):
    """Participant as shown alongside a conversation."""
    id: int
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    is_admin: bool = False


class LastMessageSummary(BaseModel):
    """Preview of the most recent message in a conversation."""
    id: int
    sender_id: int
    sender_name: str
    content: str
    type: MessageType
    status: MessageStatus
    created_at: datetime
    read_at: Optional[datetime] = None


class ConversationListItem(BaseModel):
    """Conversation as returned by the listing endpoint."""
    id: int
    name: str
    description: Optional[str] = None
    type: ConversationType
    branch_id: Optional[int] = None
    mc_id: Optional[int] = None
    participants: List[ParticipantSummary] = Field(default_factory=list)
    last_message: Optional[LastMessageSummary] = None
    unread_count: int = 0
    is_muted: bool = False
    is_pinned: bool = False
    avatar: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ConversationDetail(BaseModel):
    """Conversation returned after creation or category provisioning."""
    id: int
    name: str
    description: Optional[str] = None
    type: ConversationType
    branch_id: Optional[int] = None
    mc_id: Optional[int] = None
    participants: List[ParticipantSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# Message Schemas
class MessageCreate(BaseModel):
    """Schema for sending a message."""
    conversation_id: int = Field(..., description="Target conversation")
    content: str = Field(..., min_length=1, max_length=settings.MAX_MESSAGE_LENGTH, description="Message content")
    type: MessageType = Field(default=MessageType.TEXT, description="Type of message")
    reply_to_id: Optional[int] = Field(default=None, description="Message being replied to")
    client_id: Optional[str] = Field(default=None, min_length=1, max_length=255, description="Client-generated id, echoed back")
    file_url: Optional[str] = Field(default=None, max_length=1000)
    file_name: Optional[str] = Field(default=None, max_length=255)
    file_size: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Additional message metadata")


class MessageUpdate(BaseModel):
    """Schema for editing a message."""
    content: str = Field(..., min_length=1, max_length=settings.MAX_MESSAGE_LENGTH, description="New message content")
    client_id: Optional[str] = Field(default=None, max_length=255, description="Fallback lookup key")


class ReplyToSummary(BaseModel):
    """Message a reply points at. Deleted targets come back unavailable."""
    id: int
    content: Optional[str] = None
    sender_name: Optional[str] = None
    is_available: bool = True


class MessageResponse(BaseModel):
    """Schema for message response."""
    model_config = ConfigDict(use_enum_values=True)

    id: int
    client_id: Optional[str] = None
    conversation_id: int
    sender_id: int
    sender_name: str
    content: str
    type: MessageType
    status: MessageStatus
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    reply_to_id: Optional[int] = None
    reply_to: Optional[ReplyToSummary] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    read_at: Optional[datetime] = None


class MessageDeleteResult(BaseModel):
    """Outcome of a delete. Unknown ids report deleted=False with success."""
    id: Optional[int] = None
    client_id: Optional[str] = None
    deleted: bool
