"""Database models."""

# Import all models here to ensure they're recognized by SQLAlchemy
from app.models.branch import Branch, MissionalCommunity
from app.models.conversation import Conversation
from app.models.conversation_participant import ConversationParticipant
from app.models.message import Message
from app.models.user import User

__all__ = [
    "User",
    "Branch",
    "MissionalCommunity",
    "Conversation",
    "ConversationParticipant",
    "Message",
]
