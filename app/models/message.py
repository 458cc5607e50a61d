from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, JSON, String, Text

from app.db.base_class import Base, BigIntegerType


class Message(Base):
    __tablename__ = "messages"

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    client_id = Column(String(255), nullable=True, unique=True)
    conversation_id = Column(BigIntegerType, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(BigIntegerType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="text")
    status = Column(String(50), nullable=False, default="sent")
    file_url = Column(String(1000), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    # Weak reference: the target may be deleted later
    reply_to_id = Column(BigIntegerType, nullable=True, index=True)
    # "metadata" is reserved on declarative classes
    extra_data = Column("metadata", JSON)
    is_encrypted = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("type IN ('text', 'image', 'file', 'audio', 'video', 'location', 'system')", name="valid_message_type"),
        CheckConstraint("status IN ('sending', 'sent', 'delivered', 'read', 'failed')", name="valid_message_status"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )
