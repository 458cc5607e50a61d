from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, JSON, String, Text

from app.db.base_class import Base, BigIntegerType


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=False, default="individual")
    avatar = Column(String(500), nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
    created_by = Column(BigIntegerType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    branch_id = Column(BigIntegerType, ForeignKey("branches.id", ondelete="CASCADE"), nullable=True)
    mc_id = Column(BigIntegerType, ForeignKey("missional_communities.id", ondelete="CASCADE"), nullable=True)
    # "branch:<id>", "mc:<id>" or "announcement"; NULL for ad hoc conversations
    category_key = Column(String(100), nullable=True, unique=True)
    settings = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    __table_args__ = (
        CheckConstraint("type IN ('individual', 'group', 'mc', 'branch', 'announcement')", name="valid_conversation_type"),
        Index("ix_conversations_branch_type", "branch_id", "type"),
        Index("ix_conversations_mc_type", "mc_id", "type"),
    )
