from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String

from app.db.base_class import Base, BigIntegerType


class User(Base):
    """Directory record for a church member. Read-only for the chat core."""

    __tablename__ = "users"

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(50), nullable=False, default="member")
    branch_id = Column(BigIntegerType, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True)
    mc_id = Column(BigIntegerType, ForeignKey("missional_communities.id", ondelete="SET NULL"), nullable=True, index=True)
    avatar = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("role IN ('super_admin', 'branch_admin', 'mc_leader', 'member')", name="valid_user_role"),
    )
