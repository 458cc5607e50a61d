from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from app.db.base_class import Base, BigIntegerType


class Branch(Base):
    __tablename__ = "branches"

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    is_headquarters = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))


class MissionalCommunity(Base):
    __tablename__ = "missional_communities"

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    branch_id = Column(BigIntegerType, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
