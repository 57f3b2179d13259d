"""
SQLAlchemy ORM models for database tables
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import uuid

Base = declarative_base()


class TransferActivityModel(Base):
    """SQLAlchemy ORM model for transfer_activities table"""
    
    __tablename__ = "transfer_activities"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    attempt_id = Column(String(64), nullable=False)
    final_state = Column(String(30), nullable=False)
    failure_kind = Column(String(50), nullable=True)
    token = Column(String(20), nullable=True)
    amount = Column(String(100), nullable=True)
    tx_hash = Column(String(255), nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    success = Column(Boolean, default=False, nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    __table_args__ = (
        Index('idx_transfer_activities_user', 'user_id'),
        Index('idx_transfer_activities_attempt', 'attempt_id', unique=True),
        Index('idx_transfer_activities_state', 'final_state'),
        Index('idx_transfer_activities_created', 'created_at'),
    )
    
    def __repr__(self):
        return f"<TransferActivity(user='{self.user_id}', state='{self.final_state}', retries={self.retry_count})>"
