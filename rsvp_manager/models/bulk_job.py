"""
Bulk messaging job models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base
from rsvp_manager.models.enums import (
    NotificationType, NotificationChannel, BulkJobStatus, BulkItemStatus
)

class BulkMessageJob(Base):
    __tablename__ = "bulk_message_jobs"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    message_type = Column(Enum(NotificationType), nullable=False)
    channel = Column(Enum(NotificationChannel))
    status = Column(Enum(BulkJobStatus), default=BulkJobStatus.PENDING, nullable=False)
    total = Column(Integer, default=0, nullable=False)
    processed = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    items = relationship("BulkMessageJobItem", back_populates="job", cascade="all, delete-orphan")

class BulkMessageJobItem(Base):
    __tablename__ = "bulk_message_job_items"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("bulk_message_jobs.id"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    status = Column(Enum(BulkItemStatus), default=BulkItemStatus.PENDING, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text)
    next_attempt_at = Column(DateTime)
    sent_at = Column(DateTime)

    # Relationships
    job = relationship("BulkMessageJob", back_populates="items")
    guest = relationship("Guest")
