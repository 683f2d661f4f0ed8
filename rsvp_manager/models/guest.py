"""
Guest and RSVP models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base
from rsvp_manager.models.enums import RsvpStatus

class Guest(Base):
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id"), nullable=False)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(32))
    email = Column(String(255))
    slug = Column(String(32), unique=True, nullable=False, index=True)
    side = Column(String(50))  # bride, groom, both
    group_name = Column(String(100))  # family, friends, work, other
    expected_guests = Column(Integer, default=1, nullable=False)
    notes = Column(Text)
    is_test = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("WeddingEvent", back_populates="guests")
    rsvp = relationship("GuestRsvp", back_populates="guest", uselist=False, cascade="all, delete-orphan")
    table_assignment = relationship("TableAssignment", back_populates="guest", uselist=False, cascade="all, delete-orphan")
    notification_logs = relationship("NotificationLog", back_populates="guest", cascade="all, delete-orphan")

    @property
    def rsvp_status(self) -> RsvpStatus:
        return self.rsvp.status if self.rsvp else RsvpStatus.PENDING

class GuestRsvp(Base):
    __tablename__ = "guest_rsvps"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), unique=True, nullable=False)
    status = Column(Enum(RsvpStatus), default=RsvpStatus.PENDING, nullable=False)
    guest_count = Column(Integer, default=1, nullable=False)
    note = Column(Text)
    responded_at = Column(DateTime)
    arrived_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    guest = relationship("Guest", back_populates="rsvp")
