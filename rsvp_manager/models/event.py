"""
Wedding event and collaborator models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base
from rsvp_manager.models.enums import CollaboratorRole

class WeddingEvent(Base):
    __tablename__ = "wedding_events"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    date_time = Column(DateTime, nullable=False)
    location = Column(String(255), nullable=False)
    venue = Column(String(255))
    notes = Column(Text)
    image_path = Column(String(500))
    sms_sender_id = Column(String(11))
    is_active = Column(Boolean, default=True, nullable=False)
    archived_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = relationship("User", back_populates="events")
    guests = relationship("Guest", back_populates="event", cascade="all, delete-orphan")
    tables = relationship("WeddingTable", back_populates="event", cascade="all, delete-orphan")
    collaborators = relationship("EventCollaborator", back_populates="event", cascade="all, delete-orphan")
    automation_flows = relationship("AutomationFlow", back_populates="event", cascade="all, delete-orphan")

    @property
    def locale(self) -> str:
        """Message locale; events opt into English with 'locale:en' in notes"""
        if self.notes and "locale:en" in self.notes:
            return "en"
        return "he"

class EventCollaborator(Base):
    __tablename__ = "event_collaborators"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(Enum(CollaboratorRole), default=CollaboratorRole.VIEWER, nullable=False)
    invited_by_id = Column(Integer, ForeignKey("users.id"))
    accepted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    event = relationship("WeddingEvent", back_populates="collaborators")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_collaborator_event_user"),)
