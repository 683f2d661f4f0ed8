"""
User model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base
from rsvp_manager.models.enums import UserRole, PlanTier

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    api_token = Column(String(128), unique=True, nullable=False, index=True)
    role = Column(Enum(UserRole), default=UserRole.ROLE_WEDDING_OWNER, nullable=False)
    plan = Column(Enum(PlanTier), default=PlanTier.FREE, nullable=False)

    # Message usage against plan quotas
    whatsapp_sent = Column(Integer, default=0, nullable=False)
    sms_sent = Column(Integer, default=0, nullable=False)
    whatsapp_bonus = Column(Integer, default=0, nullable=False)
    sms_bonus = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    events = relationship("WeddingEvent", back_populates="owner")

    @property
    def is_platform_owner(self) -> bool:
        return self.role == UserRole.ROLE_PLATFORM_OWNER
