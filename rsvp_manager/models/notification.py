"""
Notification log, message template and messaging provider models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base
from rsvp_manager.models.enums import NotificationType, NotificationChannel, NotificationStatus

class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)
    type = Column(Enum(NotificationType), nullable=False)
    channel = Column(Enum(NotificationChannel), nullable=False)
    status = Column(Enum(NotificationStatus), default=NotificationStatus.PENDING, nullable=False)
    provider_response = Column(Text)
    provider_message_id = Column(String(64), index=True)
    sent_at = Column(DateTime)
    delivered_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    guest = relationship("Guest", back_populates="notification_logs")

class MessageTemplate(Base):
    __tablename__ = "message_templates"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id"), nullable=False)
    type = Column(Enum(NotificationType), nullable=False)
    locale = Column(String(5), default="he", nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

class MessagingProviderSettings(Base):
    """Platform-wide messaging configuration, a single row"""

    __tablename__ = "messaging_provider_settings"

    id = Column(Integer, primary_key=True, index=True)

    whatsapp_enabled = Column(Boolean, default=False, nullable=False)
    whatsapp_provider = Column(String(50))
    whatsapp_api_key = Column(String(255))  # Twilio account SID
    whatsapp_api_secret = Column(String(255))  # Twilio auth token
    whatsapp_phone_number = Column(String(32))

    sms_enabled = Column(Boolean, default=False, nullable=False)
    sms_provider = Column(String(50))
    sms_api_key = Column(String(255))
    sms_api_secret = Column(String(255))
    sms_phone_number = Column(String(32))
    sms_messaging_service_sid = Column(String(64))

    # Legacy content SIDs, superseded by whatsapp_templates
    whatsapp_invite_content_sid = Column(String(64))
    whatsapp_reminder_content_sid = Column(String(64))
    whatsapp_confirmation_content_sid = Column(String(64))
    whatsapp_image_invite_content_sid = Column(String(64))
    whatsapp_interactive_invite_content_sid = Column(String(64))
    whatsapp_interactive_reminder_content_sid = Column(String(64))
    whatsapp_event_day_content_sid = Column(String(64))
    whatsapp_thank_you_content_sid = Column(String(64))
    whatsapp_table_assignment_content_sid = Column(String(64))
    whatsapp_guest_count_list_content_sid = Column(String(64))

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def whatsapp_configured(self) -> bool:
        return bool(
            self.whatsapp_enabled
            and self.whatsapp_provider
            and self.whatsapp_api_key
            and self.whatsapp_api_secret
            and self.whatsapp_phone_number
        )

    @property
    def sms_configured(self) -> bool:
        return bool(
            self.sms_enabled
            and self.sms_provider
            and self.sms_api_key
            and self.sms_api_secret
            and self.sms_phone_number
        )

class WhatsAppTemplate(Base):
    """Approved WhatsApp content template registered in Twilio"""

    __tablename__ = "whatsapp_templates"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(NotificationType), nullable=False)
    style = Column(String(20), default="formal", nullable=False)
    name = Column(String(255))
    content_sid = Column(String(64), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
