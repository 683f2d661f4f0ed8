"""
Messaging, bulk job and invitation Pydantic schemas
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from rsvp_manager.models.enums import NotificationType, NotificationChannel

class MessagingSettingsUpdate(BaseModel):
    """Admin update of the platform messaging provider"""
    whatsapp_enabled: Optional[bool] = None
    whatsapp_provider: Optional[str] = None
    whatsapp_api_key: Optional[str] = None
    whatsapp_api_secret: Optional[str] = None
    whatsapp_phone_number: Optional[str] = None
    sms_enabled: Optional[bool] = None
    sms_provider: Optional[str] = None
    sms_api_key: Optional[str] = None
    sms_api_secret: Optional[str] = None
    sms_phone_number: Optional[str] = None
    sms_messaging_service_sid: Optional[str] = None
    whatsapp_invite_content_sid: Optional[str] = None
    whatsapp_reminder_content_sid: Optional[str] = None
    whatsapp_confirmation_content_sid: Optional[str] = None
    whatsapp_image_invite_content_sid: Optional[str] = None
    whatsapp_interactive_invite_content_sid: Optional[str] = None
    whatsapp_interactive_reminder_content_sid: Optional[str] = None
    whatsapp_event_day_content_sid: Optional[str] = None
    whatsapp_thank_you_content_sid: Optional[str] = None
    whatsapp_table_assignment_content_sid: Optional[str] = None
    whatsapp_guest_count_list_content_sid: Optional[str] = None

class WhatsAppTemplateCreate(BaseModel):
    type: NotificationType
    style: str = "formal"
    name: Optional[str] = None
    content_sid: str = Field(..., pattern="^HX[0-9a-fA-F]{32}$")
    is_active: bool = True

class MessageTemplateUpsert(BaseModel):
    """Event-specific override of a default message"""
    type: NotificationType
    locale: str = Field("he", pattern="^(he|en)$")
    title: str
    message: str
    is_active: bool = True

class SendMessageRequest(BaseModel):
    type: NotificationType = NotificationType.INVITE
    channel: Optional[NotificationChannel] = None

class BulkJobCreate(BaseModel):
    message_type: NotificationType = NotificationType.INVITE
    channel: Optional[NotificationChannel] = None
    guest_ids: Optional[List[int]] = None  # all guests when omitted

class InvitationField(BaseModel):
    field_type: str
    label: Optional[str] = None
    original_value: str
    new_value: str
