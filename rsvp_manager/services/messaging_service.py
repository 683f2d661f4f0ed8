"""
Single-guest messaging with plan quotas and notification logging
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, PlanLimitError, ValidationError
from rsvp_manager.models import Guest, MessageTemplate, User, WeddingEvent
from rsvp_manager.models.enums import NotificationChannel, NotificationType
from rsvp_manager.schemas.notification import MessageTemplateUpsert
from rsvp_manager.services.plans import (
    can_send_sms, can_send_whatsapp, get_plan_limits, get_remaining_messages, record_message_usage
)
from rsvp_manager.services.repositories import (
    GuestRepo, NotificationRepo, SettingsRepo, INVITATION_NOTIFICATION_TYPES
)
from rsvp_manager.services.notifications import get_notification_service
from rsvp_manager.services.notifications.twilio_service import select_channel
from rsvp_manager.services.notifications.types import NotificationResult, NotificationService
from rsvp_manager.services.automation.handlers import on_notification_sent

logger = logging.getLogger(__name__)

SENDABLE_TYPES = (
    NotificationType.INVITE,
    NotificationType.REMINDER,
    NotificationType.INTERACTIVE_INVITE,
    NotificationType.INTERACTIVE_REMINDER,
)

WHATSAPP_ONLY_TYPES = (NotificationType.INTERACTIVE_INVITE, NotificationType.INTERACTIVE_REMINDER)

def has_quota(user: User, channel: NotificationChannel, count: int = 1) -> bool:
    if channel == NotificationChannel.SMS:
        return can_send_sms(user, count)
    return can_send_whatsapp(user, count)

def settle_channel(
    db: Session,
    notification_type: NotificationType,
    channel: Optional[NotificationChannel] = None
) -> NotificationChannel:
    """The channel the send will actually go out on, so quota is checked against that one"""
    provider = SettingsRepo.get_messaging_settings(db)
    if provider:
        selected = select_channel(provider, channel, whatsapp_only=notification_type in WHATSAPP_ONLY_TYPES)
        if selected:
            return selected
    return channel or NotificationChannel.WHATSAPP

async def dispatch(
    service: NotificationService,
    guest: Guest,
    event: WeddingEvent,
    notification_type: NotificationType,
    channel: Optional[NotificationChannel] = None
) -> NotificationResult:
    if notification_type == NotificationType.INVITE:
        return await service.send_invite(guest, event, channel)
    if notification_type == NotificationType.REMINDER:
        return await service.send_reminder(guest, event, channel)
    if notification_type == NotificationType.INTERACTIVE_INVITE:
        return await service.send_interactive_invite(guest, event)
    if notification_type == NotificationType.INTERACTIVE_REMINDER:
        return await service.send_interactive_reminder(guest, event)
    raise ValidationError(f"Unsupported message type: {notification_type.value}")

def record_result(
    db: Session,
    guest: Guest,
    owner: User,
    notification_type: NotificationType,
    result: NotificationResult
):
    """Log the send, count it against the owner's quota and schedule chasers; commits"""
    sent_at = datetime.utcnow() if result.success else None
    if not guest.is_test:
        NotificationRepo.create_log(
            db,
            guest_id=guest.id,
            notification_type=notification_type,
            channel=result.channel,
            status=result.status,
            provider_response=result.provider_response or result.error,
            provider_message_id=result.provider_message_id,
            sent_at=sent_at,
        )
    if result.success:
        record_message_usage(owner, result.channel.value)
    db.commit()

    if result.success and notification_type in INVITATION_NOTIFICATION_TYPES:
        on_notification_sent(db, guest.id, guest.event_id, notification_type, sent_at)

class MessagingService:
    """Service for sending messages to individual guests"""

    @staticmethod
    async def send_to_guest(
        db: Session,
        event: WeddingEvent,
        guest_id: int,
        notification_type: NotificationType = NotificationType.INVITE,
        channel: Optional[NotificationChannel] = None
    ) -> NotificationResult:
        if notification_type not in SENDABLE_TYPES:
            raise ValidationError(f"Unsupported message type: {notification_type.value}")

        guest = GuestRepo.get_by_id(db, event.id, guest_id)
        if not guest:
            raise NotFoundError("Guest")

        # Quotas belong to the event owner's plan
        owner = event.owner
        effective_channel = settle_channel(db, notification_type, channel)
        if not has_quota(owner, effective_channel):
            raise PlanLimitError(
                f"{effective_channel.value} message limit reached",
                details={"channel": effective_channel.value, "remaining": get_remaining_messages(owner)},
            )

        service = get_notification_service(db)
        result = await dispatch(service, guest, event, notification_type, effective_channel)
        record_result(db, guest, owner, notification_type, result)

        if result.success:
            logger.info(f"Sent {notification_type.value} to guest {guest.id} via {result.channel.value}")
        else:
            logger.warning(f"Failed to send {notification_type.value} to guest {guest.id}: {result.error}")
        return result

    @staticmethod
    def get_usage(user: User) -> Dict:
        limits = get_plan_limits(user.plan)
        remaining = get_remaining_messages(user)
        return {
            "plan": user.plan.value,
            "whatsapp": {
                "sent": user.whatsapp_sent,
                "limit": limits.whatsapp_messages,
                "bonus": user.whatsapp_bonus,
                "remaining": remaining["whatsapp"],
            },
            "sms": {
                "sent": user.sms_sent,
                "limit": limits.sms_messages,
                "bonus": user.sms_bonus,
                "remaining": remaining["sms"],
            },
        }

    @staticmethod
    def upsert_template(db: Session, event: WeddingEvent, data: MessageTemplateUpsert) -> MessageTemplate:
        """Create or replace the event's custom text for a message type and locale"""
        template = db.query(MessageTemplate).filter(
            MessageTemplate.event_id == event.id,
            MessageTemplate.type == data.type,
            MessageTemplate.locale == data.locale
        ).first()
        if template is None:
            template = MessageTemplate(event_id=event.id, type=data.type, locale=data.locale)
            db.add(template)

        template.title = data.title
        template.message = data.message
        template.is_active = data.is_active
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def list_templates(db: Session, event_id: int) -> List[Dict]:
        templates = db.query(MessageTemplate).filter(
            MessageTemplate.event_id == event_id
        ).order_by(MessageTemplate.type, MessageTemplate.locale).all()
        return [
            {
                "id": t.id,
                "type": t.type.value,
                "locale": t.locale,
                "title": t.title,
                "message": t.message,
                "is_active": t.is_active,
            }
            for t in templates
        ]
