"""
Twilio-backed notification service
"""

import json
import logging
from typing import Dict, Optional

import httpx
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.models import Guest, WeddingEvent, WhatsAppTemplate, MessagingProviderSettings
from rsvp_manager.models.enums import NotificationChannel, NotificationStatus, NotificationType, RsvpStatus
from rsvp_manager.services.repositories import SettingsRepo
from rsvp_manager.services.notifications.phone_formatter import format_to_e164
from rsvp_manager.services.notifications.template_renderer import (
    render_message, render_template_string, build_template_context, get_rsvp_link
)
from rsvp_manager.services.notifications.twilio_client import TwilioClient
from rsvp_manager.services.notifications.types import (
    NotificationService, NotificationResult, CONFIRMATION_TEMPLATES
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_STYLE = "formal"

# Settings columns holding content SIDs from before the whatsapp_templates table
LEGACY_CONTENT_SID_FIELDS: Dict[NotificationType, str] = {
    NotificationType.INVITE: "whatsapp_invite_content_sid",
    NotificationType.REMINDER: "whatsapp_reminder_content_sid",
    NotificationType.CONFIRMATION: "whatsapp_confirmation_content_sid",
    NotificationType.IMAGE_INVITE: "whatsapp_image_invite_content_sid",
    NotificationType.INTERACTIVE_INVITE: "whatsapp_interactive_invite_content_sid",
    NotificationType.INTERACTIVE_REMINDER: "whatsapp_interactive_reminder_content_sid",
    NotificationType.EVENT_DAY: "whatsapp_event_day_content_sid",
    NotificationType.THANK_YOU: "whatsapp_thank_you_content_sid",
    NotificationType.TABLE_ASSIGNMENT: "whatsapp_table_assignment_content_sid",
    NotificationType.GUEST_COUNT: "whatsapp_guest_count_list_content_sid",
}

def resolve_content_sid(
    db: Session,
    notification_type: NotificationType,
    style: Optional[str] = None,
    provider_settings: Optional[MessagingProviderSettings] = None
) -> Optional[str]:
    """Content SID for a message type: registered template first, then the legacy settings column"""
    template = db.query(WhatsAppTemplate).filter(
        WhatsAppTemplate.type == notification_type,
        WhatsAppTemplate.style == (style or DEFAULT_TEMPLATE_STYLE),
        WhatsAppTemplate.is_active == True
    ).order_by(WhatsAppTemplate.id.desc()).first()
    if template and template.content_sid:
        logger.info(f"Using registered template {notification_type.value}/{template.style} -> {template.content_sid}")
        return template.content_sid

    if provider_settings is None:
        provider_settings = SettingsRepo.get_messaging_settings(db)
    field = LEGACY_CONTENT_SID_FIELDS.get(notification_type)
    if provider_settings is not None and field:
        legacy_sid = getattr(provider_settings, field, None)
        if legacy_sid:
            logger.info(f"Using legacy settings {field} -> {legacy_sid}")
            return legacy_sid

    return None

def relative_image_path(image_path: str) -> str:
    """Interactive templates embed the image as {{3}} under the public base URL"""
    base = settings.BASE_URL.rstrip("/") + "/"
    if image_path.startswith(base):
        return image_path[len(base):]
    return image_path.lstrip("/")

def select_channel(
    provider: MessagingProviderSettings,
    preferred_channel: Optional[NotificationChannel] = None,
    whatsapp_only: bool = False
) -> Optional[NotificationChannel]:
    """Preferred channel when configured, then WhatsApp, then SMS; None when neither is usable"""
    whatsapp_available = provider.whatsapp_configured
    sms_available = provider.sms_configured and not whatsapp_only

    if preferred_channel == NotificationChannel.WHATSAPP and whatsapp_available:
        return NotificationChannel.WHATSAPP
    if preferred_channel == NotificationChannel.SMS and sms_available:
        return NotificationChannel.SMS
    if whatsapp_available:
        return NotificationChannel.WHATSAPP
    if sms_available:
        return NotificationChannel.SMS
    return None

class TwilioNotificationService(NotificationService):
    """Sends messages over WhatsApp or SMS using the platform's Twilio account"""

    def __init__(self, db: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.db = db
        self.transport = transport

    def _settings(self) -> Optional[MessagingProviderSettings]:
        return SettingsRepo.get_messaging_settings(self.db)

    async def _send(
        self,
        guest: Guest,
        event: WeddingEvent,
        message: str,
        preferred_channel: Optional[NotificationChannel] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[Dict[str, str]] = None,
        whatsapp_only: bool = False
    ) -> NotificationResult:
        provider = self._settings()
        if not provider:
            return NotificationResult(
                success=False,
                channel=NotificationChannel.WHATSAPP,
                status=NotificationStatus.FAILED,
                error="Messaging not configured",
            )

        channel = select_channel(provider, preferred_channel, whatsapp_only)
        if channel is None:
            return NotificationResult(
                success=False,
                channel=NotificationChannel.WHATSAPP,
                status=NotificationStatus.FAILED,
                error="No messaging channels enabled",
            )

        if not guest.phone_number:
            return NotificationResult(
                success=False,
                channel=channel,
                status=NotificationStatus.FAILED,
                error="Guest does not have a phone number",
            )

        phone = format_to_e164(guest.phone_number, settings.DEFAULT_COUNTRY)
        logger.info(f"Sending {channel.value} to guest {guest.id} ({phone})")

        if channel == NotificationChannel.WHATSAPP:
            client = TwilioClient(provider.whatsapp_api_key, provider.whatsapp_api_secret, transport=self.transport)
            result = await client.send_whatsapp(
                from_number=provider.whatsapp_phone_number,
                to=phone,
                body=message,
                content_sid=content_sid,
                content_variables=content_variables,
            )
        else:
            client = TwilioClient(provider.sms_api_key, provider.sms_api_secret, transport=self.transport)
            result = await client.send_sms(
                to=phone,
                body=message,
                from_number=provider.sms_phone_number,
                messaging_service_sid=provider.sms_messaging_service_sid,
                alpha_sender_id=event.sms_sender_id,
            )

        if result.success:
            return NotificationResult(
                success=True,
                channel=channel,
                status=NotificationStatus.SENT,
                provider_message_id=result.message_id,
                provider_response=json.dumps({"messageId": result.message_id, "status": result.status}),
            )

        error = f"{result.error} (Trial account limitation)" if result.is_trial_error else result.error
        return NotificationResult(
            success=False,
            channel=channel,
            status=NotificationStatus.FAILED,
            error=error,
            provider_response=json.dumps({"errorCode": result.error_code, "isTrialError": result.is_trial_error}),
        )

    def _standard_variables(self, guest: Guest, event: WeddingEvent) -> Dict[str, str]:
        return {"1": guest.name, "2": event.title, "3": get_rsvp_link(guest.slug)}

    async def _send_rendered(self, guest, event, notification_type, preferred_channel):
        message = render_message(self.db, guest, event, notification_type)
        channel = preferred_channel or NotificationChannel.WHATSAPP
        content_sid = None
        if channel == NotificationChannel.WHATSAPP:
            content_sid = resolve_content_sid(self.db, notification_type)
        return await self._send(
            guest, event, message, channel,
            content_sid=content_sid,
            content_variables=self._standard_variables(guest, event) if content_sid else None,
        )

    async def send_invite(self, guest, event, preferred_channel: Optional[NotificationChannel] = None):
        return await self._send_rendered(guest, event, NotificationType.INVITE, preferred_channel)

    async def send_reminder(self, guest, event, preferred_channel: Optional[NotificationChannel] = None):
        return await self._send_rendered(guest, event, NotificationType.REMINDER, preferred_channel)

    async def send_confirmation(self, guest, event, status: RsvpStatus,
                                preferred_channel: Optional[NotificationChannel] = None):
        status = RsvpStatus(status)
        templates = CONFIRMATION_TEMPLATES.get(event.locale, CONFIRMATION_TEMPLATES["he"])
        message = render_template_string(templates[status.value], build_template_context(guest, event))

        channel = preferred_channel or NotificationChannel.WHATSAPP
        content_sid = None
        if channel == NotificationChannel.WHATSAPP:
            content_sid = resolve_content_sid(self.db, NotificationType.CONFIRMATION)
        return await self._send(
            guest, event, message, channel,
            content_sid=content_sid,
            content_variables={"1": guest.name, "2": event.title} if content_sid else None,
        )

    async def _send_interactive(self, guest, event, notification_type, include_image: bool):
        content_sid = resolve_content_sid(self.db, notification_type)
        if not content_sid:
            return NotificationResult(
                success=False,
                channel=NotificationChannel.WHATSAPP,
                status=NotificationStatus.FAILED,
                error=f"No WhatsApp template configured for {notification_type.value}",
            )

        variables = {"1": guest.name, "2": event.title}
        if include_image and event.image_path:
            variables["3"] = relative_image_path(event.image_path)
        else:
            variables["3"] = get_rsvp_link(guest.slug)

        fallback = NotificationType.INVITE if notification_type == NotificationType.INTERACTIVE_INVITE else NotificationType.REMINDER
        message = render_message(self.db, guest, event, fallback)
        return await self._send(
            guest, event, message, NotificationChannel.WHATSAPP,
            content_sid=content_sid,
            content_variables=variables,
            whatsapp_only=True,
        )

    async def send_interactive_invite(self, guest, event, include_image: bool = True):
        return await self._send_interactive(guest, event, NotificationType.INTERACTIVE_INVITE, include_image)

    async def send_interactive_reminder(self, guest, event, include_image: bool = True):
        return await self._send_interactive(guest, event, NotificationType.INTERACTIVE_REMINDER, include_image)
