"""
Automation action executor

Actions talk to Twilio directly with the platform credentials stored in the
messaging settings row. They never raise for vendor or configuration
problems; those come back as an ActionResult with an error code.
"""

import logging
import re
from datetime import datetime
from typing import Dict, Optional, Tuple
from urllib.parse import quote

import httpx
from sqlalchemy.orm import Session

from rsvp_manager.models import Guest, WeddingEvent, MessagingProviderSettings
from rsvp_manager.models.enums import AutomationAction, NotificationChannel, NotificationStatus, NotificationType
from rsvp_manager.services.repositories import SettingsRepo, NotificationRepo
from rsvp_manager.services.automation.types import (
    ActionResult, AutomationContext, ACTION_TEMPLATE_TYPES, notification_type_for_action
)
from rsvp_manager.services.notifications.phone_formatter import format_to_e164
from rsvp_manager.services.notifications.template_renderer import get_rsvp_link
from rsvp_manager.services.notifications.twilio_client import TwilioClient, TwilioSendResult
from rsvp_manager.services.notifications.twilio_service import (
    resolve_content_sid, relative_image_path, DEFAULT_TEMPLATE_STYLE
)
from rsvp_manager.core.config import settings
from rsvp_manager.utils.timeutils import format_event_date, format_event_time

logger = logging.getLogger(__name__)

NOT_ASSIGNED_TABLE = "טרם שובץ"
DEFAULT_COUPLE_NAME = "החתן והכלה"
DEFAULT_PLACE = "המקום"

# Image-bearing templates take the image path as {{3}} instead of the RSVP link
IMAGE_TEMPLATE_TYPES = (
    NotificationType.IMAGE_INVITE,
    NotificationType.INTERACTIVE_INVITE,
    NotificationType.INTERACTIVE_REMINDER,
)

_CUSTOM_VARIABLE_RE = re.compile(r"\{(guestName|eventDate|eventTime|venue|address|guestCount|tableName|rsvpLink)\}")

def replace_message_variables(message: str, context: AutomationContext) -> str:
    """Fill the single-brace variables of a flow's custom message"""
    values = {
        "guestName": context.guest_name or "",
        "eventDate": format_event_date(context.event_date, "he"),
        "eventTime": context.event_time or format_event_time(context.event_date),
        "venue": context.event_venue or "",
        "address": context.event_address or context.event_location or "",
        "guestCount": str(context.guest_count) if context.guest_count else "1",
        "tableName": context.table_name or "",
        "rsvpLink": context.rsvp_link or "",
    }
    return _CUSTOM_VARIABLE_RE.sub(lambda match: values[match.group(1)], message)

def navigation_url(address: Optional[str]) -> str:
    if not address:
        return ""
    return f"https://waze.com/ul?q={quote(address)}&navigate=yes"

def _failure(message: str, error_code: str) -> ActionResult:
    logger.warning(f"Automation action failed [{error_code}]: {message}")
    return ActionResult(success=False, message=message, error_code=error_code)

def _credentials_error(api_key: Optional[str], api_secret: Optional[str], sender: Optional[str], label: str) -> Optional[ActionResult]:
    if not api_key or not api_secret or not sender:
        return _failure(
            f"{label} credentials not configured. Please configure them in Admin > Messaging Settings.",
            "NO_CREDENTIALS",
        )
    if not api_key.startswith("AC"):
        return _failure(
            f"Invalid Twilio Account SID for {label}. It must start with 'AC'.",
            "INVALID_CREDENTIALS",
        )
    return None

class ActionExecutor:
    """Runs one automation action for one guest"""

    def __init__(self, db: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.db = db
        self.transport = transport

    # -------- Helpers --------

    def _event(self, context: AutomationContext) -> Optional[WeddingEvent]:
        return self.db.query(WeddingEvent).filter(WeddingEvent.id == context.event_id).first()

    def _guest(self, context: AutomationContext) -> Optional[Guest]:
        return self.db.query(Guest).filter(Guest.id == context.guest_id).first()

    def _whatsapp_settings(self) -> Tuple[Optional[MessagingProviderSettings], Optional[ActionResult]]:
        provider = SettingsRepo.get_messaging_settings(self.db)
        if not provider or not provider.whatsapp_enabled:
            return None, _failure("WhatsApp messaging not enabled", "WHATSAPP_DISABLED")
        return provider, None

    def _sms_settings(self) -> Tuple[Optional[MessagingProviderSettings], Optional[ActionResult]]:
        provider = SettingsRepo.get_messaging_settings(self.db)
        if not provider or not provider.sms_enabled:
            return None, _failure("SMS messaging not enabled", "SMS_DISABLED")
        return provider, None

    async def _send_whatsapp(
        self,
        provider: MessagingProviderSettings,
        phone: str,
        body: Optional[str] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[Dict[str, str]] = None
    ) -> Tuple[Optional[TwilioSendResult], Optional[ActionResult]]:
        error = _credentials_error(
            provider.whatsapp_api_key, provider.whatsapp_api_secret, provider.whatsapp_phone_number, "WhatsApp"
        )
        if error:
            return None, error

        client = TwilioClient(provider.whatsapp_api_key, provider.whatsapp_api_secret, transport=self.transport)
        result = await client.send_whatsapp(
            from_number=provider.whatsapp_phone_number,
            to=format_to_e164(phone, settings.DEFAULT_COUNTRY),
            body=body,
            content_sid=content_sid,
            content_variables=content_variables,
        )
        return result, None

    async def _send_sms(
        self,
        provider: MessagingProviderSettings,
        phone: str,
        body: str,
        alpha_sender_id: Optional[str] = None
    ) -> Tuple[Optional[TwilioSendResult], Optional[ActionResult]]:
        sender = provider.sms_messaging_service_sid or provider.sms_phone_number
        error = _credentials_error(provider.sms_api_key, provider.sms_api_secret, sender, "SMS")
        if error:
            return None, error

        client = TwilioClient(provider.sms_api_key, provider.sms_api_secret, transport=self.transport)
        result = await client.send_sms(
            to=format_to_e164(phone, settings.DEFAULT_COUNTRY),
            body=body,
            from_number=provider.sms_phone_number,
            messaging_service_sid=provider.sms_messaging_service_sid,
            alpha_sender_id=alpha_sender_id,
        )
        return result, None

    def _finish(
        self,
        context: AutomationContext,
        result: TwilioSendResult,
        notification_type: NotificationType,
        channel: NotificationChannel,
        label: str,
        notify_handlers: bool = True
    ) -> ActionResult:
        """Turn a Twilio result into an ActionResult, logging the notification on success"""
        if not result.success:
            return _failure(result.error or f"Failed to send {label}", "SEND_FAILED")

        if not context.is_test:
            sent_at = datetime.utcnow()
            NotificationRepo.create_log(
                self.db,
                guest_id=context.guest_id,
                notification_type=notification_type,
                channel=channel,
                status=NotificationStatus.SENT,
                provider_response=result.message_id,
                provider_message_id=result.message_id,
                sent_at=sent_at,
            )
            self.db.commit()

            if notify_handlers:
                from rsvp_manager.services.automation.handlers import on_notification_sent
                on_notification_sent(self.db, context.guest_id, context.event_id, notification_type, sent_at)

        logger.info(f"Automation {label} sent to guest {context.guest_id}: {result.message_id}")
        return ActionResult(success=True, message=f"{label} sent: {result.message_id}")

    # -------- Actions --------

    async def send_whatsapp_template(self, context: AutomationContext, action: AutomationAction) -> ActionResult:
        """Standard content template: {{1}} guest, {{2}} event, {{3}} RSVP link or invitation image"""
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")

        provider, error = self._whatsapp_settings()
        if error:
            return error

        template_type = ACTION_TEMPLATE_TYPES[action]
        content_sid = resolve_content_sid(
            self.db, template_type, context.template_style or DEFAULT_TEMPLATE_STYLE, provider
        )
        if not content_sid:
            return _failure(f"No WhatsApp template configured for {template_type.value}", "NO_TEMPLATE")

        event = self._event(context)
        if not event:
            return _failure("Event not found", "NOT_FOUND")

        if context.is_test:
            rsvp_link = context.rsvp_link or get_rsvp_link("test-preview")
        else:
            guest = self._guest(context)
            if not guest:
                return _failure("Guest not found", "NOT_FOUND")
            rsvp_link = get_rsvp_link(guest.slug)

        variables = {"1": context.guest_name, "2": event.title}
        if template_type in IMAGE_TEMPLATE_TYPES:
            if not event.image_path:
                return _failure(
                    "No invitation image configured for this event. Please upload an invitation image first.",
                    "NO_IMAGE",
                )
            variables["3"] = relative_image_path(event.image_path)
        else:
            variables["3"] = rsvp_link

        result, error = await self._send_whatsapp(
            provider, context.guest_phone, content_sid=content_sid, content_variables=variables
        )
        if error:
            return error
        return self._finish(
            context, result, notification_type_for_action(action), NotificationChannel.WHATSAPP, "WhatsApp message"
        )

    async def send_custom_whatsapp(self, context: AutomationContext) -> ActionResult:
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")
        if not context.custom_message:
            return _failure("No custom message provided", "NO_MESSAGE")

        provider, error = self._whatsapp_settings()
        if error:
            return error

        body = replace_message_variables(context.custom_message, context)
        result, error = await self._send_whatsapp(provider, context.guest_phone, body=body)
        if error:
            return error
        return self._finish(context, result, NotificationType.REMINDER, NotificationChannel.WHATSAPP, "Custom WhatsApp")

    async def send_custom_sms(self, context: AutomationContext) -> ActionResult:
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")
        if not context.custom_message:
            return _failure("No custom message provided", "NO_MESSAGE")

        provider, error = self._sms_settings()
        if error:
            return error

        body = replace_message_variables(context.custom_message, context)
        result, error = await self._send_sms(provider, context.guest_phone, body)
        if error:
            return error
        return self._finish(context, result, NotificationType.REMINDER, NotificationChannel.SMS, "Custom SMS")

    async def send_sms_reminder(self, context: AutomationContext) -> ActionResult:
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")

        provider, error = self._sms_settings()
        if error:
            return error

        event = self._event(context)
        guest = self._guest(context)
        if not event or not guest:
            return _failure("Event or guest not found", "NOT_FOUND")

        body = (
            f"שלום {context.guest_name}, תזכורת לאירוע ב{format_event_date(event.date_time, 'he')}. "
            f"לאישור הגעה: {get_rsvp_link(guest.slug)}"
        )
        result, error = await self._send_sms(provider, context.guest_phone, body, alpha_sender_id=event.sms_sender_id)
        if error:
            return error
        return self._finish(context, result, NotificationType.REMINDER, NotificationChannel.SMS, "SMS")

    async def send_table_assignment(self, context: AutomationContext) -> ActionResult:
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")

        provider, error = self._whatsapp_settings()
        if error:
            return error

        event = self._event(context)
        if not event:
            return _failure("Event not found", "NOT_FOUND")

        content_sid = resolve_content_sid(
            self.db, NotificationType.TABLE_ASSIGNMENT, context.template_style or DEFAULT_TEMPLATE_STYLE, provider
        )
        if content_sid:
            result, error = await self._send_whatsapp(
                provider,
                context.guest_phone,
                content_sid=content_sid,
                content_variables={
                    "1": context.guest_name,
                    "2": event.title,
                    "3": context.table_name or NOT_ASSIGNED_TABLE,
                },
            )
        else:
            if context.custom_message:
                body = replace_message_variables(context.custom_message, context)
            else:
                body = f"שלום {context.guest_name}! 🎉\n\nמזכירים שאנחנו מחכים לכם היום!\n\n"
                if context.table_name:
                    body += f"🪑 השולחן שלכם: {context.table_name}\n\n"
                body += f"📍 מיקום: {context.event_venue or context.event_location or ''}\n"
                nav = navigation_url(event.location or event.venue)
                if nav:
                    body += f"🚗 Waze: {nav}\n"
                body += "\nנתראה! 💕"
            result, error = await self._send_whatsapp(provider, context.guest_phone, body=body)

        if error:
            return error
        return self._finish(
            context, result, NotificationType.TABLE_ASSIGNMENT, NotificationChannel.WHATSAPP,
            "Table assignment", notify_handlers=False,
        )

    async def send_event_day(self, context: AutomationContext) -> ActionResult:
        """Event day template: table, venue and address, navigation link"""
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")

        provider, error = self._whatsapp_settings()
        if error:
            return error

        content_sid = resolve_content_sid(
            self.db, NotificationType.EVENT_DAY, context.template_style or DEFAULT_TEMPLATE_STYLE, provider
        )
        if not content_sid:
            return _failure("Event Day WhatsApp template not configured", "NO_TEMPLATE")

        event = self._event(context)
        if not event:
            return _failure("Event not found", "NOT_FOUND")

        table_name = context.table_name
        if not table_name and not context.is_test:
            guest = self._guest(context)
            if guest and guest.table_assignment:
                table_name = guest.table_assignment.table.name

        if event.venue and event.location:
            venue_display = f"{event.venue}, {event.location}"
        else:
            venue_display = event.venue or event.location or DEFAULT_PLACE

        result, error = await self._send_whatsapp(
            provider,
            context.guest_phone,
            content_sid=content_sid,
            content_variables={
                "1": context.guest_name,
                "2": event.title,
                "3": table_name or NOT_ASSIGNED_TABLE,
                "4": venue_display,
                "5": navigation_url(event.location or event.venue),
            },
        )
        if error:
            return error
        return self._finish(
            context, result, NotificationType.EVENT_DAY, NotificationChannel.WHATSAPP,
            "Event day reminder", notify_handlers=False,
        )

    async def send_thank_you(self, context: AutomationContext) -> ActionResult:
        if not context.guest_phone:
            return _failure("Guest has no phone number", "NO_PHONE")

        provider, error = self._whatsapp_settings()
        if error:
            return error

        content_sid = resolve_content_sid(
            self.db, NotificationType.THANK_YOU, context.template_style or DEFAULT_TEMPLATE_STYLE, provider
        )
        if not content_sid:
            return _failure("Thank You WhatsApp template not configured", "NO_TEMPLATE")

        event = self._event(context)
        if not event:
            return _failure("Event not found", "NOT_FOUND")

        result, error = await self._send_whatsapp(
            provider,
            context.guest_phone,
            content_sid=content_sid,
            content_variables={
                "1": context.guest_name,
                "2": context.couple_name or event.title or DEFAULT_COUPLE_NAME,
            },
        )
        if error:
            return error
        return self._finish(
            context, result, NotificationType.THANK_YOU, NotificationChannel.WHATSAPP,
            "Thank you message", notify_handlers=False,
        )

    async def execute(self, action: AutomationAction, context: AutomationContext) -> ActionResult:
        try:
            action = AutomationAction(action)
        except ValueError:
            return _failure(f"Unknown action: {action}", "UNKNOWN_ACTION")

        if action in ACTION_TEMPLATE_TYPES:
            return await self.send_whatsapp_template(context, action)
        if action == AutomationAction.SEND_TABLE_ASSIGNMENT:
            return await self.send_table_assignment(context)
        if action == AutomationAction.SEND_WHATSAPP_EVENT_DAY:
            return await self.send_event_day(context)
        if action == AutomationAction.SEND_WHATSAPP_THANK_YOU:
            return await self.send_thank_you(context)
        if action == AutomationAction.SEND_CUSTOM_WHATSAPP:
            return await self.send_custom_whatsapp(context)
        if action == AutomationAction.SEND_CUSTOM_SMS:
            return await self.send_custom_sms(context)
        if action == AutomationAction.SEND_SMS_REMINDER:
            return await self.send_sms_reminder(context)

        return _failure(f"Unknown action: {action.value}", "UNKNOWN_ACTION")

async def execute_action(
    db: Session,
    action: AutomationAction,
    context: AutomationContext,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ActionResult:
    return await ActionExecutor(db, transport=transport).execute(action, context)

def build_context(flow, guest: Guest) -> AutomationContext:
    """Action context for one guest of a flow's event"""
    event = flow.event
    assignment = guest.table_assignment
    return AutomationContext(
        guest_id=guest.id,
        event_id=flow.event_id,
        guest_name=guest.name,
        guest_phone=guest.phone_number,
        rsvp_status=guest.rsvp_status,
        table_name=assignment.table.name if assignment else None,
        event_date=event.date_time,
        event_time=format_event_time(event.date_time),
        event_location=event.location,
        event_venue=event.venue,
        event_address=event.location,
        guest_count=guest.rsvp.guest_count if guest.rsvp else None,
        custom_message=flow.custom_message,
        rsvp_link=get_rsvp_link(guest.slug),
        template_style=flow.template_style,
        is_test=guest.is_test,
    )
