"""
Twilio webhooks: delivery status callbacks and WhatsApp replies

Interactive invites carry accept/decline buttons. A button tap updates the
guest's RSVP; accepting may be followed by a list picker asking how many
people are coming, and picking a number sets the guest count.
"""

import json
import logging
from datetime import datetime
from typing import Dict, Mapping, Optional

import httpx
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.models import Guest, GuestRsvp, NotificationLog
from rsvp_manager.models.enums import (
    NotificationChannel, NotificationStatus, NotificationType, RsvpStatus
)
from rsvp_manager.services.repositories import GuestRepo, NotificationRepo, SettingsRepo
from rsvp_manager.services.notifications import get_notification_service
from rsvp_manager.services.notifications.phone_formatter import phone_variations
from rsvp_manager.services.notifications.twilio_client import TwilioClient
from rsvp_manager.services.notifications.twilio_service import resolve_content_sid
from rsvp_manager.services.automation.handlers import on_rsvp_status_changed

logger = logging.getLogger(__name__)

DELIVERED_STATUSES = {"delivered", "read"}
FAILED_STATUSES = {"undelivered", "failed"}

BUTTON_ACTIONS = {
    "accept": RsvpStatus.ACCEPTED,
    "decline": RsvpStatus.DECLINED,
}

# Messages a guest can reply to with a button or list selection
REPLYABLE_TYPES = (
    NotificationType.INTERACTIVE_INVITE,
    NotificationType.INTERACTIVE_REMINDER,
    NotificationType.GUEST_COUNT,
)

def strip_whatsapp_prefix(number: Optional[str]) -> str:
    if not number:
        return ""
    return number[len("whatsapp:"):] if number.startswith("whatsapp:") else number

class WebhookService:

    @staticmethod
    def handle_status_callback(db: Session, payload: Mapping[str, str]) -> Dict:
        """Apply a Twilio MessageStatus update to the matching notification log"""
        message_sid = payload.get("MessageSid")
        message_status = (payload.get("MessageStatus") or "").lower()
        if not message_sid or not message_status:
            return {"found": False, "updated": False}

        log = NotificationRepo.get_by_provider_id(db, message_sid)
        if not log:
            logger.info(f"Status callback for unknown message {message_sid} ({message_status})")
            return {"found": False, "updated": False}

        if message_status in DELIVERED_STATUSES:
            log.status = NotificationStatus.DELIVERED
            log.delivered_at = datetime.utcnow()
        elif message_status in FAILED_STATUSES:
            log.status = NotificationStatus.FAILED
            error_code = payload.get("ErrorCode")
            if error_code:
                log.provider_response = json.dumps({
                    "errorCode": error_code,
                    "errorMessage": payload.get("ErrorMessage"),
                    "status": message_status,
                })
        else:
            # queued, sending, sent
            return {"found": True, "updated": False, "status": log.status.value}

        db.commit()
        logger.info(f"Notification {log.id} is now {log.status.value} ({message_status})")
        return {"found": True, "updated": True, "status": log.status.value}

    @staticmethod
    def resolve_guest(db: Session, payload: Mapping[str, str]) -> Optional[Guest]:
        """Find the replying guest by replied-to message, then recent interactive message, then phone"""
        original_sid = payload.get("OriginalRepliedMessageSid")
        if original_sid:
            log = NotificationRepo.get_by_provider_id(db, original_sid)
            if log and log.guest:
                return log.guest

        phones = phone_variations(strip_whatsapp_prefix(payload.get("From")), settings.DEFAULT_COUNTRY)
        if not phones:
            return None

        recent = db.query(NotificationLog).join(Guest, NotificationLog.guest_id == Guest.id).filter(
            NotificationLog.type.in_(REPLYABLE_TYPES),
            NotificationLog.status.in_([NotificationStatus.SENT, NotificationStatus.DELIVERED]),
            Guest.phone_number.in_(phones)
        ).order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc()).first()
        if recent:
            return recent.guest

        matches = GuestRepo.find_by_phones(db, phones)
        return matches[0] if matches else None

    @staticmethod
    async def handle_whatsapp_message(
        db: Session,
        payload: Mapping[str, str],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> Dict:
        """Route an inbound WhatsApp message; plain text messages are ignored"""
        if payload.get("ButtonPayload"):
            return await WebhookService.handle_button_reply(db, payload, transport)
        if payload.get("ListId"):
            return await WebhookService.handle_list_reply(db, payload, transport)

        logger.info(f"Ignoring non-interactive WhatsApp message from {payload.get('From')}")
        return {"handled": False, "reason": "not_interactive"}

    @staticmethod
    async def handle_button_reply(
        db: Session,
        payload: Mapping[str, str],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> Dict:
        action = payload.get("ButtonPayload", "").strip().lower()
        status = BUTTON_ACTIONS.get(action)
        if status is None:
            logger.warning(f"Unknown button action: {action}")
            return {"handled": False, "reason": "unknown_action"}

        guest = WebhookService.resolve_guest(db, payload)
        if not guest:
            logger.warning(f"No guest found for WhatsApp reply from {payload.get('From')}")
            return {"handled": False, "reason": "guest_not_found"}

        previous = WebhookService._set_rsvp(guest, status)
        db.commit()
        logger.info(f"RSVP updated via button: guest {guest.id} -> {status.value}")

        if status == RsvpStatus.ACCEPTED:
            await WebhookService.send_guest_count_list(db, guest, payload.get("From"), transport)
        else:
            await WebhookService._send_confirmation(db, guest, status)

        await on_rsvp_status_changed(db, guest.id, guest.event_id, status, previous, transport=transport)
        return {"handled": True, "guest_id": guest.id, "status": status.value}

    @staticmethod
    async def handle_list_reply(
        db: Session,
        payload: Mapping[str, str],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> Dict:
        try:
            guest_count = int(payload.get("ListId", ""))
        except ValueError:
            guest_count = 0
        if guest_count < 1:
            logger.warning(f"Invalid guest count selection: {payload.get('ListId')}")
            return {"handled": False, "reason": "invalid_count"}

        guest = WebhookService.resolve_guest(db, payload)
        if not guest:
            logger.warning(f"No guest found for list reply from {payload.get('From')}")
            return {"handled": False, "reason": "guest_not_found"}

        previous = WebhookService._set_rsvp(guest, RsvpStatus.ACCEPTED, guest_count)
        db.commit()
        logger.info(f"Guest count updated via list: guest {guest.id} -> {guest_count}")

        await WebhookService._send_confirmation(db, guest, RsvpStatus.ACCEPTED)
        await on_rsvp_status_changed(db, guest.id, guest.event_id, RsvpStatus.ACCEPTED, previous, transport=transport)
        return {"handled": True, "guest_id": guest.id, "status": RsvpStatus.ACCEPTED.value, "guest_count": guest_count}

    @staticmethod
    def _set_rsvp(guest: Guest, status: RsvpStatus, guest_count: Optional[int] = None) -> Optional[RsvpStatus]:
        """Upsert the guest's RSVP and return the previous status"""
        rsvp = guest.rsvp
        if rsvp is None:
            rsvp = GuestRsvp(guest_id=guest.id, status=RsvpStatus.PENDING, guest_count=0)
            guest.rsvp = rsvp
        previous = rsvp.status

        rsvp.status = status
        rsvp.responded_at = datetime.utcnow()
        if status == RsvpStatus.DECLINED:
            rsvp.guest_count = 0
        elif guest_count is not None:
            rsvp.guest_count = guest_count
        elif not rsvp.guest_count:
            rsvp.guest_count = guest.expected_guests or 1
        return previous

    @staticmethod
    async def send_guest_count_list(
        db: Session,
        guest: Guest,
        to_number: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> bool:
        """Ask an accepting guest how many are coming; skipped without a GUEST_COUNT template"""
        content_sid = resolve_content_sid(db, NotificationType.GUEST_COUNT)
        if not content_sid:
            logger.info("Guest count list template not configured, skipping")
            return False

        provider = SettingsRepo.get_messaging_settings(db)
        if not provider or not provider.whatsapp_configured:
            logger.error("WhatsApp not properly configured")
            return False

        client = TwilioClient(provider.whatsapp_api_key, provider.whatsapp_api_secret, transport=transport)
        result = await client.send_whatsapp(
            from_number=provider.whatsapp_phone_number,
            to=strip_whatsapp_prefix(to_number) or guest.phone_number,
            content_sid=content_sid,
            content_variables={"1": str(guest.id)},
        )
        if not result.success:
            logger.warning(f"Guest count list to guest {guest.id} failed: {result.error}")

        if not guest.is_test:
            NotificationRepo.create_log(
                db,
                guest_id=guest.id,
                notification_type=NotificationType.GUEST_COUNT,
                channel=NotificationChannel.WHATSAPP,
                status=NotificationStatus.SENT if result.success else NotificationStatus.FAILED,
                provider_message_id=result.message_id,
                provider_response=None if result.success else result.error,
            )
            db.commit()
        return result.success

    @staticmethod
    async def _send_confirmation(db: Session, guest: Guest, status: RsvpStatus):
        service = get_notification_service(db)
        result = await service.send_confirmation(guest, guest.event, status, NotificationChannel.WHATSAPP)
        if not result.success:
            logger.warning(f"Confirmation to guest {guest.id} failed: {result.error}")

        if not guest.is_test:
            NotificationRepo.create_log(
                db,
                guest_id=guest.id,
                notification_type=NotificationType.CONFIRMATION,
                channel=result.channel,
                status=result.status,
                provider_response=result.provider_response or result.error,
                provider_message_id=result.provider_message_id,
            )
            db.commit()
