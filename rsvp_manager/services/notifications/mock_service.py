"""
Mock notification service used when no messaging provider is configured
"""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from rsvp_manager.models import Guest, WeddingEvent
from rsvp_manager.models.enums import NotificationChannel, NotificationStatus, NotificationType, RsvpStatus
from rsvp_manager.services.notifications.types import NotificationService, NotificationResult, CONFIRMATION_TEMPLATES
from rsvp_manager.services.notifications.template_renderer import (
    render_message, render_template_string, build_template_context
)

logger = logging.getLogger(__name__)

class MockNotificationService(NotificationService):
    """Logs messages instead of sending them and reports them as sent"""

    def __init__(self, db: Session):
        self.db = db

    def _deliver(self, kind: str, guest: Guest, event: WeddingEvent, message: str,
                 channel: NotificationChannel) -> NotificationResult:
        logger.info(
            f"[MOCK {kind}] channel={channel.value} to={guest.phone_number or guest.email} "
            f"guest={guest.name!r} event={event.title!r}\n{message}"
        )
        return NotificationResult(
            success=True,
            channel=channel,
            status=NotificationStatus.SENT,
            provider_response=json.dumps({
                "mock": True,
                "timestamp": datetime.utcnow().isoformat(),
                "message": f"Mock {kind.lower()} sent successfully",
            }),
        )

    async def send_invite(self, guest, event, preferred_channel: Optional[NotificationChannel] = None):
        message = render_message(self.db, guest, event, NotificationType.INVITE)
        return self._deliver("INVITE", guest, event, message, preferred_channel or NotificationChannel.WHATSAPP)

    async def send_reminder(self, guest, event, preferred_channel: Optional[NotificationChannel] = None):
        message = render_message(self.db, guest, event, NotificationType.REMINDER)
        return self._deliver("REMINDER", guest, event, message, preferred_channel or NotificationChannel.WHATSAPP)

    async def send_confirmation(self, guest, event, status: RsvpStatus,
                                preferred_channel: Optional[NotificationChannel] = None):
        templates = CONFIRMATION_TEMPLATES.get(event.locale, CONFIRMATION_TEMPLATES["he"])
        message = render_template_string(templates[RsvpStatus(status).value], build_template_context(guest, event))
        return self._deliver(f"CONFIRMATION ({RsvpStatus(status).value})", guest, event, message,
                             preferred_channel or NotificationChannel.WHATSAPP)

    async def send_interactive_invite(self, guest, event, include_image: bool = True):
        message = render_message(self.db, guest, event, NotificationType.INVITE)
        return self._deliver("INTERACTIVE_INVITE", guest, event, message, NotificationChannel.WHATSAPP)

    async def send_interactive_reminder(self, guest, event, include_image: bool = True):
        message = render_message(self.db, guest, event, NotificationType.REMINDER)
        return self._deliver("INTERACTIVE_REMINDER", guest, event, message, NotificationChannel.WHATSAPP)
