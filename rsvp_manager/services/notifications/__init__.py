"""
Notification services

NotificationServiceFactory picks the Twilio-backed service when WhatsApp or
SMS is fully configured in the admin messaging settings, and the mock
service otherwise. The decision is cached for a short TTL; admin routes call
invalidate() after changing settings.
"""

import logging
import time
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.services.repositories import SettingsRepo
from rsvp_manager.services.notifications.types import NotificationService, NotificationResult
from rsvp_manager.services.notifications.mock_service import MockNotificationService
from rsvp_manager.services.notifications.twilio_service import TwilioNotificationService

logger = logging.getLogger(__name__)

class NotificationServiceFactory:
    """Chooses between the real and the mock notification service"""

    def __init__(self, ttl_seconds: Optional[int] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.ttl_seconds = settings.NOTIFICATION_CACHE_TTL if ttl_seconds is None else ttl_seconds
        self.transport = transport
        self._use_real: Optional[bool] = None
        self._checked_at: float = 0.0

    def is_real_service_configured(self, db: Session) -> bool:
        provider = SettingsRepo.get_messaging_settings(db)
        if not provider:
            logger.info("No messaging settings found in database")
            return False

        logger.info(
            f"Messaging settings check: whatsapp_configured={provider.whatsapp_configured}, "
            f"sms_configured={provider.sms_configured}"
        )
        return provider.whatsapp_configured or provider.sms_configured

    def get(self, db: Session) -> NotificationService:
        now = time.monotonic()
        if self._use_real is None or now - self._checked_at >= self.ttl_seconds:
            self._use_real = self.is_real_service_configured(db)
            self._checked_at = now
            if self._use_real:
                logger.info("Using Twilio notification service")
            else:
                logger.warning("Using MOCK notification service; check admin messaging settings")

        if self._use_real:
            return TwilioNotificationService(db, transport=self.transport)
        return MockNotificationService(db)

    def invalidate(self):
        """Forget the cached decision so the next call re-reads settings"""
        self._use_real = None
        self._checked_at = 0.0

notification_factory = NotificationServiceFactory()

def get_notification_service(db: Session) -> NotificationService:
    return notification_factory.get(db)

__all__ = [
    "NotificationService",
    "NotificationResult",
    "NotificationServiceFactory",
    "MockNotificationService",
    "TwilioNotificationService",
    "notification_factory",
    "get_notification_service",
]
