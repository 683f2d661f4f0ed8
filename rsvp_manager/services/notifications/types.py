"""
Notification service interface, result type and built-in message texts
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from rsvp_manager.models import Guest, WeddingEvent
from rsvp_manager.models.enums import NotificationChannel, NotificationStatus, RsvpStatus

@dataclass
class NotificationResult:
    success: bool
    channel: NotificationChannel
    status: NotificationStatus
    provider_response: Optional[str] = None
    provider_message_id: Optional[str] = None
    error: Optional[str] = None

class NotificationService(ABC):
    """Sends RSVP-related messages to a single guest"""

    @abstractmethod
    async def send_invite(
        self, guest: Guest, event: WeddingEvent, preferred_channel: Optional[NotificationChannel] = None
    ) -> NotificationResult:
        ...

    @abstractmethod
    async def send_reminder(
        self, guest: Guest, event: WeddingEvent, preferred_channel: Optional[NotificationChannel] = None
    ) -> NotificationResult:
        ...

    @abstractmethod
    async def send_confirmation(
        self,
        guest: Guest,
        event: WeddingEvent,
        status: RsvpStatus,
        preferred_channel: Optional[NotificationChannel] = None
    ) -> NotificationResult:
        ...

    @abstractmethod
    async def send_interactive_invite(
        self, guest: Guest, event: WeddingEvent, include_image: bool = True
    ) -> NotificationResult:
        """WhatsApp-only button message"""

    @abstractmethod
    async def send_interactive_reminder(
        self, guest: Guest, event: WeddingEvent, include_image: bool = True
    ) -> NotificationResult:
        """WhatsApp-only button message"""

# {{placeholder}} texts; rendered by template_renderer
DEFAULT_TEMPLATES = {
    "he": {
        "INVITE": {
            "title": "הזמנה לאירוע",
            "message": (
                "שלום {{guestName}}!\n\n"
                "אתם מוזמנים ל{{eventTitle}}!\n\n"
                "נשמח מאוד אם תאשרו את הגעתכם בקישור הבא:\n"
                "{{rsvpLink}}\n\n"
                "מחכים לראותכם!"
            ),
        },
        "REMINDER": {
            "title": "תזכורת - אישור הגעה",
            "message": (
                "שלום {{guestName}}!\n\n"
                "רצינו להזכיר לכם לאשר את הגעתכם ל{{eventTitle}}.\n\n"
                "לאישור הגעה:\n"
                "{{rsvpLink}}\n\n"
                "תודה!"
            ),
        },
    },
    "en": {
        "INVITE": {
            "title": "Event Invitation",
            "message": (
                "Hello {{guestName}}!\n\n"
                "You are invited to {{eventTitle}}!\n\n"
                "Please confirm your attendance using the link below:\n"
                "{{rsvpLink}}\n\n"
                "We look forward to seeing you!"
            ),
        },
        "REMINDER": {
            "title": "RSVP Reminder",
            "message": (
                "Hello {{guestName}}!\n\n"
                "This is a reminder to confirm your attendance at {{eventTitle}}.\n\n"
                "Please RSVP here:\n"
                "{{rsvpLink}}\n\n"
                "Thank you!"
            ),
        },
    },
}

CONFIRMATION_TEMPLATES = {
    "he": {
        "ACCEPTED": (
            "שלום {{guestName}}!\n\n"
            "תודה שאישרתם את הגעתכם ל{{eventTitle}}!\n\n"
            "פרטי האירוע:\n"
            "תאריך: {{eventDate}}\n"
            "מיקום: {{eventLocation}}\n\n"
            "נתראה!"
        ),
        "DECLINED": (
            "שלום {{guestName}}!\n\n"
            "קיבלנו את התשובה שלכם לגבי {{eventTitle}}.\n\n"
            "מקווים לראותכם בהזדמנות אחרת!"
        ),
    },
    "en": {
        "ACCEPTED": (
            "Hello {{guestName}}!\n\n"
            "Thank you for confirming your attendance at {{eventTitle}}!\n\n"
            "Event details:\n"
            "Date: {{eventDate}}\n"
            "Location: {{eventLocation}}\n\n"
            "See you there!"
        ),
        "DECLINED": (
            "Hello {{guestName}}!\n\n"
            "We've received your response for {{eventTitle}}.\n\n"
            "We hope to see you at another occasion!"
        ),
    },
}
