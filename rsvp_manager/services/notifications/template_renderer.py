"""
Message template rendering

Templates use {{placeholder}} markers. An event can override the default
text per notification type and locale with an active MessageTemplate row.
"""

import re
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.models import Guest, WeddingEvent, MessageTemplate
from rsvp_manager.models.enums import NotificationType
from rsvp_manager.services.notifications.types import DEFAULT_TEMPLATES
from rsvp_manager.utils.timeutils import format_event_date, format_event_time

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

@dataclass
class TemplateContext:
    guestName: str
    eventTitle: str
    rsvpLink: str
    eventDate: str
    eventTime: str
    eventLocation: str
    eventVenue: str

def render_template_string(template: str, context) -> str:
    """Replace known {{placeholders}}; unknown ones are left untouched"""
    values: Dict[str, str] = asdict(context) if isinstance(context, TemplateContext) else dict(context)

    def substitute(match):
        key = match.group(1)
        if key in values and values[key] is not None:
            return str(values[key])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(substitute, template)

def get_rsvp_link(guest_slug: str) -> str:
    return f"{settings.BASE_URL}/rsvp/{guest_slug}"

def build_template_context(guest: Guest, event: WeddingEvent) -> TemplateContext:
    locale = event.locale
    return TemplateContext(
        guestName=guest.name,
        eventTitle=event.title,
        rsvpLink=get_rsvp_link(guest.slug),
        eventDate=format_event_date(event.date_time, locale),
        eventTime=format_event_time(event.date_time),
        eventLocation=event.location,
        eventVenue=event.venue or event.location,
    )

def get_template(
    db: Session,
    event_id: int,
    notification_type: NotificationType,
    locale: str = "he"
) -> Dict[str, str]:
    """Custom template for the event, then the locale default, then the Hebrew invite"""
    custom = db.query(MessageTemplate).filter(
        MessageTemplate.event_id == event_id,
        MessageTemplate.type == notification_type,
        MessageTemplate.locale == locale,
        MessageTemplate.is_active == True
    ).first()

    if custom:
        return {"title": custom.title, "message": custom.message}

    defaults = DEFAULT_TEMPLATES.get(locale, DEFAULT_TEMPLATES["he"])
    key = notification_type.value if isinstance(notification_type, NotificationType) else str(notification_type)
    if key in defaults:
        return dict(defaults[key])

    return dict(DEFAULT_TEMPLATES["he"]["INVITE"])

def render_message(
    db: Session,
    guest: Guest,
    event: WeddingEvent,
    notification_type: NotificationType,
    locale: Optional[str] = None
) -> str:
    template = get_template(db, event.id, notification_type, locale or event.locale)
    return render_template_string(template["message"], build_template_context(guest, event))
