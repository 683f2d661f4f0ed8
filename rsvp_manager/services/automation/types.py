"""
Automation data types, trigger groups and flow templates
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from rsvp_manager.models.enums import (
    AutomationTrigger, AutomationAction, NotificationType, RsvpStatus
)

EVENT_BASED_TRIGGERS = (
    AutomationTrigger.RSVP_SENT,
    AutomationTrigger.RSVP_CONFIRMED,
    AutomationTrigger.RSVP_DECLINED,
)

NO_RESPONSE_TRIGGERS = (
    AutomationTrigger.NO_RESPONSE_WHATSAPP,
    AutomationTrigger.NO_RESPONSE_SMS,
    AutomationTrigger.NO_RESPONSE,
    AutomationTrigger.NO_RESPONSE_24H,
    AutomationTrigger.NO_RESPONSE_48H,
    AutomationTrigger.NO_RESPONSE_72H,
)

# Flexible triggers that cannot be saved without delay_hours
DELAY_HOURS_TRIGGERS = (
    AutomationTrigger.NO_RESPONSE_WHATSAPP,
    AutomationTrigger.NO_RESPONSE_SMS,
    AutomationTrigger.NO_RESPONSE,
    AutomationTrigger.BEFORE_EVENT,
    AutomationTrigger.AFTER_EVENT,
)

# Triggers that only concern guests who confirmed
CONFIRMED_GUEST_TRIGGERS = (
    AutomationTrigger.BEFORE_EVENT,
    AutomationTrigger.AFTER_EVENT,
    AutomationTrigger.EVENT_DAY_MORNING,
    AutomationTrigger.DAY_AFTER_MORNING,
    AutomationTrigger.EVENT_MORNING,
    AutomationTrigger.HOURS_BEFORE_EVENT_2,
    AutomationTrigger.DAY_AFTER_EVENT,
)

ACTION_NOTIFICATION_TYPES: Dict[AutomationAction, NotificationType] = {
    AutomationAction.SEND_WHATSAPP_INVITE: NotificationType.INVITE,
    AutomationAction.SEND_WHATSAPP_IMAGE_INVITE: NotificationType.INVITE,
    AutomationAction.SEND_WHATSAPP_INTERACTIVE_INVITE: NotificationType.INVITE,
    AutomationAction.SEND_WHATSAPP_REMINDER: NotificationType.REMINDER,
    AutomationAction.SEND_WHATSAPP_INTERACTIVE_REMINDER: NotificationType.REMINDER,
    AutomationAction.SEND_SMS_REMINDER: NotificationType.REMINDER,
    AutomationAction.SEND_WHATSAPP_TEMPLATE: NotificationType.REMINDER,
    AutomationAction.SEND_WHATSAPP_CONFIRMATION: NotificationType.CONFIRMATION,
    AutomationAction.SEND_WHATSAPP_EVENT_DAY: NotificationType.EVENT_DAY,
    AutomationAction.SEND_WHATSAPP_THANK_YOU: NotificationType.THANK_YOU,
    AutomationAction.SEND_TABLE_ASSIGNMENT: NotificationType.TABLE_ASSIGNMENT,
    AutomationAction.SEND_WHATSAPP_GUEST_COUNT_LIST: NotificationType.GUEST_COUNT,
    AutomationAction.SEND_CUSTOM_WHATSAPP: NotificationType.REMINDER,
    AutomationAction.SEND_CUSTOM_SMS: NotificationType.REMINDER,
}

# WhatsApp content template type per templated action
ACTION_TEMPLATE_TYPES: Dict[AutomationAction, NotificationType] = {
    AutomationAction.SEND_WHATSAPP_INVITE: NotificationType.INVITE,
    AutomationAction.SEND_WHATSAPP_REMINDER: NotificationType.REMINDER,
    AutomationAction.SEND_WHATSAPP_CONFIRMATION: NotificationType.CONFIRMATION,
    AutomationAction.SEND_WHATSAPP_IMAGE_INVITE: NotificationType.IMAGE_INVITE,
    AutomationAction.SEND_WHATSAPP_INTERACTIVE_INVITE: NotificationType.INTERACTIVE_INVITE,
    AutomationAction.SEND_WHATSAPP_INTERACTIVE_REMINDER: NotificationType.INTERACTIVE_REMINDER,
    AutomationAction.SEND_WHATSAPP_GUEST_COUNT_LIST: NotificationType.GUEST_COUNT,
    AutomationAction.SEND_WHATSAPP_TEMPLATE: NotificationType.REMINDER,
}

def notification_type_for_action(action: AutomationAction) -> NotificationType:
    return ACTION_NOTIFICATION_TYPES.get(action, NotificationType.REMINDER)

def is_event_based_trigger(trigger: AutomationTrigger) -> bool:
    return trigger in EVENT_BASED_TRIGGERS

def requires_delay_hours(trigger: AutomationTrigger) -> bool:
    return trigger in DELAY_HOURS_TRIGGERS

@dataclass
class TriggerResult:
    should_trigger: bool
    reason: Optional[str] = None
    scheduled_for: Optional[datetime] = None

@dataclass
class ActionResult:
    success: bool
    message: Optional[str] = None
    error_code: Optional[str] = None

@dataclass
class AutomationContext:
    """Everything an action needs to message one guest"""
    guest_id: int
    event_id: int
    guest_name: str
    event_date: datetime
    event_location: Optional[str] = None
    guest_phone: Optional[str] = None
    rsvp_status: Optional[RsvpStatus] = None
    table_name: Optional[str] = None
    event_time: Optional[str] = None
    event_venue: Optional[str] = None
    event_address: Optional[str] = None
    guest_count: Optional[int] = None
    custom_message: Optional[str] = None
    rsvp_link: Optional[str] = None
    couple_name: Optional[str] = None
    template_style: Optional[str] = None
    is_test: bool = False

@dataclass(frozen=True)
class FlowTemplate:
    id: str
    name: str
    name_he: str
    description: str
    description_he: str
    trigger: AutomationTrigger
    action: AutomationAction

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "name_he": self.name_he,
            "description": self.description,
            "description_he": self.description_he,
            "trigger": self.trigger.value,
            "action": self.action.value,
        }

FLOW_TEMPLATES: List[FlowTemplate] = [
    FlowTemplate(
        id="chaser",
        name="The Chaser",
        name_he="הרודף",
        description="Automatically reminds guests who haven't responded within 24 hours",
        description_he="מזכיר אוטומטית לאורחים שלא הגיבו תוך 24 שעות",
        trigger=AutomationTrigger.NO_RESPONSE_24H,
        action=AutomationAction.SEND_WHATSAPP_TEMPLATE,
    ),
    FlowTemplate(
        id="concierge",
        name="The Concierge",
        name_he="הקונסיירז'",
        description="Sends table assignment and location on the morning of the event",
        description_he="שולח שיבוץ לשולחן ומיקום בבוקר יום האירוע",
        trigger=AutomationTrigger.EVENT_MORNING,
        action=AutomationAction.SEND_TABLE_ASSIGNMENT,
    ),
    FlowTemplate(
        id="thank-you",
        name="Thank You",
        name_he="תודה",
        description="Sends a thank you message when a guest confirms attendance",
        description_he="שולח הודעת תודה כשאורח מאשר הגעה",
        trigger=AutomationTrigger.RSVP_CONFIRMED,
        action=AutomationAction.SEND_WHATSAPP_TEMPLATE,
    ),
    FlowTemplate(
        id="second-chance",
        name="Second Chance",
        name_he="הזדמנות שנייה",
        description="Final reminder for guests who haven't responded within 48 hours",
        description_he="תזכורת אחרונה לאורחים שלא הגיבו תוך 48 שעות",
        trigger=AutomationTrigger.NO_RESPONSE_48H,
        action=AutomationAction.SEND_WHATSAPP_TEMPLATE,
    ),
    FlowTemplate(
        id="location-reminder",
        name="Location Reminder",
        name_he="תזכורת מיקום",
        description="Sends venue details 2 hours before the event",
        description_he="שולח פרטי מקום האירוע שעתיים לפני",
        trigger=AutomationTrigger.HOURS_BEFORE_EVENT_2,
        action=AutomationAction.SEND_WHATSAPP_TEMPLATE,
    ),
]

def get_flow_template(template_id: str) -> Optional[FlowTemplate]:
    for template in FLOW_TEMPLATES:
        if template.id == template_id:
            return template
    return None
