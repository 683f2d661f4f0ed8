"""
Enumerations shared by models, schemas and services
"""

from enum import Enum


class UserRole(str, Enum):
    ROLE_WEDDING_OWNER = "ROLE_WEDDING_OWNER"
    ROLE_PLATFORM_OWNER = "ROLE_PLATFORM_OWNER"


class PlanTier(str, Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    ADVANCED = "ADVANCED"
    PREMIUM = "PREMIUM"
    BUSINESS = "BUSINESS"


class CollaboratorRole(str, Enum):
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


class RsvpStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class NotificationType(str, Enum):
    INVITE = "INVITE"
    REMINDER = "REMINDER"
    CONFIRMATION = "CONFIRMATION"
    IMAGE_INVITE = "IMAGE_INVITE"
    INTERACTIVE_INVITE = "INTERACTIVE_INVITE"
    INTERACTIVE_REMINDER = "INTERACTIVE_REMINDER"
    EVENT_DAY = "EVENT_DAY"
    THANK_YOU = "THANK_YOU"
    TABLE_ASSIGNMENT = "TABLE_ASSIGNMENT"
    GUEST_COUNT = "GUEST_COUNT"
    CUSTOM = "CUSTOM"


class NotificationChannel(str, Enum):
    WHATSAPP = "WHATSAPP"
    SMS = "SMS"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class AutomationTrigger(str, Enum):
    # Fired by application events, never by the sweep
    RSVP_SENT = "RSVP_SENT"
    RSVP_CONFIRMED = "RSVP_CONFIRMED"
    RSVP_DECLINED = "RSVP_DECLINED"

    # Flexible, configured with delay_hours
    NO_RESPONSE_WHATSAPP = "NO_RESPONSE_WHATSAPP"
    NO_RESPONSE_SMS = "NO_RESPONSE_SMS"
    NO_RESPONSE = "NO_RESPONSE"
    BEFORE_EVENT = "BEFORE_EVENT"
    AFTER_EVENT = "AFTER_EVENT"

    # Fixed time presets
    EVENT_DAY_MORNING = "EVENT_DAY_MORNING"
    DAY_AFTER_MORNING = "DAY_AFTER_MORNING"

    # Legacy
    NO_RESPONSE_24H = "NO_RESPONSE_24H"
    NO_RESPONSE_48H = "NO_RESPONSE_48H"
    NO_RESPONSE_72H = "NO_RESPONSE_72H"
    EVENT_MORNING = "EVENT_MORNING"
    HOURS_BEFORE_EVENT_2 = "HOURS_BEFORE_EVENT_2"
    DAY_AFTER_EVENT = "DAY_AFTER_EVENT"


class AutomationAction(str, Enum):
    SEND_WHATSAPP_INVITE = "SEND_WHATSAPP_INVITE"
    SEND_WHATSAPP_REMINDER = "SEND_WHATSAPP_REMINDER"
    SEND_WHATSAPP_CONFIRMATION = "SEND_WHATSAPP_CONFIRMATION"
    SEND_WHATSAPP_IMAGE_INVITE = "SEND_WHATSAPP_IMAGE_INVITE"
    SEND_WHATSAPP_INTERACTIVE_INVITE = "SEND_WHATSAPP_INTERACTIVE_INVITE"
    SEND_WHATSAPP_INTERACTIVE_REMINDER = "SEND_WHATSAPP_INTERACTIVE_REMINDER"
    SEND_WHATSAPP_GUEST_COUNT_LIST = "SEND_WHATSAPP_GUEST_COUNT_LIST"
    SEND_TABLE_ASSIGNMENT = "SEND_TABLE_ASSIGNMENT"
    SEND_WHATSAPP_EVENT_DAY = "SEND_WHATSAPP_EVENT_DAY"
    SEND_WHATSAPP_THANK_YOU = "SEND_WHATSAPP_THANK_YOU"
    SEND_CUSTOM_WHATSAPP = "SEND_CUSTOM_WHATSAPP"
    SEND_CUSTOM_SMS = "SEND_CUSTOM_SMS"

    # Legacy
    SEND_WHATSAPP_TEMPLATE = "SEND_WHATSAPP_TEMPLATE"
    SEND_SMS_REMINDER = "SEND_SMS_REMINDER"


class FlowStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ARCHIVED = "ARCHIVED"


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class BulkJobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class BulkItemStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
