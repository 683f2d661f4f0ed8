"""
Subscription plan limits and message quota checks
"""

from dataclasses import dataclass
from typing import Dict

from rsvp_manager.models import User
from rsvp_manager.models.enums import PlanTier

UNLIMITED = -1

@dataclass(frozen=True)
class PlanLimits:
    max_events: int
    max_guests_per_event: int
    whatsapp_messages: int
    sms_messages: int

PLAN_LIMITS: Dict[PlanTier, PlanLimits] = {
    PlanTier.FREE: PlanLimits(max_events=1, max_guests_per_event=50, whatsapp_messages=0, sms_messages=0),
    PlanTier.BASIC: PlanLimits(max_events=1, max_guests_per_event=UNLIMITED, whatsapp_messages=650, sms_messages=0),
    PlanTier.ADVANCED: PlanLimits(max_events=1, max_guests_per_event=UNLIMITED, whatsapp_messages=750, sms_messages=30),
    PlanTier.PREMIUM: PlanLimits(max_events=2, max_guests_per_event=UNLIMITED, whatsapp_messages=1000, sms_messages=50),
    PlanTier.BUSINESS: PlanLimits(max_events=UNLIMITED, max_guests_per_event=UNLIMITED, whatsapp_messages=UNLIMITED, sms_messages=UNLIMITED),
}

def get_plan_limits(plan: PlanTier) -> PlanLimits:
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[PlanTier.FREE])

def can_create_event(plan: PlanTier, current_event_count: int) -> bool:
    limit = get_plan_limits(plan).max_events
    return limit == UNLIMITED or current_event_count < limit

def can_add_guests(plan: PlanTier, current_guest_count: int, adding: int = 1) -> bool:
    limit = get_plan_limits(plan).max_guests_per_event
    return limit == UNLIMITED or current_guest_count + adding <= limit

def get_remaining_messages(user: User) -> Dict[str, int]:
    """Remaining WhatsApp and SMS messages; -1 means unlimited"""
    limits = get_plan_limits(user.plan)

    def remaining(quota: int, bonus: int, used: int) -> int:
        if quota == UNLIMITED:
            return UNLIMITED
        return max(0, quota + (bonus or 0) - (used or 0))

    return {
        "whatsapp": remaining(limits.whatsapp_messages, user.whatsapp_bonus, user.whatsapp_sent),
        "sms": remaining(limits.sms_messages, user.sms_bonus, user.sms_sent),
    }

def can_send_whatsapp(user: User, count: int = 1) -> bool:
    remaining = get_remaining_messages(user)["whatsapp"]
    return remaining == UNLIMITED or remaining >= count

def can_send_sms(user: User, count: int = 1) -> bool:
    remaining = get_remaining_messages(user)["sms"]
    return remaining == UNLIMITED or remaining >= count

def record_message_usage(user: User, channel: str, count: int = 1):
    """Increment the user's usage counters; caller commits"""
    if channel == "SMS":
        user.sms_sent = (user.sms_sent or 0) + count
    else:
        user.whatsapp_sent = (user.whatsapp_sent or 0) + count
