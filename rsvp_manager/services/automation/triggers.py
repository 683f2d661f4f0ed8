"""
Trigger condition checks for the automation sweep

All datetimes are naive UTC. The morning presets are evaluated against the
event timezone's wall clock.
"""

import math
from datetime import datetime, timedelta, time
from typing import Optional

from rsvp_manager.models.enums import AutomationTrigger, RsvpStatus
from rsvp_manager.services.automation.types import TriggerResult
from rsvp_manager.utils.timeutils import to_local, local_to_utc

DEFAULT_NO_RESPONSE_HOURS = 24
DEFAULT_BEFORE_EVENT_HOURS = 2
DEFAULT_AFTER_EVENT_HOURS = 12

EVENT_MORNING_HOUR = 9
DAY_AFTER_HOUR = 11

# Before/after event triggers fire within this many hours of their mark
TRIGGER_WINDOW_HOURS = 0.5

LEGACY_NO_RESPONSE_HOURS = {
    AutomationTrigger.NO_RESPONSE_24H: 24,
    AutomationTrigger.NO_RESPONSE_48H: 48,
    AutomationTrigger.NO_RESPONSE_72H: 72,
}

def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600

def _local_at(day, hour: int) -> datetime:
    """Naive UTC instant of hour:00 local time on a local calendar date"""
    return local_to_utc(datetime.combine(day, time(hour, 0)))

def check_trigger(
    trigger: AutomationTrigger,
    rsvp_status: Optional[RsvpStatus],
    last_notification_at: Optional[datetime],
    event_date_time: datetime,
    delay_hours: Optional[int] = None,
    now: Optional[datetime] = None
) -> TriggerResult:
    """Decide whether a time-based trigger fires for one guest right now"""
    now = now or datetime.utcnow()
    trigger = AutomationTrigger(trigger)
    rsvp_status = RsvpStatus(rsvp_status) if rsvp_status else RsvpStatus.PENDING

    if trigger in (AutomationTrigger.RSVP_SENT, AutomationTrigger.RSVP_CONFIRMED, AutomationTrigger.RSVP_DECLINED):
        return TriggerResult(False, "Event-based trigger")

    if trigger in (AutomationTrigger.NO_RESPONSE_WHATSAPP, AutomationTrigger.NO_RESPONSE_SMS, AutomationTrigger.NO_RESPONSE):
        return _check_no_response(rsvp_status, last_notification_at, delay_hours or DEFAULT_NO_RESPONSE_HOURS, now)
    if trigger in LEGACY_NO_RESPONSE_HOURS:
        return _check_no_response(rsvp_status, last_notification_at, LEGACY_NO_RESPONSE_HOURS[trigger], now)

    if trigger == AutomationTrigger.BEFORE_EVENT:
        return _check_hours_before(rsvp_status, event_date_time, delay_hours or DEFAULT_BEFORE_EVENT_HOURS, now)
    if trigger == AutomationTrigger.HOURS_BEFORE_EVENT_2:
        return _check_hours_before(rsvp_status, event_date_time, 2, now)
    if trigger == AutomationTrigger.AFTER_EVENT:
        return _check_hours_after(rsvp_status, event_date_time, delay_hours or DEFAULT_AFTER_EVENT_HOURS, now)

    if trigger in (AutomationTrigger.EVENT_DAY_MORNING, AutomationTrigger.EVENT_MORNING):
        return _check_event_day_morning(rsvp_status, event_date_time, now)
    if trigger in (AutomationTrigger.DAY_AFTER_MORNING, AutomationTrigger.DAY_AFTER_EVENT):
        return _check_day_after_morning(rsvp_status, event_date_time, now)

    return TriggerResult(False, "Unknown trigger type")

def _check_no_response(rsvp_status, last_notification_at, hours, now) -> TriggerResult:
    if rsvp_status != RsvpStatus.PENDING:
        return TriggerResult(False, "Guest already responded")

    if not last_notification_at:
        return TriggerResult(False, "No notification sent yet")

    elapsed = _hours_between(last_notification_at, now)
    if elapsed >= hours:
        return TriggerResult(True, f"{hours} hours passed since last notification")

    return TriggerResult(
        False,
        f"Only {math.floor(elapsed)} hours passed",
        last_notification_at + timedelta(hours=hours),
    )

def _check_hours_before(rsvp_status, event_date_time, hours, now) -> TriggerResult:
    if rsvp_status != RsvpStatus.ACCEPTED:
        return TriggerResult(False, "Guest not confirmed")

    hours_until = _hours_between(now, event_date_time)
    if hours - TRIGGER_WINDOW_HOURS <= hours_until <= hours:
        return TriggerResult(True, f"{hours} hours before event")

    if hours_until > hours:
        return TriggerResult(
            False,
            f"{math.floor(hours_until)} hours until event",
            event_date_time - timedelta(hours=hours),
        )

    return TriggerResult(False, "Past trigger window")

def _check_hours_after(rsvp_status, event_date_time, hours, now) -> TriggerResult:
    if rsvp_status != RsvpStatus.ACCEPTED:
        return TriggerResult(False, "Guest not confirmed")

    hours_since = _hours_between(event_date_time, now)
    if hours <= hours_since <= hours + TRIGGER_WINDOW_HOURS:
        return TriggerResult(True, f"{hours} hours after event")

    if hours_since < hours:
        return TriggerResult(
            False,
            f"{math.floor(hours - hours_since)} hours until trigger",
            event_date_time + timedelta(hours=hours),
        )

    return TriggerResult(False, "Past trigger window")

def _check_event_day_morning(rsvp_status, event_date_time, now) -> TriggerResult:
    if rsvp_status != RsvpStatus.ACCEPTED:
        return TriggerResult(False, "Guest not confirmed")

    event_day = to_local(event_date_time).date()
    local_now = to_local(now)

    if local_now.date() != event_day:
        return TriggerResult(False, "Not the event day", _local_at(event_day, EVENT_MORNING_HOUR))

    if EVENT_MORNING_HOUR <= local_now.hour < EVENT_MORNING_HOUR + 1:
        return TriggerResult(True, "Event day morning (9-10 AM)")

    return TriggerResult(False, "Outside event morning window")

def _check_day_after_morning(rsvp_status, event_date_time, now) -> TriggerResult:
    if rsvp_status != RsvpStatus.ACCEPTED:
        return TriggerResult(False, "Guest not confirmed")

    day_after = to_local(event_date_time).date() + timedelta(days=1)
    local_now = to_local(now)

    if local_now.date() != day_after:
        return TriggerResult(False, "Not the day after event", _local_at(day_after, DAY_AFTER_HOUR))

    if DAY_AFTER_HOUR <= local_now.hour < DAY_AFTER_HOUR + 1:
        return TriggerResult(True, "Day after event morning (11-12 AM)")

    return TriggerResult(False, "Outside day-after morning window")

def calculate_scheduled_time(
    trigger: AutomationTrigger,
    event_date_time: datetime,
    last_notification_at: Optional[datetime] = None,
    delay_hours: Optional[int] = None,
    now: Optional[datetime] = None
) -> Optional[datetime]:
    """When a time-based execution should next be looked at, or None"""
    now = now or datetime.utcnow()
    trigger = AutomationTrigger(trigger)

    def future(value: datetime) -> Optional[datetime]:
        return value if value > now else None

    if trigger in (AutomationTrigger.NO_RESPONSE_WHATSAPP, AutomationTrigger.NO_RESPONSE_SMS, AutomationTrigger.NO_RESPONSE):
        if not last_notification_at or not delay_hours:
            return None
        return last_notification_at + timedelta(hours=delay_hours)

    if trigger in LEGACY_NO_RESPONSE_HOURS:
        if not last_notification_at:
            return None
        return last_notification_at + timedelta(hours=LEGACY_NO_RESPONSE_HOURS[trigger])

    if trigger == AutomationTrigger.BEFORE_EVENT:
        if not delay_hours:
            return None
        return future(event_date_time - timedelta(hours=delay_hours))

    if trigger == AutomationTrigger.AFTER_EVENT:
        if not delay_hours:
            return None
        return future(event_date_time + timedelta(hours=delay_hours))

    if trigger == AutomationTrigger.HOURS_BEFORE_EVENT_2:
        return future(event_date_time - timedelta(hours=2))

    if trigger in (AutomationTrigger.EVENT_DAY_MORNING, AutomationTrigger.EVENT_MORNING):
        return future(_local_at(to_local(event_date_time).date(), EVENT_MORNING_HOUR))

    if trigger in (AutomationTrigger.DAY_AFTER_MORNING, AutomationTrigger.DAY_AFTER_EVENT):
        day_after = to_local(event_date_time).date() + timedelta(days=1)
        return future(_local_at(day_after, DAY_AFTER_HOUR))

    return None
