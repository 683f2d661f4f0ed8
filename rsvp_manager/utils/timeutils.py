"""
Timezone helpers

Datetimes are stored naive in UTC. Wall-clock rules (event morning, date
shown to guests) use the configured event timezone.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from rsvp_manager.core.config import settings

def event_tz() -> ZoneInfo:
    return ZoneInfo(settings.EVENT_TIMEZONE)

def to_local(value: datetime) -> datetime:
    """Naive UTC -> aware local time"""
    return value.replace(tzinfo=timezone.utc).astimezone(event_tz())

def local_to_utc(value: datetime) -> datetime:
    """Local wall-clock time (naive or aware) -> naive UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=event_tz())
    return value.astimezone(timezone.utc).replace(tzinfo=None)

def to_naive_utc(value: datetime) -> datetime:
    """Normalise API input: aware values are converted, naive ones taken as UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

def format_event_date(value: datetime, locale: str = "he") -> str:
    local = to_local(value)
    if locale == "en":
        return f"{local.month}/{local.day}/{local.year}"
    return f"{local.day}.{local.month}.{local.year}"

def format_event_time(value: datetime) -> str:
    return to_local(value).strftime("%H:%M")
