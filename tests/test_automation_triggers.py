"""
Tests for automation trigger checks and scheduling
"""

import pytest
from datetime import datetime, timedelta

from rsvp_manager.models.enums import AutomationTrigger, RsvpStatus
from rsvp_manager.services.automation.triggers import calculate_scheduled_time, check_trigger

# 20:00 local (Asia/Jerusalem, UTC+3 in summer)
EVENT_AT = datetime(2030, 6, 15, 17, 0)
SENT_AT = datetime(2030, 6, 1, 10, 0)

class TestEventBasedTriggers:

    @pytest.mark.parametrize("trigger", [
        AutomationTrigger.RSVP_SENT,
        AutomationTrigger.RSVP_CONFIRMED,
        AutomationTrigger.RSVP_DECLINED,
    ])
    def test_never_fire_from_sweep(self, trigger):
        result = check_trigger(trigger, RsvpStatus.ACCEPTED, SENT_AT, EVENT_AT, now=EVENT_AT)

        assert result.should_trigger is False
        assert result.reason == "Event-based trigger"

class TestNoResponse:

    def test_fires_after_delay(self):
        now = SENT_AT + timedelta(hours=24)
        result = check_trigger(AutomationTrigger.NO_RESPONSE_WHATSAPP, RsvpStatus.PENDING, SENT_AT, EVENT_AT, 24, now=now)

        assert result.should_trigger is True

    def test_too_early_reports_next_check(self):
        now = SENT_AT + timedelta(hours=5, minutes=30)
        result = check_trigger(AutomationTrigger.NO_RESPONSE_SMS, RsvpStatus.PENDING, SENT_AT, EVENT_AT, 24, now=now)

        assert result.should_trigger is False
        assert result.reason == "Only 5 hours passed"
        assert result.scheduled_for == SENT_AT + timedelta(hours=24)

    def test_responded_guest_skipped(self):
        now = SENT_AT + timedelta(days=3)
        result = check_trigger(AutomationTrigger.NO_RESPONSE, RsvpStatus.DECLINED, SENT_AT, EVENT_AT, 24, now=now)

        assert result.should_trigger is False
        assert result.reason == "Guest already responded"

    def test_missing_status_treated_as_pending(self):
        now = SENT_AT + timedelta(days=3)
        result = check_trigger(AutomationTrigger.NO_RESPONSE, None, SENT_AT, EVENT_AT, 24, now=now)

        assert result.should_trigger is True

    def test_requires_prior_notification(self):
        result = check_trigger(AutomationTrigger.NO_RESPONSE_WHATSAPP, RsvpStatus.PENDING, None, EVENT_AT, 24, now=SENT_AT)

        assert result.should_trigger is False
        assert result.reason == "No notification sent yet"

    def test_default_delay_when_unset(self):
        now = SENT_AT + timedelta(hours=23)
        result = check_trigger(AutomationTrigger.NO_RESPONSE_WHATSAPP, RsvpStatus.PENDING, SENT_AT, EVENT_AT, None, now=now)

        assert result.should_trigger is False
        assert result.scheduled_for == SENT_AT + timedelta(hours=24)

    def test_legacy_trigger_uses_fixed_hours(self):
        now = SENT_AT + timedelta(hours=47)
        result = check_trigger(AutomationTrigger.NO_RESPONSE_48H, RsvpStatus.PENDING, SENT_AT, EVENT_AT, 1, now=now)

        assert result.should_trigger is False
        assert result.scheduled_for == SENT_AT + timedelta(hours=48)

class TestBeforeAndAfterEvent:

    def test_before_event_inside_window(self):
        now = EVENT_AT - timedelta(hours=2, minutes=-10)
        result = check_trigger(AutomationTrigger.BEFORE_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT, 2, now=now)

        assert result.should_trigger is True

    def test_before_event_too_early(self):
        now = EVENT_AT - timedelta(hours=10)
        result = check_trigger(AutomationTrigger.BEFORE_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT, 2, now=now)

        assert result.should_trigger is False
        assert result.scheduled_for == EVENT_AT - timedelta(hours=2)

    def test_before_event_past_window(self):
        now = EVENT_AT - timedelta(hours=1)
        result = check_trigger(AutomationTrigger.BEFORE_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT, 2, now=now)

        assert result.should_trigger is False
        assert result.reason == "Past trigger window"

    def test_before_event_needs_confirmed_guest(self):
        now = EVENT_AT - timedelta(hours=2)
        result = check_trigger(AutomationTrigger.HOURS_BEFORE_EVENT_2, RsvpStatus.PENDING, None, EVENT_AT, now=now)

        assert result.should_trigger is False
        assert result.reason == "Guest not confirmed"

    def test_after_event_window(self):
        inside = check_trigger(AutomationTrigger.AFTER_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT, 12,
                               now=EVENT_AT + timedelta(hours=12, minutes=20))
        early = check_trigger(AutomationTrigger.AFTER_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT, 12,
                              now=EVENT_AT + timedelta(hours=3))
        late = check_trigger(AutomationTrigger.AFTER_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT, 12,
                             now=EVENT_AT + timedelta(hours=13))

        assert inside.should_trigger is True
        assert early.should_trigger is False
        assert early.scheduled_for == EVENT_AT + timedelta(hours=12)
        assert late.reason == "Past trigger window"

class TestMorningPresets:

    def test_event_morning_fires_between_nine_and_ten_local(self):
        # 09:30 local
        now = datetime(2030, 6, 15, 6, 30)
        result = check_trigger(AutomationTrigger.EVENT_DAY_MORNING, RsvpStatus.ACCEPTED, None, EVENT_AT, now=now)

        assert result.should_trigger is True

    def test_event_morning_before_window(self):
        # 08:00 local
        now = datetime(2030, 6, 15, 5, 0)
        result = check_trigger(AutomationTrigger.EVENT_MORNING, RsvpStatus.ACCEPTED, None, EVENT_AT, now=now)

        assert result.should_trigger is False
        assert result.reason == "Outside event morning window"

    def test_event_morning_on_another_day(self):
        now = datetime(2030, 6, 14, 6, 30)
        result = check_trigger(AutomationTrigger.EVENT_DAY_MORNING, RsvpStatus.ACCEPTED, None, EVENT_AT, now=now)

        assert result.should_trigger is False
        assert result.reason == "Not the event day"
        assert result.scheduled_for == datetime(2030, 6, 15, 6, 0)

    def test_day_after_morning(self):
        # 11:15 local on the next day
        fires = check_trigger(AutomationTrigger.DAY_AFTER_MORNING, RsvpStatus.ACCEPTED, None, EVENT_AT,
                              now=datetime(2030, 6, 16, 8, 15))
        wrong_day = check_trigger(AutomationTrigger.DAY_AFTER_EVENT, RsvpStatus.ACCEPTED, None, EVENT_AT,
                                  now=datetime(2030, 6, 15, 8, 15))

        assert fires.should_trigger is True
        assert wrong_day.reason == "Not the day after event"
        assert wrong_day.scheduled_for == datetime(2030, 6, 16, 8, 0)

    def test_declined_guest_gets_no_morning_message(self):
        result = check_trigger(AutomationTrigger.EVENT_DAY_MORNING, RsvpStatus.DECLINED, None, EVENT_AT,
                               now=datetime(2030, 6, 15, 6, 30))

        assert result.should_trigger is False

class TestCalculateScheduledTime:

    def test_no_response_is_last_sent_plus_delay(self):
        scheduled = calculate_scheduled_time(AutomationTrigger.NO_RESPONSE_WHATSAPP, EVENT_AT, SENT_AT, 36, now=SENT_AT)

        assert scheduled == SENT_AT + timedelta(hours=36)

    def test_no_response_without_notification(self):
        assert calculate_scheduled_time(AutomationTrigger.NO_RESPONSE_SMS, EVENT_AT, None, 24, now=SENT_AT) is None

    def test_legacy_no_response(self):
        scheduled = calculate_scheduled_time(AutomationTrigger.NO_RESPONSE_72H, EVENT_AT, SENT_AT, now=SENT_AT)

        assert scheduled == SENT_AT + timedelta(hours=72)

    def test_before_and_after_event(self):
        now = datetime(2030, 6, 1)

        assert calculate_scheduled_time(AutomationTrigger.BEFORE_EVENT, EVENT_AT, delay_hours=3, now=now) == EVENT_AT - timedelta(hours=3)
        assert calculate_scheduled_time(AutomationTrigger.AFTER_EVENT, EVENT_AT, delay_hours=12, now=now) == EVENT_AT + timedelta(hours=12)
        assert calculate_scheduled_time(AutomationTrigger.HOURS_BEFORE_EVENT_2, EVENT_AT, now=now) == EVENT_AT - timedelta(hours=2)

    def test_past_marks_are_not_scheduled(self):
        now = EVENT_AT + timedelta(days=2)

        assert calculate_scheduled_time(AutomationTrigger.BEFORE_EVENT, EVENT_AT, delay_hours=3, now=now) is None
        assert calculate_scheduled_time(AutomationTrigger.EVENT_DAY_MORNING, EVENT_AT, now=now) is None

    def test_morning_presets_in_local_time(self):
        now = datetime(2030, 6, 1)

        assert calculate_scheduled_time(AutomationTrigger.EVENT_MORNING, EVENT_AT, now=now) == datetime(2030, 6, 15, 6, 0)
        assert calculate_scheduled_time(AutomationTrigger.DAY_AFTER_MORNING, EVENT_AT, now=now) == datetime(2030, 6, 16, 8, 0)
