"""
Tests for automation flows, event handlers, the cron sweep and actions
"""

import json
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rsvp_manager.core.db import Base
from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import (
    User, WeddingEvent, Guest, GuestRsvp, NotificationLog, MessagingProviderSettings, WhatsAppTemplate,
    AutomationFlow, AutomationFlowExecution, WeddingTable, TableAssignment
)
from rsvp_manager.models.enums import (
    AutomationAction, AutomationTrigger, ExecutionStatus, FlowStatus, NotificationChannel,
    NotificationStatus, NotificationType, RsvpStatus
)
from rsvp_manager.schemas.automation import FlowCreate
from rsvp_manager.services.automation.actions import execute_action, build_context, replace_message_variables
from rsvp_manager.services.automation.flows import AutomationFlowService
from rsvp_manager.services.automation.handlers import (
    on_flow_activated, on_notification_sent, on_rsvp_status_changed
)
from rsvp_manager.services.automation.processor import (
    cleanup_old_executions, get_automation_stats, process_automation_flows, schedule_upcoming_event_triggers
)

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_automation.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

EVENT_AT = datetime(2030, 6, 15, 17, 0)
SENT_AT = datetime(2030, 6, 1, 10, 0)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

class TwilioRecorder:
    def __init__(self):
        self.sent = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.sent.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        return httpx.Response(201, json={"sid": f"SM{len(self.sent)}", "status": "queued"})

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)

@pytest.fixture
def twilio():
    return TwilioRecorder()

@pytest.fixture
def wedding(db_session):
    """Event with WhatsApp configured, a pending guest who got an invite and an accepted guest"""
    owner = User(email="owner@example.com", name="Owner", api_token="owner-token")
    db_session.add(owner)
    db_session.flush()

    event = WeddingEvent(owner_id=owner.id, title="Dana & Noam", date_time=EVENT_AT,
                         location="Tel Aviv", venue="Beach Hall")
    db_session.add(event)
    db_session.flush()

    avi = Guest(event_id=event.id, name="Avi", phone_number="0584003578", slug="avi")
    avi.rsvp = GuestRsvp(status=RsvpStatus.PENDING)
    bella = Guest(event_id=event.id, name="Bella", phone_number="0521112222", slug="bella")
    bella.rsvp = GuestRsvp(status=RsvpStatus.ACCEPTED, guest_count=2)
    db_session.add_all([avi, bella])
    db_session.flush()

    db_session.add(NotificationLog(
        guest_id=avi.id,
        type=NotificationType.INVITE,
        channel=NotificationChannel.WHATSAPP,
        status=NotificationStatus.SENT,
        sent_at=SENT_AT,
    ))
    db_session.add(MessagingProviderSettings(
        whatsapp_enabled=True,
        whatsapp_provider="twilio",
        whatsapp_api_key="AC123",
        whatsapp_api_secret="secret",
        whatsapp_phone_number="+15550001111",
    ))
    db_session.add(WhatsAppTemplate(type=NotificationType.REMINDER, content_sid="HXREMINDER"))
    db_session.commit()
    db_session.refresh(event)
    return event

def guest_by_name(db, name):
    return db.query(Guest).filter(Guest.name == name).first()

def add_flow(db, event, trigger, action, status=FlowStatus.ACTIVE, delay_hours=None, **extra):
    flow = AutomationFlow(event_id=event.id, name=f"{trigger.value} flow", trigger=trigger, action=action,
                          status=status, delay_hours=delay_hours, **extra)
    db.add(flow)
    db.commit()
    db.refresh(flow)
    return flow

def add_execution(db, flow, guest, scheduled_for=None, status=ExecutionStatus.PENDING, **extra):
    execution = AutomationFlowExecution(flow_id=flow.id, guest_id=guest.id, status=status,
                                        scheduled_for=scheduled_for, **extra)
    db.add(execution)
    db.commit()
    db.refresh(execution)
    return execution

class TestFlowService:

    def test_flexible_trigger_requires_delay(self, wedding, db_session):
        data = FlowCreate(name="Chaser", trigger=AutomationTrigger.NO_RESPONSE_WHATSAPP,
                          action=AutomationAction.SEND_WHATSAPP_REMINDER)
        with pytest.raises(ValidationError):
            AutomationFlowService.create_flow(db_session, wedding.id, data)

    def test_new_flows_start_as_draft(self, wedding, db_session):
        data = FlowCreate(name="Chaser", trigger=AutomationTrigger.NO_RESPONSE_WHATSAPP,
                          action=AutomationAction.SEND_WHATSAPP_REMINDER, delay_hours=24)
        flow = AutomationFlowService.create_flow(db_session, wedding.id, data)

        assert flow.status == FlowStatus.DRAFT
        assert flow.executions == []

    def test_create_from_template(self, wedding, db_session):
        flow = AutomationFlowService.create_from_template(db_session, wedding.id, "chaser")

        assert flow.trigger == AutomationTrigger.NO_RESPONSE_24H
        assert flow.action == AutomationAction.SEND_WHATSAPP_TEMPLATE

    def test_unknown_template(self, wedding, db_session):
        with pytest.raises(NotFoundError):
            AutomationFlowService.create_from_template(db_session, wedding.id, "nope")

    def test_flow_of_other_event_not_found(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.RSVP_CONFIRMED, AutomationAction.SEND_WHATSAPP_REMINDER)
        with pytest.raises(NotFoundError):
            AutomationFlowService.get_flow(db_session, wedding.id + 1, flow.id)

    def test_activation_schedules_pending_guests(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                        AutomationAction.SEND_WHATSAPP_REMINDER, status=FlowStatus.DRAFT, delay_hours=24)

        AutomationFlowService.set_status(db_session, wedding.id, flow.id, FlowStatus.ACTIVE)

        executions = db_session.query(AutomationFlowExecution).all()
        assert len(executions) == 1
        assert executions[0].guest_id == guest_by_name(db_session, "Avi").id
        assert executions[0].scheduled_for == SENT_AT + timedelta(hours=24)

class TestHandlers:

    def test_flow_activated_for_confirmed_guests(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.BEFORE_EVENT,
                        AutomationAction.SEND_WHATSAPP_REMINDER, delay_hours=3)

        created = on_flow_activated(db_session, flow.id, now=SENT_AT)

        execution = db_session.query(AutomationFlowExecution).one()
        assert created == 1
        assert execution.guest_id == guest_by_name(db_session, "Bella").id
        assert execution.scheduled_for == EVENT_AT - timedelta(hours=3)

    def test_flow_activated_twice_does_not_duplicate(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.BEFORE_EVENT,
                        AutomationAction.SEND_WHATSAPP_REMINDER, delay_hours=3)

        on_flow_activated(db_session, flow.id, now=SENT_AT)
        assert on_flow_activated(db_session, flow.id, now=SENT_AT) == 0

    def test_event_based_flow_not_scheduled(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.RSVP_CONFIRMED, AutomationAction.SEND_WHATSAPP_REMINDER)
        assert on_flow_activated(db_session, flow.id, now=SENT_AT) == 0

    def test_notification_sent_reschedules_pending_execution(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE, AutomationAction.SEND_WHATSAPP_REMINDER,
                        delay_hours=48)
        avi = guest_by_name(db_session, "Avi")
        execution = add_execution(db_session, flow, avi, scheduled_for=SENT_AT + timedelta(hours=48))

        resent_at = SENT_AT + timedelta(days=1)
        on_notification_sent(db_session, avi.id, wedding.id, NotificationType.REMINDER, resent_at, now=resent_at)

        db_session.refresh(execution)
        assert execution.scheduled_for == resent_at + timedelta(hours=48)

    def test_notification_sent_ignores_responded_guest(self, wedding, db_session):
        add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE, AutomationAction.SEND_WHATSAPP_REMINDER,
                 delay_hours=48)
        bella = guest_by_name(db_session, "Bella")

        on_notification_sent(db_session, bella.id, wedding.id, NotificationType.INVITE, SENT_AT, now=SENT_AT)

        assert db_session.query(AutomationFlowExecution).count() == 0

    @pytest.mark.asyncio
    async def test_confirmation_runs_flow_and_cancels_chasers(self, wedding, db_session, twilio):
        confirmed = add_flow(db_session, wedding, AutomationTrigger.RSVP_CONFIRMED,
                             AutomationAction.SEND_WHATSAPP_REMINDER)
        chaser = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                          AutomationAction.SEND_WHATSAPP_REMINDER, delay_hours=24)
        avi = guest_by_name(db_session, "Avi")
        pending = add_execution(db_session, chaser, avi, scheduled_for=SENT_AT + timedelta(hours=24))

        avi.rsvp.status = RsvpStatus.ACCEPTED
        db_session.commit()
        await on_rsvp_status_changed(db_session, avi.id, wedding.id, RsvpStatus.ACCEPTED, RsvpStatus.PENDING,
                                     transport=twilio.transport)

        executed = db_session.query(AutomationFlowExecution).filter(AutomationFlowExecution.flow_id == confirmed.id).one()
        db_session.refresh(pending)
        assert executed.status == ExecutionStatus.COMPLETED
        assert executed.error_message is None
        assert pending.status == ExecutionStatus.SKIPPED
        assert twilio.sent[0]["ContentSid"] == "HXREMINDER"

    @pytest.mark.asyncio
    async def test_unchanged_status_runs_nothing(self, wedding, db_session, twilio):
        add_flow(db_session, wedding, AutomationTrigger.RSVP_CONFIRMED, AutomationAction.SEND_WHATSAPP_REMINDER)
        bella = guest_by_name(db_session, "Bella")

        await on_rsvp_status_changed(db_session, bella.id, wedding.id, RsvpStatus.ACCEPTED, RsvpStatus.ACCEPTED,
                                     transport=twilio.transport)

        assert twilio.sent == []

class TestProcessor:

    @pytest.mark.asyncio
    async def test_due_execution_sends_and_completes(self, wedding, db_session, twilio):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                        AutomationAction.SEND_WHATSAPP_REMINDER, delay_hours=24)
        avi = guest_by_name(db_session, "Avi")
        execution = add_execution(db_session, flow, avi, scheduled_for=SENT_AT + timedelta(hours=24))

        result = await process_automation_flows(db_session, now=SENT_AT + timedelta(hours=25), transport=twilio.transport)

        db_session.refresh(execution)
        assert result == {"processed": 1, "succeeded": 1, "failed": 0, "skipped": 0}
        assert execution.status == ExecutionStatus.COMPLETED
        variables = json.loads(twilio.sent[0]["ContentVariables"])
        assert variables["1"] == "Avi"
        assert variables["3"].endswith("/rsvp/avi")
        assert db_session.query(NotificationLog).filter(NotificationLog.type == NotificationType.REMINDER).count() == 1

    @pytest.mark.asyncio
    async def test_early_execution_is_pushed_back(self, wedding, db_session, twilio):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                        AutomationAction.SEND_WHATSAPP_REMINDER, delay_hours=24)
        execution = add_execution(db_session, flow, guest_by_name(db_session, "Avi"), scheduled_for=SENT_AT)

        result = await process_automation_flows(db_session, now=SENT_AT + timedelta(hours=2), transport=twilio.transport)

        db_session.refresh(execution)
        assert result["skipped"] == 1
        assert execution.status == ExecutionStatus.PENDING
        assert execution.scheduled_for == SENT_AT + timedelta(hours=24)
        assert twilio.sent == []

    @pytest.mark.asyncio
    async def test_responded_guest_is_skipped(self, wedding, db_session, twilio):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE, AutomationAction.SEND_WHATSAPP_REMINDER,
                        delay_hours=24)
        execution = add_execution(db_session, flow, guest_by_name(db_session, "Bella"), scheduled_for=SENT_AT)

        await process_automation_flows(db_session, now=SENT_AT + timedelta(days=2), transport=twilio.transport)

        db_session.refresh(execution)
        assert execution.status == ExecutionStatus.SKIPPED
        assert execution.error_message == "Guest already responded"

    @pytest.mark.asyncio
    async def test_failed_action_is_retried_later(self, wedding, db_session, twilio):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                        AutomationAction.SEND_WHATSAPP_THANK_YOU, delay_hours=24)
        execution = add_execution(db_session, flow, guest_by_name(db_session, "Avi"), scheduled_for=SENT_AT)
        now = SENT_AT + timedelta(days=2)

        result = await process_automation_flows(db_session, now=now, transport=twilio.transport)

        db_session.refresh(execution)
        assert result["failed"] == 1
        assert execution.status == ExecutionStatus.PENDING
        assert execution.retry_count == 1
        assert execution.scheduled_for == now + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_failure_after_last_retry_is_final(self, wedding, db_session, twilio):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                        AutomationAction.SEND_WHATSAPP_THANK_YOU, delay_hours=24)
        execution = add_execution(db_session, flow, guest_by_name(db_session, "Avi"), scheduled_for=SENT_AT,
                                  retry_count=2)

        await process_automation_flows(db_session, now=SENT_AT + timedelta(days=2), transport=twilio.transport)

        db_session.refresh(execution)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.error_message.endswith("(after 3 retries)")

    @pytest.mark.asyncio
    async def test_paused_flows_are_ignored(self, wedding, db_session, twilio):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE_WHATSAPP,
                        AutomationAction.SEND_WHATSAPP_REMINDER, status=FlowStatus.PAUSED, delay_hours=24)
        add_execution(db_session, flow, guest_by_name(db_session, "Avi"), scheduled_for=SENT_AT)

        result = await process_automation_flows(db_session, now=SENT_AT + timedelta(days=2), transport=twilio.transport)

        assert result["processed"] == 0

    def test_upcoming_event_triggers_scheduled_once(self, wedding, db_session):
        add_flow(db_session, wedding, AutomationTrigger.EVENT_DAY_MORNING, AutomationAction.SEND_TABLE_ASSIGNMENT)
        now = EVENT_AT - timedelta(hours=20)

        assert schedule_upcoming_event_triggers(db_session, now=now) == 1
        assert schedule_upcoming_event_triggers(db_session, now=now) == 0

        execution = db_session.query(AutomationFlowExecution).one()
        assert execution.guest_id == guest_by_name(db_session, "Bella").id
        assert execution.scheduled_for == datetime(2030, 6, 15, 6, 0)

    def test_cleanup_keeps_recent_and_pending(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE, AutomationAction.SEND_WHATSAPP_REMINDER,
                        delay_hours=24)
        now = datetime(2030, 7, 1)
        add_execution(db_session, flow, guest_by_name(db_session, "Avi"), status=ExecutionStatus.COMPLETED,
                      executed_at=now - timedelta(days=40))
        add_execution(db_session, flow, guest_by_name(db_session, "Bella"), status=ExecutionStatus.COMPLETED,
                      executed_at=now - timedelta(days=5))

        assert cleanup_old_executions(db_session, now=now) == 1
        assert db_session.query(AutomationFlowExecution).count() == 1

    def test_stats_per_flow(self, wedding, db_session):
        flow = add_flow(db_session, wedding, AutomationTrigger.NO_RESPONSE, AutomationAction.SEND_WHATSAPP_REMINDER,
                        delay_hours=24)
        add_execution(db_session, flow, guest_by_name(db_session, "Avi"))
        add_execution(db_session, flow, guest_by_name(db_session, "Bella"), status=ExecutionStatus.SKIPPED)

        stats = get_automation_stats(db_session, wedding.id)

        assert stats[0]["stats"] == {"total": 2, "pending": 1, "completed": 0, "failed": 0, "skipped": 1}

class TestActions:

    def context(self, db, event, name="Avi", **overrides):
        flow = SimpleNamespace(event=event, event_id=event.id, template_style=None,
                               custom_message=overrides.pop("custom_message", None))
        context = build_context(flow, guest_by_name(db, name))
        for key, value in overrides.items():
            setattr(context, key, value)
        return context

    def test_custom_variables(self, wedding, db_session):
        context = self.context(db_session, wedding, name="Bella")
        message = replace_message_variables("{guestName} x{guestCount} at {venue} on {eventDate} {unknown}", context)

        assert message == "Bella x2 at Beach Hall on 15.6.2030 {unknown}"

    @pytest.mark.asyncio
    async def test_custom_whatsapp_sends_body(self, wedding, db_session, twilio):
        context = self.context(db_session, wedding, custom_message="Hi {guestName}: {rsvpLink}")

        result = await execute_action(db_session, AutomationAction.SEND_CUSTOM_WHATSAPP, context, transport=twilio.transport)

        assert result.success is True
        assert twilio.sent[0]["Body"].startswith("Hi Avi: ")
        assert twilio.sent[0]["To"] == "whatsapp:+972584003578"

    @pytest.mark.asyncio
    async def test_test_guest_is_not_logged(self, wedding, db_session, twilio):
        context = self.context(db_session, wedding, custom_message="Hi", is_test=True)
        before = db_session.query(NotificationLog).count()

        await execute_action(db_session, AutomationAction.SEND_CUSTOM_WHATSAPP, context, transport=twilio.transport)

        assert db_session.query(NotificationLog).count() == before

    @pytest.mark.asyncio
    async def test_missing_phone(self, wedding, db_session, twilio):
        context = self.context(db_session, wedding, guest_phone=None)
        result = await execute_action(db_session, AutomationAction.SEND_WHATSAPP_REMINDER, context, transport=twilio.transport)

        assert result.error_code == "NO_PHONE"

    @pytest.mark.asyncio
    async def test_sms_disabled(self, wedding, db_session, twilio):
        context = self.context(db_session, wedding, custom_message="Hi")
        result = await execute_action(db_session, AutomationAction.SEND_CUSTOM_SMS, context, transport=twilio.transport)

        assert result.error_code == "SMS_DISABLED"

    @pytest.mark.asyncio
    async def test_invalid_account_sid(self, wedding, db_session, twilio):
        db_session.query(MessagingProviderSettings).one().whatsapp_api_key = "XX123"
        db_session.commit()
        context = self.context(db_session, wedding)

        result = await execute_action(db_session, AutomationAction.SEND_WHATSAPP_REMINDER, context, transport=twilio.transport)

        assert result.error_code == "INVALID_CREDENTIALS"
        assert twilio.sent == []

    @pytest.mark.asyncio
    async def test_image_invite_needs_image(self, wedding, db_session, twilio):
        db_session.add(WhatsAppTemplate(type=NotificationType.IMAGE_INVITE, content_sid="HXIMG"))
        db_session.commit()
        context = self.context(db_session, wedding)

        result = await execute_action(db_session, AutomationAction.SEND_WHATSAPP_IMAGE_INVITE, context,
                                      transport=twilio.transport)

        assert result.error_code == "NO_IMAGE"

    @pytest.mark.asyncio
    async def test_event_day_variables(self, wedding, db_session, twilio):
        db_session.add(WhatsAppTemplate(type=NotificationType.EVENT_DAY, content_sid="HXDAY"))
        table = WeddingTable(event_id=wedding.id, name="Table 7", capacity=10)
        db_session.add(table)
        db_session.flush()
        db_session.add(TableAssignment(table_id=table.id, guest_id=guest_by_name(db_session, "Bella").id))
        db_session.commit()
        context = self.context(db_session, wedding, name="Bella")

        result = await execute_action(db_session, AutomationAction.SEND_WHATSAPP_EVENT_DAY, context,
                                      transport=twilio.transport)

        variables = json.loads(twilio.sent[0]["ContentVariables"])
        assert result.success is True
        assert variables["3"] == "Table 7"
        assert variables["4"] == "Beach Hall, Tel Aviv"
        assert variables["5"] == "https://waze.com/ul?q=Tel%20Aviv&navigate=yes"

    @pytest.mark.asyncio
    async def test_unknown_action(self, wedding, db_session, twilio):
        result = await execute_action(db_session, "SEND_CARRIER_PIGEON", self.context(db_session, wedding),
                                      transport=twilio.transport)

        assert result.success is False
        assert result.error_code == "UNKNOWN_ACTION"
