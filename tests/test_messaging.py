"""
Tests for single-guest messaging, quotas, message templates and bulk jobs
"""

import httpx
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rsvp_manager.core.db import Base
from rsvp_manager.core.exceptions import NotFoundError, PlanLimitError, ValidationError
from rsvp_manager.models import (
    User, WeddingEvent, Guest, GuestRsvp, NotificationLog, AutomationFlow, AutomationFlowExecution, MessageTemplate,
    MessagingProviderSettings
)
from rsvp_manager.models.enums import (
    AutomationAction, AutomationTrigger, BulkItemStatus, BulkJobStatus, FlowStatus, NotificationChannel,
    NotificationStatus, NotificationType, PlanTier, RsvpStatus
)
from rsvp_manager.schemas.notification import MessageTemplateUpsert
from rsvp_manager.services import bulk_messaging
from rsvp_manager.services.bulk_messaging import BulkMessagingService, backoff_for
from rsvp_manager.services.messaging_service import MessagingService
from rsvp_manager.services.notifications import notification_factory
from rsvp_manager.services.notifications.types import NotificationResult, NotificationService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_messaging.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2030, 6, 1, 12, 0)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    notification_factory.invalidate()
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        notification_factory.invalidate()

@pytest.fixture
def event(db_session):
    """Event on the basic plan with three guests, one without a phone"""
    owner = User(email="owner@example.com", name="Owner", api_token="owner-token", plan=PlanTier.BASIC)
    db_session.add(owner)
    db_session.flush()
    event = WeddingEvent(owner_id=owner.id, title="Dana & Noam", date_time=datetime(2030, 6, 15, 17, 0),
                         location="Tel Aviv")
    db_session.add(event)
    db_session.flush()

    for name, phone, status in (
        ("Avi", "0521112222", RsvpStatus.PENDING),
        ("Bella", "0523334444", RsvpStatus.ACCEPTED),
        ("Chen", None, RsvpStatus.PENDING),
    ):
        guest = Guest(event_id=event.id, name=name, phone_number=phone, slug=name.lower())
        guest.rsvp = GuestRsvp(status=status)
        db_session.add(guest)

    db_session.commit()
    db_session.refresh(event)
    return event

def guest_by_name(db, name):
    return db.query(Guest).filter(Guest.name == name).first()

def configure_sms_only(db):
    db.add(MessagingProviderSettings(
        sms_enabled=True,
        sms_provider="twilio",
        sms_api_key="AC123",
        sms_api_secret="secret",
        sms_phone_number="+15550002222",
    ))
    db.commit()
    notification_factory.invalidate()

def twilio_accepts(sent):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(201, json={"sid": f"SM{len(sent)}", "status": "queued"})
    return httpx.MockTransport(handler)

def failed(channel=NotificationChannel.WHATSAPP):
    return NotificationResult(success=False, channel=channel, status=NotificationStatus.FAILED, error="Twilio down")

class FailingService(NotificationService):
    """Every send fails"""

    async def send_invite(self, guest, event, preferred_channel=None):
        return failed()

    async def send_reminder(self, guest, event, preferred_channel=None):
        return failed()

    async def send_confirmation(self, guest, event, status, preferred_channel=None):
        return failed()

    async def send_interactive_invite(self, guest, event, include_image=True):
        return failed()

    async def send_interactive_reminder(self, guest, event, include_image=True):
        return failed()

class TestSendToGuest:

    @pytest.mark.asyncio
    async def test_send_logs_and_counts_usage(self, event, db_session):
        avi = guest_by_name(db_session, "Avi")

        result = await MessagingService.send_to_guest(db_session, event, avi.id)

        assert result.success is True
        log = db_session.query(NotificationLog).one()
        assert log.type == NotificationType.INVITE
        assert log.sent_at is not None
        db_session.refresh(event.owner)
        assert event.owner.whatsapp_sent == 1

    @pytest.mark.asyncio
    async def test_invite_schedules_no_response_flow(self, event, db_session):
        db_session.add(AutomationFlow(event_id=event.id, name="Chaser", trigger=AutomationTrigger.NO_RESPONSE_WHATSAPP,
                                      action=AutomationAction.SEND_WHATSAPP_REMINDER, status=FlowStatus.ACTIVE,
                                      delay_hours=24))
        db_session.commit()

        await MessagingService.send_to_guest(db_session, event, guest_by_name(db_session, "Avi").id)

        execution = db_session.query(AutomationFlowExecution).one()
        assert execution.scheduled_for > datetime.utcnow() + timedelta(hours=23)

    @pytest.mark.asyncio
    async def test_free_plan_has_no_whatsapp_quota(self, event, db_session):
        event.owner.plan = PlanTier.FREE
        db_session.commit()

        with pytest.raises(PlanLimitError) as exc_info:
            await MessagingService.send_to_guest(db_session, event, guest_by_name(db_session, "Avi").id)
        assert exc_info.value.details["channel"] == "WHATSAPP"

    @pytest.mark.asyncio
    async def test_sms_quota_checked_separately(self, event, db_session):
        with pytest.raises(PlanLimitError):
            await MessagingService.send_to_guest(db_session, event, guest_by_name(db_session, "Avi").id,
                                                 NotificationType.REMINDER, NotificationChannel.SMS)

    @pytest.mark.asyncio
    async def test_sms_only_provider_uses_sms_quota(self, event, db_session, monkeypatch):
        configure_sms_only(db_session)
        sent = []
        monkeypatch.setattr(notification_factory, "transport", twilio_accepts(sent))

        with pytest.raises(PlanLimitError) as exc_info:
            await MessagingService.send_to_guest(db_session, event, guest_by_name(db_session, "Avi").id)

        assert exc_info.value.details["channel"] == "SMS"
        assert sent == []
        assert db_session.query(NotificationLog).count() == 0
        db_session.refresh(event.owner)
        assert event.owner.sms_sent == 0

    @pytest.mark.asyncio
    async def test_sms_only_provider_sends_sms_within_quota(self, event, db_session, monkeypatch):
        event.owner.plan = PlanTier.ADVANCED
        configure_sms_only(db_session)
        sent = []
        monkeypatch.setattr(notification_factory, "transport", twilio_accepts(sent))

        result = await MessagingService.send_to_guest(db_session, event, guest_by_name(db_session, "Avi").id)

        assert result.success is True
        assert result.channel == NotificationChannel.SMS
        assert len(sent) == 1
        db_session.refresh(event.owner)
        assert event.owner.sms_sent == 1
        assert event.owner.whatsapp_sent == 0

    @pytest.mark.asyncio
    async def test_unsupported_type(self, event, db_session):
        with pytest.raises(ValidationError):
            await MessagingService.send_to_guest(db_session, event, guest_by_name(db_session, "Avi").id,
                                                 NotificationType.THANK_YOU)

    @pytest.mark.asyncio
    async def test_unknown_guest(self, event, db_session):
        with pytest.raises(NotFoundError):
            await MessagingService.send_to_guest(db_session, event, 9999)

    def test_usage(self, event, db_session):
        event.owner.whatsapp_sent = 50
        event.owner.whatsapp_bonus = 100

        usage = MessagingService.get_usage(event.owner)

        assert usage["plan"] == "BASIC"
        assert usage["whatsapp"]["remaining"] == 700
        assert usage["sms"]["remaining"] == 0

class TestMessageTemplates:

    def test_upsert_replaces_existing(self, event, db_session):
        data = MessageTemplateUpsert(type=NotificationType.INVITE, title="Invite", message="Hi {{guestName}}")
        MessagingService.upsert_template(db_session, event, data)
        MessagingService.upsert_template(db_session, event, MessageTemplateUpsert(
            type=NotificationType.INVITE, title="Invite", message="Hello {{guestName}}"
        ))

        templates = MessagingService.list_templates(db_session, event.id)
        assert len(templates) == 1
        assert templates[0]["message"] == "Hello {{guestName}}"
        assert db_session.query(MessageTemplate).count() == 1

    def test_locales_are_separate(self, event, db_session):
        for locale in ("he", "en"):
            MessagingService.upsert_template(db_session, event, MessageTemplateUpsert(
                type=NotificationType.REMINDER, locale=locale, title="R", message="..."
            ))
        assert [t["locale"] for t in MessagingService.list_templates(db_session, event.id)] == ["en", "he"]

class TestBulkJobs:

    def test_backoff_grows_and_caps(self):
        assert backoff_for(1) == timedelta(seconds=5)
        assert backoff_for(2) == timedelta(seconds=15)
        assert backoff_for(7) == timedelta(seconds=60)

    def test_invites_skip_guests_without_phone_or_already_invited(self, event, db_session):
        db_session.add(NotificationLog(guest_id=guest_by_name(db_session, "Bella").id, type=NotificationType.INVITE,
                                       channel=NotificationChannel.WHATSAPP, status=NotificationStatus.SENT))
        db_session.commit()

        guests = BulkMessagingService.eligible_guests(db_session, event.id, NotificationType.INVITE)
        assert [g.name for g in guests] == ["Avi"]

    def test_reminders_only_reach_pending_guests(self, event, db_session):
        guests = BulkMessagingService.eligible_guests(db_session, event.id, NotificationType.REMINDER)
        assert [g.name for g in guests] == ["Avi"]

    def test_create_job_rejects_other_types(self, event, db_session):
        with pytest.raises(ValidationError):
            BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.CONFIRMATION)

    def test_create_job_without_eligible_guests(self, event, db_session):
        with pytest.raises(ValidationError):
            BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE,
                                            guest_ids=[guest_by_name(db_session, "Chen").id])

    @pytest.mark.asyncio
    async def test_process_sends_everything(self, event, db_session):
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)
        assert job.total == 2

        result = await BulkMessagingService.process_job(db_session, job.id, now=NOW)

        db_session.refresh(job)
        assert result == {"processed": 2, "success": 2, "failed": 0, "is_complete": True}
        assert job.status == BulkJobStatus.COMPLETED
        assert job.success_count == 2
        assert job.started_at == NOW

    @pytest.mark.asyncio
    async def test_process_in_chunks(self, event, db_session):
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)

        first = await BulkMessagingService.process_job(db_session, job.id, chunk_size=1, now=NOW)
        db_session.refresh(job)
        assert first["is_complete"] is False
        assert job.status == BulkJobStatus.PROCESSING
        assert job.processed == 1

        second = await BulkMessagingService.process_job(db_session, job.id, chunk_size=1, now=NOW)
        assert second["is_complete"] is True

    @pytest.mark.asyncio
    async def test_failed_items_back_off_then_fail(self, event, db_session, monkeypatch):
        monkeypatch.setattr(bulk_messaging, "get_notification_service", lambda db: FailingService())
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.REMINDER)
        item = job.items[0]

        await BulkMessagingService.process_job(db_session, job.id, now=NOW)
        db_session.refresh(item)
        assert item.status == BulkItemStatus.PENDING
        assert item.attempts == 1
        assert item.next_attempt_at == NOW + timedelta(seconds=5)
        assert item.last_error == "Twilio down"

        waiting = await BulkMessagingService.process_job(db_session, job.id, now=NOW + timedelta(seconds=1))
        assert waiting["processed"] == 0

        await BulkMessagingService.process_job(db_session, job.id, now=NOW + timedelta(seconds=10))
        last = await BulkMessagingService.process_job(db_session, job.id, now=NOW + timedelta(minutes=5))

        db_session.refresh(item)
        db_session.refresh(job)
        assert item.status == BulkItemStatus.FAILED
        assert item.attempts == 3
        assert last["is_complete"] is True
        assert job.failed_count == 1
        assert event.owner.whatsapp_sent == 0

    @pytest.mark.asyncio
    async def test_exhausted_quota_fails_items(self, event, db_session):
        event.owner.whatsapp_sent = 650
        db_session.commit()
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)

        result = await BulkMessagingService.process_job(db_session, job.id, now=NOW)

        assert result["failed"] == 2
        assert result["is_complete"] is True
        assert all(item.last_error == "WHATSAPP message limit reached" for item in job.items)
        assert db_session.query(NotificationLog).count() == 0

    @pytest.mark.asyncio
    async def test_sms_only_provider_fails_items_without_sms_quota(self, event, db_session, monkeypatch):
        configure_sms_only(db_session)
        sent = []
        monkeypatch.setattr(notification_factory, "transport", twilio_accepts(sent))
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)

        result = await BulkMessagingService.process_job(db_session, job.id, now=NOW)

        assert result["failed"] == 2
        assert all(item.last_error == "SMS message limit reached" for item in job.items)
        assert sent == []
        db_session.refresh(event.owner)
        assert event.owner.sms_sent == 0

    @pytest.mark.asyncio
    async def test_cancel(self, event, db_session):
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)

        BulkMessagingService.cancel_job(db_session, event.id, job.id)
        with pytest.raises(ValidationError):
            BulkMessagingService.cancel_job(db_session, event.id, job.id)

        result = await BulkMessagingService.process_job(db_session, job.id, now=NOW)
        assert result == {"processed": 0, "success": 0, "failed": 0, "is_complete": True}

    def test_job_of_other_event_not_found(self, event, db_session):
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)
        with pytest.raises(NotFoundError):
            BulkMessagingService.get_job(db_session, event.id + 1, job.id)

    @pytest.mark.asyncio
    async def test_process_pending_jobs(self, event, db_session):
        job = BulkMessagingService.create_job(db_session, event, event.owner, NotificationType.INVITE)

        results = await BulkMessagingService.process_pending_jobs(db_session, now=NOW)

        assert len(results) == 1
        assert results[0]["job_id"] == job.id
        db_session.refresh(job)
        payload = BulkMessagingService.job_payload(job)
        assert payload["status"] == "COMPLETED"
