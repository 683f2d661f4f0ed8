"""
Tests for event management and collaborators
"""

import pytest
from datetime import datetime, timezone, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rsvp_manager.core.db import Base
from rsvp_manager.core.exceptions import NotFoundError, PermissionDeniedError, PlanLimitError, ValidationError
from rsvp_manager.models import User, Guest, GuestRsvp
from rsvp_manager.models.enums import CollaboratorRole, PlanTier, RsvpStatus, UserRole
from rsvp_manager.schemas.event import EventCreate, EventUpdate
from rsvp_manager.services.collaborator_service import CollaboratorService
from rsvp_manager.services.event_service import EventService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_events.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

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

def add_user(db, key, plan=PlanTier.FREE, role=UserRole.ROLE_WEDDING_OWNER):
    user = User(email=f"{key}@example.com", name=key.title(), api_token=f"{key}-token", plan=plan, role=role)
    db.add(user)
    db.commit()
    return user

def event_data(title="Dana & Noam", **overrides):
    values = {"title": title, "date_time": datetime(2030, 6, 15, 17, 0), "location": "Tel Aviv"}
    values.update(overrides)
    return EventCreate(**values)

@pytest.fixture
def owner(db_session):
    return add_user(db_session, "owner")

class TestEvents:

    def test_create_event(self, owner, db_session):
        event = EventService.create_event(db_session, owner, event_data(venue="Beach Hall"))

        assert event.owner_id == owner.id
        assert event.venue == "Beach Hall"
        assert event.is_active is True
        assert event.archived_at is None

    def test_aware_datetime_stored_as_utc(self, owner, db_session):
        local = datetime(2030, 6, 15, 20, 0, tzinfo=timezone(timedelta(hours=3)))
        event = EventService.create_event(db_session, owner, event_data(date_time=local))

        assert event.date_time == datetime(2030, 6, 15, 17, 0)

    def test_free_plan_allows_one_event(self, owner, db_session):
        EventService.create_event(db_session, owner, event_data())

        with pytest.raises(PlanLimitError) as exc_info:
            EventService.create_event(db_session, owner, event_data("Second"))
        assert exc_info.value.details == {"limit": 1, "current": 1}

    def test_platform_owner_has_no_event_limit(self, db_session):
        admin = add_user(db_session, "admin", role=UserRole.ROLE_PLATFORM_OWNER)
        for title in ("One", "Two", "Three"):
            EventService.create_event(db_session, admin, event_data(title))
        assert len(EventService.list_user_events(db_session, admin)) == 3

    def test_update_skips_unset_fields(self, owner, db_session):
        event = EventService.create_event(db_session, owner, event_data(venue="Beach Hall"))

        EventService.update_event(db_session, event, EventUpdate(title="Dana & Noam 2030"))

        assert event.title == "Dana & Noam 2030"
        assert event.venue == "Beach Hall"

    def test_archive_frees_the_plan_slot(self, owner, db_session):
        event = EventService.create_event(db_session, owner, event_data())
        EventService.archive_event(db_session, event)

        assert event.is_active is False
        with pytest.raises(ValidationError):
            EventService.archive_event(db_session, event)

        second = EventService.create_event(db_session, owner, event_data("Second"))
        assert second.id != event.id
        assert EventService.list_user_events(db_session, owner) == [second]
        assert len(EventService.list_user_events(db_session, owner, include_archived=True)) == 2

    def test_restore_respects_event_limit(self, owner, db_session):
        event = EventService.create_event(db_session, owner, event_data())
        EventService.archive_event(db_session, event)
        EventService.create_event(db_session, owner, event_data("Second"))

        with pytest.raises(PlanLimitError):
            EventService.restore_event(db_session, owner, event)

        owner.plan = PlanTier.PREMIUM
        db_session.commit()
        restored = EventService.restore_event(db_session, owner, event)
        assert restored.archived_at is None
        assert restored.is_active is True

    def test_restore_live_event_rejected(self, owner, db_session):
        event = EventService.create_event(db_session, owner, event_data())
        with pytest.raises(ValidationError):
            EventService.restore_event(db_session, owner, event)

    def test_payload_stats(self, owner, db_session):
        event = EventService.create_event(db_session, owner, event_data())
        for name, status, count in (("Avi", RsvpStatus.ACCEPTED, 3), ("Bella", RsvpStatus.DECLINED, 0), ("Chen", None, 0)):
            guest = Guest(event_id=event.id, name=name, slug=name.lower())
            if status:
                guest.rsvp = GuestRsvp(status=status, guest_count=count)
            db_session.add(guest)
        db_session.commit()
        db_session.refresh(event)

        payload = EventService.event_payload(event, role="owner")

        assert payload["role"] == "owner"
        assert payload["date_time"] == "2030-06-15T17:00:00"
        assert payload["stats"] == {"total": 3, "pending": 1, "accepted": 1, "declined": 1, "total_guest_count": 3}

class TestCollaborators:

    @pytest.fixture
    def event(self, owner, db_session):
        return EventService.create_event(db_session, owner, event_data())

    def test_invite_and_accept(self, event, owner, db_session):
        friend = add_user(db_session, "friend")

        collaborator = CollaboratorService.invite(db_session, event, owner, "FRIEND@example.com", CollaboratorRole.EDITOR)
        assert collaborator.accepted_at is None
        assert EventService.list_user_events(db_session, friend) == []

        CollaboratorService.accept(db_session, friend, event.id)
        assert [e.id for e in EventService.list_user_events(db_session, friend)] == [event.id]

    def test_accept_is_idempotent(self, event, owner, db_session):
        friend = add_user(db_session, "friend")
        CollaboratorService.invite(db_session, event, owner, friend.email)

        first = CollaboratorService.accept(db_session, friend, event.id).accepted_at
        second = CollaboratorService.accept(db_session, friend, event.id).accepted_at
        assert first == second

    def test_accept_without_invitation(self, event, db_session):
        with pytest.raises(NotFoundError):
            CollaboratorService.accept(db_session, add_user(db_session, "friend"), event.id)

    def test_invite_unknown_user(self, event, owner, db_session):
        with pytest.raises(NotFoundError):
            CollaboratorService.invite(db_session, event, owner, "nobody@example.com")

    def test_invite_owner_or_twice_rejected(self, event, owner, db_session):
        friend = add_user(db_session, "friend")
        CollaboratorService.invite(db_session, event, owner, friend.email)

        with pytest.raises(ValidationError):
            CollaboratorService.invite(db_session, event, owner, owner.email)
        with pytest.raises(ValidationError):
            CollaboratorService.invite(db_session, event, owner, friend.email)

    def test_update_role_and_list(self, event, owner, db_session):
        friend = add_user(db_session, "friend")
        collaborator = CollaboratorService.invite(db_session, event, owner, friend.email)

        CollaboratorService.update_role(db_session, event, collaborator.id, CollaboratorRole.EDITOR)
        listing = CollaboratorService.list_collaborators(db_session, event)

        assert listing["owner"]["email"] == "owner@example.com"
        assert listing["collaborators"][0]["role"] == "EDITOR"
        assert listing["collaborators"][0]["accepted_at"] is None

    def test_collaborators_can_only_remove_themselves(self, event, owner, db_session):
        first = add_user(db_session, "first")
        second = add_user(db_session, "second")
        first_link = CollaboratorService.invite(db_session, event, owner, first.email)
        second_link = CollaboratorService.invite(db_session, event, owner, second.email)

        with pytest.raises(PermissionDeniedError):
            CollaboratorService.remove(db_session, first, event, second_link.id)

        CollaboratorService.remove(db_session, first, event, first_link.id)
        CollaboratorService.remove(db_session, owner, event, second_link.id)
        assert CollaboratorService.list_collaborators(db_session, event)["collaborators"] == []

    def test_remove_unknown_collaborator(self, event, owner, db_session):
        with pytest.raises(NotFoundError):
            CollaboratorService.remove(db_session, owner, event, 999)
