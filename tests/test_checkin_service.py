"""
Tests for hostess check-in and live updates
"""

import json
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rsvp_manager.api.ws import WebSocketManager
from rsvp_manager.core.db import Base
from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import User, WeddingEvent, Guest, GuestRsvp, WeddingTable, TableAssignment
from rsvp_manager.models.enums import RsvpStatus
from rsvp_manager.services.checkin_service import CheckInService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_lookup.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class FakeWebSocket:
    """Records what the manager sends"""

    def __init__(self, fail=False):
        self.messages = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection closed")
        self.messages.append(json.loads(text))

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

@pytest.fixture
def sample_event_with_guests(db_session):
    """Create an event with two tables and accepted guests"""
    owner = User(email="owner@example.com", name="Owner", api_token="owner-token")
    db_session.add(owner)
    db_session.flush()

    event = WeddingEvent(owner_id=owner.id, title="Test Wedding", date_time=datetime(2030, 6, 15, 17, 0),
                         location="Tel Aviv")
    db_session.add(event)
    db_session.flush()

    table_a1 = WeddingTable(event_id=event.id, name="A1", capacity=6)
    table_b1 = WeddingTable(event_id=event.id, name="B1", capacity=4)
    db_session.add_all([table_a1, table_b1])
    db_session.flush()

    guests = [
        ("John Doe", RsvpStatus.ACCEPTED, 2, table_a1, None),
        ("Jane Smith", RsvpStatus.ACCEPTED, 3, table_a1, datetime(2030, 6, 15, 16, 30)),
        ("Bob Johnson", RsvpStatus.DECLINED, 0, None, None),
        ("Alice Brown", RsvpStatus.ACCEPTED, 1, table_b1, None),
    ]
    for name, status, count, table, arrived_at in guests:
        guest = Guest(event_id=event.id, name=name, slug=name.replace(" ", "").lower())
        guest.rsvp = GuestRsvp(status=status, guest_count=count, arrived_at=arrived_at)
        db_session.add(guest)
        db_session.flush()
        if table:
            db_session.add(TableAssignment(table_id=table.id, guest_id=guest.id))

    db_session.commit()
    db_session.refresh(event)
    return event

@pytest.fixture
def manager():
    return WebSocketManager()

def find_guest(db, name):
    return db.query(Guest).filter(Guest.name == name).first()

def test_hostess_data_lists_accepted_guests(db_session, sample_event_with_guests):
    """Test the hostess view only shows guests who are coming"""
    data = CheckInService.get_hostess_data(db_session, sample_event_with_guests.id)

    names = [guest["name"] for guest in data["guests"]]
    assert names == ["Alice Brown", "Jane Smith", "John Doe"]
    assert data["stats"] == {"total_guests": 3, "arrived_guests": 1, "total_expected": 6, "tables_count": 2}

def test_hostess_table_counts(db_session, sample_event_with_guests):
    """Test per-table seat and arrival counts"""
    data = CheckInService.get_hostess_data(db_session, sample_event_with_guests.id)

    table_a1 = next(t for t in data["tables"] if t["name"] == "A1")
    assert table_a1["seats_used"] == 5
    assert table_a1["seats_available"] == 1
    assert table_a1["arrived_count"] == 1
    assert table_a1["arrived_people_count"] == 3
    assert table_a1["is_full"] is False

def test_hostess_data_archived_event(db_session, sample_event_with_guests):
    """Test archived events have no hostess view"""
    sample_event_with_guests.is_active = False
    db_session.commit()

    with pytest.raises(NotFoundError):
        CheckInService.get_hostess_data(db_session, sample_event_with_guests.id)

@pytest.mark.asyncio
async def test_mark_arrived_broadcasts(db_session, sample_event_with_guests, manager):
    """Test arrival is stored and pushed to the event's room"""
    socket = FakeWebSocket()
    room = str(sample_event_with_guests.id)
    await manager.connect(socket, room)
    john = find_guest(db_session, "John Doe")

    result = await CheckInService(manager).mark_arrived(db_session, sample_event_with_guests.id, john.id)

    assert result["was_already_checked_in"] is False
    assert result["guest"]["is_arrived"] is True
    assert socket.messages[0]["type"] == "checkin"
    assert socket.messages[0]["guest"]["table_name"] == "A1"

@pytest.mark.asyncio
async def test_mark_arrived_twice(db_session, sample_event_with_guests, manager):
    """Test a second scan reports the earlier check-in"""
    jane = find_guest(db_session, "Jane Smith")

    result = await CheckInService(manager).mark_arrived(db_session, sample_event_with_guests.id, jane.id)
    assert result["was_already_checked_in"] is True

@pytest.mark.asyncio
async def test_unmark_arrived(db_session, sample_event_with_guests, manager):
    jane = find_guest(db_session, "Jane Smith")

    result = await CheckInService(manager).unmark_arrived(db_session, sample_event_with_guests.id, jane.id)

    assert result["guest"]["arrived_at"] is None
    db_session.refresh(jane)
    assert jane.rsvp.arrived_at is None

@pytest.mark.asyncio
async def test_change_table(db_session, sample_event_with_guests, manager):
    """Test moving a guest to another table from the hostess view"""
    john = find_guest(db_session, "John Doe")
    table_b1 = db_session.query(WeddingTable).filter(WeddingTable.name == "B1").first()

    result = await CheckInService(manager).change_table(db_session, sample_event_with_guests.id, john.id, table_b1.id)

    assert result["table_name"] == "B1"
    assert result["guest"]["table_id"] == table_b1.id

@pytest.mark.asyncio
async def test_change_table_seats_unassigned_guest(db_session, sample_event_with_guests, manager):
    bob = find_guest(db_session, "Bob Johnson")
    table_b1 = db_session.query(WeddingTable).filter(WeddingTable.name == "B1").first()

    await CheckInService(manager).change_table(db_session, sample_event_with_guests.id, bob.id, table_b1.id)

    assert db_session.query(TableAssignment).filter(TableAssignment.guest_id == bob.id).one().table_id == table_b1.id

@pytest.mark.asyncio
async def test_unknown_guest_or_table(db_session, sample_event_with_guests, manager):
    service = CheckInService(manager)
    john = find_guest(db_session, "John Doe")

    with pytest.raises(NotFoundError):
        await service.mark_arrived(db_session, sample_event_with_guests.id, 9999)
    with pytest.raises(NotFoundError):
        await service.change_table(db_session, sample_event_with_guests.id, john.id, 9999)

@pytest.mark.asyncio
async def test_inactive_event_rejects_checkin(db_session, sample_event_with_guests, manager):
    sample_event_with_guests.is_active = False
    db_session.commit()
    john = find_guest(db_session, "John Doe")

    with pytest.raises(ValidationError):
        await CheckInService(manager).mark_arrived(db_session, sample_event_with_guests.id, john.id)

@pytest.mark.asyncio
async def test_broken_connection_is_dropped(manager):
    """Test a socket that fails on send is removed from its room"""
    good, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    await manager.connect(good, "1")
    await manager.connect(broken, "1")

    await manager.broadcast_to_event("1", {"type": "ping"})

    assert good.messages == [{"type": "ping"}]
    assert manager.get_connection_count("1") == 1
