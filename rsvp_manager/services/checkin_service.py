"""
Hostess check-in service with real-time broadcasting
"""

from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import Guest, GuestRsvp, WeddingEvent, WeddingTable, TableAssignment
from rsvp_manager.models.enums import RsvpStatus
from rsvp_manager.api.ws import WebSocketManager

def _party_size(guest: Guest) -> int:
    return guest.rsvp.guest_count if guest.rsvp and guest.rsvp.guest_count else 1

def _guest_payload(guest: Guest) -> Dict:
    assignment = guest.table_assignment
    arrived_at = guest.rsvp.arrived_at if guest.rsvp else None
    return {
        "id": guest.id,
        "name": guest.name,
        "guest_count": _party_size(guest),
        "side": guest.side,
        "group_name": guest.group_name,
        "table_id": assignment.table_id if assignment else None,
        "table_name": assignment.table.name if assignment else None,
        "arrived_at": arrived_at.isoformat() if arrived_at else None,
        "is_arrived": arrived_at is not None,
    }

class CheckInService:
    """Service for handling guest arrivals at the venue"""

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager

    @staticmethod
    def _active_guest(db: Session, event_id: int, guest_id: int) -> Guest:
        guest = db.query(Guest).filter(Guest.id == guest_id, Guest.event_id == event_id).first()
        if not guest:
            raise NotFoundError("Guest")
        if not guest.event.is_active:
            raise ValidationError("Event is not active")
        return guest

    @staticmethod
    def get_hostess_data(db: Session, event_id: int) -> Dict:
        """Accepted guests and tables with arrival counts"""
        event = db.query(WeddingEvent).filter(
            WeddingEvent.id == event_id,
            WeddingEvent.is_active == True
        ).first()
        if not event:
            raise NotFoundError("Event")

        guests = db.query(Guest).join(GuestRsvp).filter(
            Guest.event_id == event_id,
            GuestRsvp.status == RsvpStatus.ACCEPTED
        ).order_by(Guest.name).all()

        tables = []
        for table in db.query(WeddingTable).filter(WeddingTable.event_id == event_id).order_by(WeddingTable.name).all():
            seated = [assignment.guest for assignment in table.assignments]
            arrived = [g for g in seated if g.rsvp and g.rsvp.arrived_at]
            seats_used = sum(_party_size(g) for g in seated)
            tables.append({
                "id": table.id,
                "name": table.name,
                "capacity": table.capacity,
                "seats_used": seats_used,
                "seats_available": table.capacity - seats_used,
                "guest_count": len(seated),
                "arrived_count": len(arrived),
                "arrived_people_count": sum(_party_size(g) for g in arrived),
                "is_full": seats_used >= table.capacity,
                "guests": [_guest_payload(g) for g in seated],
            })

        return {
            "event": {
                "id": event.id,
                "title": event.title,
                "date_time": event.date_time.isoformat(),
                "location": event.location,
                "venue": event.venue,
            },
            "guests": [_guest_payload(g) for g in guests],
            "tables": tables,
            "stats": {
                "total_guests": len(guests),
                "arrived_guests": sum(1 for g in guests if g.rsvp.arrived_at),
                "total_expected": sum(_party_size(g) for g in guests),
                "tables_count": len(tables),
            },
        }

    async def mark_arrived(self, db: Session, event_id: int, guest_id: int) -> Optional[Dict]:
        """Mark a guest as arrived and broadcast the update"""
        guest = self._active_guest(db, event_id, guest_id)
        if not guest.rsvp:
            guest.rsvp = GuestRsvp(status=RsvpStatus.PENDING)

        was_arrived = guest.rsvp.arrived_at is not None
        guest.rsvp.arrived_at = datetime.utcnow()
        db.commit()
        db.refresh(guest)

        payload = _guest_payload(guest)
        await self.websocket_manager.broadcast_to_event(str(event_id), {
            "type": "checkin",
            "guest": payload,
            "timestamp": datetime.utcnow().isoformat(),
            "was_already_checked_in": was_arrived,
        })
        return {"guest": payload, "was_already_checked_in": was_arrived}

    async def unmark_arrived(self, db: Session, event_id: int, guest_id: int) -> Dict:
        guest = self._active_guest(db, event_id, guest_id)
        if guest.rsvp:
            guest.rsvp.arrived_at = None
            db.commit()
            db.refresh(guest)

        payload = _guest_payload(guest)
        await self.websocket_manager.broadcast_to_event(str(event_id), {
            "type": "checkin_undo",
            "guest": payload,
            "timestamp": datetime.utcnow().isoformat(),
        })
        return {"guest": payload}

    async def change_table(self, db: Session, event_id: int, guest_id: int, table_id: int) -> Dict:
        """Move a guest during the event from the hostess view"""
        guest = self._active_guest(db, event_id, guest_id)
        table = db.query(WeddingTable).filter(
            WeddingTable.id == table_id,
            WeddingTable.event_id == event_id
        ).first()
        if not table:
            raise NotFoundError("Table")

        if guest.table_assignment:
            guest.table_assignment.table_id = table.id
        else:
            db.add(TableAssignment(table_id=table.id, guest_id=guest.id))
        db.commit()
        db.refresh(guest)

        payload = _guest_payload(guest)
        await self.websocket_manager.broadcast_to_event(str(event_id), {
            "type": "seating_update",
            "guest": payload,
            "timestamp": datetime.utcnow().isoformat(),
        })
        return {"guest": payload, "table_name": table.name}
