"""
Seating chart service: tables, assignments, statistics and auto-arrangement
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import Guest, WeddingTable, TableAssignment
from rsvp_manager.models.enums import RsvpStatus
from rsvp_manager.schemas.seating import TableCreate, TableUpdate, AutoArrangeRequest
from rsvp_manager.services.seat_calculator import calculate_seat_positions, seat_relative_to_absolute

logger = logging.getLogger(__name__)

STATUS_ORDER = {RsvpStatus.ACCEPTED: 0, RsvpStatus.PENDING: 1, RsvpStatus.DECLINED: 2}

SIDE_LABELS = {"bride": "Bride", "groom": "Groom", "both": "Both", "other": "Other"}
GROUP_LABELS = {"family": "Family", "friends": "Friends", "work": "Work", "other": "Other"}

def get_seats_used(guest: Guest) -> int:
    """Seats a guest's party takes: confirmed count, the estimate while pending, none when declined"""
    rsvp = guest.rsvp
    if rsvp and rsvp.status == RsvpStatus.DECLINED:
        return 0
    if rsvp and rsvp.status == RsvpStatus.ACCEPTED:
        return rsvp.guest_count or 1
    return guest.expected_guests or 1

def _arrangement_label(group: str, side: Optional[str]) -> str:
    label = GROUP_LABELS.get(group.lower(), group)
    if side is None:
        return label
    return f"{label} - {SIDE_LABELS.get(side.lower(), side)}"

class SeatingService:
    """Service for seating arrangement operations"""

    # -------- Tables --------

    @staticmethod
    def get_table(db: Session, event_id: int, table_id: int) -> WeddingTable:
        table = db.query(WeddingTable).filter(
            WeddingTable.id == table_id,
            WeddingTable.event_id == event_id
        ).first()
        if not table:
            raise NotFoundError("Table")
        return table

    @staticmethod
    def create_table(db: Session, event_id: int, data: TableCreate) -> WeddingTable:
        table = WeddingTable(event_id=event_id, **data.dict())
        db.add(table)
        db.commit()
        db.refresh(table)
        logger.info(f"Created table {table.id} '{table.name}' for event {event_id}")
        return table

    @staticmethod
    def update_table(db: Session, event_id: int, table_id: int, data: TableUpdate) -> WeddingTable:
        table = SeatingService.get_table(db, event_id, table_id)
        for field, value in data.dict(exclude_unset=True).items():
            if value is not None:
                setattr(table, field, value)
        db.commit()
        db.refresh(table)
        return table

    @staticmethod
    def delete_table(db: Session, event_id: int, table_id: int):
        table = SeatingService.get_table(db, event_id, table_id)
        db.delete(table)
        db.commit()
        logger.info(f"Deleted table {table_id} from event {event_id}")

    @staticmethod
    def table_summary(table: WeddingTable, include_seats: bool = False) -> Dict:
        seats_used = sum(get_seats_used(assignment.guest) for assignment in table.assignments)
        summary = {
            "id": table.id,
            "name": table.name,
            "capacity": table.capacity,
            "shape": table.shape,
            "seating_arrangement": table.seating_arrangement,
            "position_x": table.position_x,
            "position_y": table.position_y,
            "width": table.width,
            "height": table.height,
            "rotation": table.rotation,
            "color": table.color,
            "seats_used": seats_used,
            "seats_available": table.capacity - seats_used,
            "guests": [
                {
                    "id": assignment.guest.id,
                    "name": assignment.guest.name,
                    "seat_number": assignment.seat_number,
                    "seats": get_seats_used(assignment.guest),
                    "rsvp_status": assignment.guest.rsvp_status.value,
                }
                for assignment in table.assignments
            ],
        }
        if include_seats:
            summary["seats"] = SeatingService.get_table_seats(table)
        return summary

    @staticmethod
    def get_event_tables(db: Session, event_id: int, include_seats: bool = False) -> List[Dict]:
        tables = db.query(WeddingTable).filter(
            WeddingTable.event_id == event_id
        ).order_by(WeddingTable.created_at, WeddingTable.id).all()
        return [SeatingService.table_summary(table, include_seats) for table in tables]

    @staticmethod
    def get_table_seats(table: WeddingTable) -> List[Dict]:
        """Seat positions of a table on the floor plan"""
        seats = []
        for seat in calculate_seat_positions(table.shape, table.capacity, table.seating_arrangement):
            x, y = seat_relative_to_absolute(
                seat.x, seat.y,
                table.position_x, table.position_y,
                table.width, table.height,
                table.rotation,
            )
            data = seat.to_dict()
            data.update({"absolute_x": x, "absolute_y": y})
            seats.append(data)
        return seats

    # -------- Assignments --------

    @staticmethod
    def _event_guests(db: Session, event_id: int, guest_ids: List[int]) -> List[Guest]:
        guests = db.query(Guest).filter(Guest.id.in_(guest_ids), Guest.event_id == event_id).all()
        if len(guests) != len(set(guest_ids)):
            raise ValidationError("Some guests not found or don't belong to this event")
        return guests

    @staticmethod
    def assign_guests(db: Session, event_id: int, table_id: int, guest_ids: List[int]) -> Dict:
        """Seat guests at a table, moving them from any previous table"""
        table = SeatingService.get_table(db, event_id, table_id)
        guests = SeatingService._event_guests(db, event_id, guest_ids)

        current = sum(
            get_seats_used(assignment.guest)
            for assignment in table.assignments
            if assignment.guest_id not in guest_ids
        )
        needed = sum(get_seats_used(guest) for guest in guests)
        capacity_warning = current + needed > table.capacity

        db.query(TableAssignment).filter(TableAssignment.guest_id.in_(guest_ids)).delete(synchronize_session=False)
        for guest in guests:
            db.add(TableAssignment(table_id=table.id, guest_id=guest.id))
        db.commit()

        if capacity_warning:
            logger.warning(f"Table {table.id} over capacity: {current + needed}/{table.capacity}")
        return {"assigned": len(guests), "capacity_warning": capacity_warning}

    @staticmethod
    def move_guest(db: Session, event_id: int, guest_id: int, table_id: int, seat_number: Optional[int] = None) -> Dict:
        table = SeatingService.get_table(db, event_id, table_id)
        SeatingService._event_guests(db, event_id, [guest_id])

        db.query(TableAssignment).filter(TableAssignment.guest_id == guest_id).delete(synchronize_session=False)
        db.add(TableAssignment(table_id=table.id, guest_id=guest_id, seat_number=seat_number))
        db.commit()
        return {"guest_id": guest_id, "table_id": table.id, "table_name": table.name}

    @staticmethod
    def remove_guests(db: Session, event_id: int, guest_ids: List[int]) -> int:
        event_table_ids = select(WeddingTable.id).where(WeddingTable.event_id == event_id)
        removed = db.query(TableAssignment).filter(
            TableAssignment.guest_id.in_(guest_ids),
            TableAssignment.table_id.in_(event_table_ids)
        ).delete(synchronize_session=False)
        db.commit()
        if not removed:
            raise NotFoundError("Assignment")
        return removed

    @staticmethod
    def get_unseated_guests(db: Session, event_id: int) -> List[Dict]:
        guests = db.query(Guest).outerjoin(TableAssignment).filter(
            Guest.event_id == event_id,
            TableAssignment.id.is_(None)
        ).order_by(Guest.name).all()
        return [
            {
                "id": guest.id,
                "name": guest.name,
                "side": guest.side,
                "group_name": guest.group_name,
                "rsvp_status": guest.rsvp_status.value,
                "seats_needed": get_seats_used(guest),
            }
            for guest in guests
        ]

    @staticmethod
    def get_seating_stats(db: Session, event_id: int) -> Dict:
        tables = db.query(WeddingTable).filter(WeddingTable.event_id == event_id).all()
        guests = db.query(Guest).filter(Guest.event_id == event_id).all()

        seated = [guest for guest in guests if guest.table_assignment]
        unseated = [guest for guest in guests if not guest.table_assignment]
        total_capacity = sum(table.capacity for table in tables)
        seated_party = sum(get_seats_used(guest) for guest in seated)

        return {
            "total_tables": len(tables),
            "total_capacity": total_capacity,
            "seated_guests_count": len(seated),
            "unseated_guests_count": len(unseated),
            "seated_by_party_size": seated_party,
            "unseated_by_party_size": sum(get_seats_used(guest) for guest in unseated),
            "capacity_used": seated_party,
            "capacity_remaining": total_capacity - seated_party,
        }

    # -------- Auto arrangement --------

    @staticmethod
    def auto_arrange(db: Session, event_id: int, options: AutoArrangeRequest) -> Dict:
        """Replace the event's tables with tables filled group by group"""
        query = db.query(Guest).filter(Guest.event_id == event_id)
        if options.sides:
            query = query.filter(Guest.side.in_(options.sides))
        if options.groups:
            query = query.filter(Guest.group_name.in_(options.groups))

        statuses = set(options.rsvp_statuses)
        guests = [guest for guest in query.all() if guest.rsvp_status in statuses]
        if not guests:
            raise ValidationError("No guests match the selected filters")

        guests.sort(key=lambda g: (
            (g.group_name or "zzz_other").lower(),
            (g.side or "zzz_other").lower(),
            STATUS_ORDER[g.rsvp_status],
            g.name.lower(),
        ))

        for table in db.query(WeddingTable).filter(WeddingTable.event_id == event_id).all():
            db.delete(table)
        db.flush()

        groups: Dict[Tuple[str, Optional[str]], List[Guest]] = {}
        for guest in guests:
            group = guest.group_name or "other"
            side = (guest.side or "other") if options.group_by_side else None
            groups.setdefault((group, side), []).append(guest)

        table_number = 1
        guests_seated = 0
        for (group, side), members in groups.items():
            label = _arrangement_label(group, side)
            index = 0
            while index < len(members):
                seats_used = 0
                batch = []
                while index < len(members) and seats_used < options.table_size:
                    seats = get_seats_used(members[index])
                    # A party larger than the table still gets an empty table of its own
                    if seats_used + seats <= options.table_size or not batch:
                        batch.append(members[index])
                        seats_used += seats
                        index += 1
                    else:
                        break

                table = WeddingTable(
                    event_id=event_id,
                    name=f"{table_number} - {label}",
                    capacity=options.table_size,
                    shape=options.table_shape,
                )
                db.add(table)
                db.flush()
                for guest in batch:
                    db.add(TableAssignment(table_id=table.id, guest_id=guest.id))

                guests_seated += len(batch)
                table_number += 1

        db.commit()
        tables_created = table_number - 1
        logger.info(f"Auto-arranged event {event_id}: {tables_created} tables, {guests_seated} guests")
        return {"tables_created": tables_created, "guests_seated": guests_seated}
