"""
Guest list management: creation, duplicate phone detection and bulk operations
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.core.exceptions import NotFoundError, PlanLimitError, ValidationError
from rsvp_manager.models import Guest, GuestRsvp, WeddingEvent
from rsvp_manager.models.enums import RsvpStatus
from rsvp_manager.schemas.guest import GuestCreate, GuestUpdate
from rsvp_manager.services.plans import can_add_guests, get_plan_limits
from rsvp_manager.services.repositories import GuestRepo
from rsvp_manager.services.notifications.phone_formatter import format_to_e164

logger = logging.getLogger(__name__)

SLUG_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
SLUG_LENGTH = 12

def generate_slug() -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_LENGTH))

def normalize_phone(phone: Optional[str]) -> str:
    """Comparable form of a phone number; empty when there is none"""
    if not phone or not phone.strip():
        return ""
    return format_to_e164(phone, settings.DEFAULT_COUNTRY)

class GuestService:
    """Service for guest list operations"""

    @staticmethod
    def get_guest(db: Session, event_id: int, guest_id: int) -> Guest:
        guest = GuestRepo.get_by_id(db, event_id, guest_id)
        if not guest:
            raise NotFoundError("Guest")
        return guest

    @staticmethod
    def list_guests(db: Session, event_id: int) -> List[Guest]:
        return GuestRepo.list_for_event(db, event_id)

    @staticmethod
    def _unique_slug(db: Session) -> str:
        while True:
            slug = generate_slug()
            if not GuestRepo.get_by_slug(db, slug):
                return slug

    @staticmethod
    def _check_guest_limit(db: Session, event: WeddingEvent, adding: int = 1):
        # Limit follows the event owner's plan, not the collaborator's
        current = GuestRepo.count_for_event(db, event.id)
        if not can_add_guests(event.owner.plan, current, adding):
            limit = get_plan_limits(event.owner.plan).max_guests_per_event
            raise PlanLimitError(
                f"Adding {adding} guests would exceed your plan limit of {limit} guests",
                details={"limit": limit, "current": current},
            )

    @staticmethod
    def find_duplicate_phone(
        db: Session,
        event_id: int,
        phone: Optional[str],
        exclude_guest_id: Optional[int] = None
    ) -> List[Guest]:
        """Guests of the event whose number matches once normalised"""
        normalized = normalize_phone(phone)
        if not normalized:
            return []

        query = db.query(Guest).filter(Guest.event_id == event_id, Guest.phone_number.isnot(None))
        if exclude_guest_id is not None:
            query = query.filter(Guest.id != exclude_guest_id)
        return [guest for guest in query.all() if normalize_phone(guest.phone_number) == normalized]

    @staticmethod
    def _raise_if_duplicate(duplicates: List[Guest]):
        if duplicates:
            raise ValidationError(
                "A guest with this phone number already exists",
                details={
                    "reason": "DUPLICATE_PHONE",
                    "duplicate_names": [guest.name for guest in duplicates],
                    "duplicate_guest_ids": [guest.id for guest in duplicates],
                },
            )

    @staticmethod
    def _new_guest(db: Session, event_id: int, data: GuestCreate) -> Guest:
        guest = Guest(event_id=event_id, slug=GuestService._unique_slug(db), **data.dict())
        guest.rsvp = GuestRsvp(status=RsvpStatus.PENDING)
        db.add(guest)
        return guest

    @staticmethod
    def create_guest(db: Session, event: WeddingEvent, data: GuestCreate) -> Guest:
        """Create a guest together with a PENDING RSVP"""
        GuestService._check_guest_limit(db, event)
        GuestService._raise_if_duplicate(GuestService.find_duplicate_phone(db, event.id, data.phone_number))

        guest = GuestService._new_guest(db, event.id, data)
        db.commit()
        db.refresh(guest)

        logger.info(f"Created guest {guest.id} for event {event.id}")
        return guest

    @staticmethod
    def update_guest(db: Session, event_id: int, guest_id: int, data: GuestUpdate) -> Guest:
        guest = GuestService.get_guest(db, event_id, guest_id)
        updates = data.dict(exclude_unset=True)

        if updates.get("phone_number"):
            GuestService._raise_if_duplicate(
                GuestService.find_duplicate_phone(db, event_id, updates["phone_number"], exclude_guest_id=guest.id)
            )

        for field, value in updates.items():
            setattr(guest, field, value)
        db.commit()
        db.refresh(guest)
        return guest

    @staticmethod
    def delete_guests(db: Session, event_id: int, guest_ids: List[int]) -> int:
        guests = db.query(Guest).filter(Guest.id.in_(guest_ids), Guest.event_id == event_id).all()
        if not guests:
            raise NotFoundError("Guest")

        for guest in guests:
            db.delete(guest)
        db.commit()

        logger.info(f"Deleted {len(guests)} guests from event {event_id}")
        return len(guests)

    @staticmethod
    def bulk_import(db: Session, event: WeddingEvent, rows: List[GuestCreate]) -> List[Guest]:
        """Create many guests at once, rejecting the whole batch on any duplicate phone"""
        if not rows:
            raise ValidationError("No guests to import")
        GuestService._check_guest_limit(db, event, len(rows))

        existing: Dict[str, Guest] = {}
        for guest in db.query(Guest).filter(Guest.event_id == event.id, Guest.phone_number.isnot(None)).all():
            normalized = normalize_phone(guest.phone_number)
            if normalized:
                existing.setdefault(normalized, guest)

        duplicates_with_existing = []
        duplicates_within_batch = []
        seen = set()
        for row in rows:
            normalized = normalize_phone(row.phone_number)
            if not normalized:
                continue

            if normalized in existing:
                duplicates_with_existing.append({
                    "name": row.name,
                    "phone": row.phone_number,
                    "existing_name": existing[normalized].name,
                    "existing_guest_id": existing[normalized].id,
                })
            if normalized in seen:
                duplicates_within_batch.append({"name": row.name, "phone": row.phone_number})
            else:
                seen.add(normalized)

        if duplicates_with_existing or duplicates_within_batch:
            raise ValidationError(
                "Duplicate phone numbers in import",
                details={
                    "reason": "DUPLICATE_PHONES_IN_IMPORT",
                    "duplicates_with_existing": duplicates_with_existing,
                    "duplicates_within_batch": duplicates_within_batch,
                },
            )

        guests = [GuestService._new_guest(db, event.id, row) for row in rows]
        db.commit()
        for guest in guests:
            db.refresh(guest)

        logger.info(f"Imported {len(guests)} guests into event {event.id}")
        return guests

    @staticmethod
    def bulk_update_rsvp_status(
        db: Session,
        event_id: int,
        guest_ids: List[int],
        status: RsvpStatus,
        guest_count: Optional[int] = None
    ) -> int:
        """Organizer override of many RSVPs at once"""
        if not guest_ids:
            raise ValidationError("No guests selected")

        guests = db.query(Guest).filter(Guest.id.in_(guest_ids), Guest.event_id == event_id).all()
        if len(guests) != len(set(guest_ids)):
            raise ValidationError("Some guests do not belong to this event")

        now = datetime.utcnow()
        for guest in guests:
            if not guest.rsvp:
                guest.rsvp = GuestRsvp()
            guest.rsvp.status = status
            guest.rsvp.responded_at = now
            if status == RsvpStatus.ACCEPTED and guest_count is not None:
                guest.rsvp.guest_count = guest_count
            elif status == RsvpStatus.DECLINED:
                guest.rsvp.guest_count = 0
        db.commit()
        return len(guests)

    @staticmethod
    def guest_payload(guest: Guest) -> Dict:
        rsvp = guest.rsvp
        assignment = guest.table_assignment
        return {
            "id": guest.id,
            "event_id": guest.event_id,
            "name": guest.name,
            "phone_number": guest.phone_number,
            "email": guest.email,
            "slug": guest.slug,
            "side": guest.side,
            "group_name": guest.group_name,
            "expected_guests": guest.expected_guests,
            "notes": guest.notes,
            "is_test": guest.is_test,
            "rsvp_status": guest.rsvp_status.value,
            "guest_count": rsvp.guest_count if rsvp else None,
            "responded_at": rsvp.responded_at.isoformat() if rsvp and rsvp.responded_at else None,
            "table_name": assignment.table.name if assignment else None,
        }
