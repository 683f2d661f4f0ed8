"""
Public RSVP submission and organizer-side RSVP management
"""

import logging
from datetime import datetime
from typing import Dict, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import Guest, GuestRsvp
from rsvp_manager.models.enums import NotificationType, RsvpStatus
from rsvp_manager.schemas.guest import RsvpSubmit, RsvpUpdate
from rsvp_manager.services.repositories import GuestRepo, NotificationRepo
from rsvp_manager.services.notifications import get_notification_service
from rsvp_manager.services.automation.handlers import on_rsvp_status_changed

logger = logging.getLogger(__name__)

class RsvpService:
    """Service for RSVP operations"""

    @staticmethod
    def get_guest_by_slug(db: Session, slug: str) -> Guest:
        """Guest behind a public RSVP link; the event must still accept answers"""
        guest = GuestRepo.get_by_slug(db, slug)
        if not guest:
            raise NotFoundError("Guest")
        if not guest.event.is_active:
            raise ValidationError("This event is no longer accepting RSVPs")
        return guest

    @staticmethod
    def public_payload(guest: Guest) -> Dict:
        event = guest.event
        rsvp = guest.rsvp
        return {
            "guest": {
                "name": guest.name,
                "slug": guest.slug,
                "expected_guests": guest.expected_guests,
            },
            "event": {
                "title": event.title,
                "date_time": event.date_time.isoformat(),
                "location": event.location,
                "venue": event.venue,
                "description": event.description,
                "image_path": event.image_path,
            },
            "rsvp": {
                "status": guest.rsvp_status.value,
                "guest_count": rsvp.guest_count if rsvp else None,
                "note": rsvp.note if rsvp else None,
                "responded_at": rsvp.responded_at.isoformat() if rsvp and rsvp.responded_at else None,
            },
        }

    @staticmethod
    def _apply(guest: Guest, status: RsvpStatus, guest_count: int, note: Optional[str]) -> Optional[RsvpStatus]:
        previous = guest.rsvp.status if guest.rsvp else None
        if not guest.rsvp:
            guest.rsvp = GuestRsvp()
        guest.rsvp.status = status
        guest.rsvp.guest_count = guest_count if status == RsvpStatus.ACCEPTED else 0
        guest.rsvp.note = note
        guest.rsvp.responded_at = datetime.utcnow()
        return previous

    @staticmethod
    async def submit_rsvp(
        db: Session,
        slug: str,
        data: RsvpSubmit,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> GuestRsvp:
        """Record a guest's answer, confirm it and run the RSVP automations"""
        guest = RsvpService.get_guest_by_slug(db, slug)
        previous = RsvpService._apply(guest, data.status, data.guest_count, data.note)
        db.commit()
        db.refresh(guest)
        logger.info(f"RSVP {data.status.value} from guest {guest.id} ({guest.rsvp.guest_count} guests)")

        if data.status != RsvpStatus.PENDING:
            await RsvpService._send_confirmation(db, guest, data.status)

        await on_rsvp_status_changed(db, guest.id, guest.event_id, data.status, previous, transport=transport)
        return guest.rsvp

    @staticmethod
    async def _send_confirmation(db: Session, guest: Guest, status: RsvpStatus):
        # A failed confirmation never fails the RSVP itself
        try:
            service = get_notification_service(db)
            result = await service.send_confirmation(guest, guest.event, status)
        except (httpx.HTTPError, SQLAlchemyError) as e:
            db.rollback()
            logger.error(f"Error sending confirmation to guest {guest.id}: {e}")
            return

        if not result.success:
            logger.warning(f"Confirmation to guest {guest.id} failed: {result.error}")
        if not guest.is_test:
            NotificationRepo.create_log(
                db,
                guest_id=guest.id,
                notification_type=NotificationType.CONFIRMATION,
                channel=result.channel,
                status=result.status,
                provider_response=result.provider_response or result.error,
                provider_message_id=result.provider_message_id,
            )
            db.commit()

    @staticmethod
    async def update_rsvp(
        db: Session,
        event_id: int,
        guest_id: int,
        data: RsvpUpdate,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> GuestRsvp:
        """Organizer override; keeps the current count when none is given"""
        guest = GuestRepo.get_by_id(db, event_id, guest_id)
        if not guest:
            raise NotFoundError("Guest")

        current_count = guest.rsvp.guest_count if guest.rsvp and guest.rsvp.guest_count else guest.expected_guests
        count = data.guest_count if data.guest_count is not None else current_count
        note = guest.rsvp.note if guest.rsvp else None
        previous = RsvpService._apply(guest, data.status, count, note)
        db.commit()
        db.refresh(guest)

        await on_rsvp_status_changed(db, guest.id, event_id, data.status, previous, transport=transport)
        return guest.rsvp

    @staticmethod
    def get_rsvp_stats(db: Session, event_id: int) -> Dict:
        guests = GuestRepo.list_for_event(db, event_id)
        counts = {status.value: 0 for status in RsvpStatus}
        attending = 0
        for guest in guests:
            counts[guest.rsvp_status.value] += 1
            if guest.rsvp_status == RsvpStatus.ACCEPTED:
                attending += guest.rsvp.guest_count or 0

        total = len(guests)
        responded = counts[RsvpStatus.ACCEPTED.value] + counts[RsvpStatus.DECLINED.value]
        return {
            "total_guests": total,
            "pending": counts[RsvpStatus.PENDING.value],
            "accepted": counts[RsvpStatus.ACCEPTED.value],
            "declined": counts[RsvpStatus.DECLINED.value],
            "attending_count": attending,
            "expected_count": sum(guest.expected_guests or 1 for guest in guests),
            "response_rate": round(responded / total * 100, 1) if total else 0.0,
        }
