"""
Wedding event management
"""

import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import PlanLimitError, ValidationError
from rsvp_manager.models import User, WeddingEvent, EventCollaborator
from rsvp_manager.models.enums import RsvpStatus
from rsvp_manager.schemas.event import EventCreate, EventUpdate
from rsvp_manager.services.plans import can_create_event, get_plan_limits
from rsvp_manager.services.repositories import EventRepo
from rsvp_manager.utils.timeutils import to_naive_utc

logger = logging.getLogger(__name__)

class EventService:
    """Service for event operations"""

    @staticmethod
    def create_event(db: Session, user: User, data: EventCreate) -> WeddingEvent:
        """Create an event, honouring the plan's event limit"""
        current = EventRepo.count_for_owner(db, user.id)
        if not user.is_platform_owner and not can_create_event(user.plan, current):
            limit = get_plan_limits(user.plan).max_events
            raise PlanLimitError(
                f"You have reached the limit of {limit} event(s) for your plan. Please upgrade to create more events.",
                details={"limit": limit, "current": current},
            )

        values = data.dict()
        values["date_time"] = to_naive_utc(data.date_time)
        event = WeddingEvent(owner_id=user.id, **values)
        db.add(event)
        db.commit()
        db.refresh(event)

        logger.info(f"Created event {event.id} '{event.title}' for user {user.id}")
        return event

    @staticmethod
    def update_event(db: Session, event: WeddingEvent, data: EventUpdate) -> WeddingEvent:
        updates = data.dict(exclude_unset=True)
        if updates.get("date_time"):
            updates["date_time"] = to_naive_utc(updates["date_time"])

        for field, value in updates.items():
            if value is not None:
                setattr(event, field, value)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def archive_event(db: Session, event: WeddingEvent) -> WeddingEvent:
        """Archive instead of deleting; archived events stop accepting RSVPs"""
        if event.archived_at is not None:
            raise ValidationError("Event is already archived")

        event.archived_at = datetime.utcnow()
        event.is_active = False
        db.commit()
        db.refresh(event)

        logger.info(f"Archived event {event.id}")
        return event

    @staticmethod
    def restore_event(db: Session, user: User, event: WeddingEvent) -> WeddingEvent:
        if event.archived_at is None:
            raise ValidationError("Event is not archived")
        if not user.is_platform_owner and not can_create_event(user.plan, EventRepo.count_for_owner(db, event.owner_id)):
            raise PlanLimitError("Restoring this event would exceed your plan's event limit")

        event.archived_at = None
        event.is_active = True
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def list_user_events(db: Session, user: User, include_archived: bool = False) -> List[WeddingEvent]:
        """Owned events followed by events shared through accepted collaborations"""
        owned = EventRepo.list_for_owner(db, user.id, include_archived)
        shared = db.query(WeddingEvent).join(
            EventCollaborator, EventCollaborator.event_id == WeddingEvent.id
        ).filter(
            EventCollaborator.user_id == user.id,
            EventCollaborator.accepted_at.isnot(None),
            WeddingEvent.archived_at.is_(None)
        ).order_by(WeddingEvent.date_time).all()
        return owned + [event for event in shared if event.owner_id != user.id]

    @staticmethod
    def event_stats(event: WeddingEvent) -> Dict:
        stats = {"total": len(event.guests), "pending": 0, "accepted": 0, "declined": 0, "total_guest_count": 0}
        for guest in event.guests:
            status = guest.rsvp_status
            if status == RsvpStatus.ACCEPTED:
                stats["accepted"] += 1
                stats["total_guest_count"] += guest.rsvp.guest_count or 0
            elif status == RsvpStatus.DECLINED:
                stats["declined"] += 1
            else:
                stats["pending"] += 1
        return stats

    @staticmethod
    def event_payload(event: WeddingEvent, role: str = None) -> Dict:
        return {
            "id": event.id,
            "owner_id": event.owner_id,
            "title": event.title,
            "description": event.description,
            "date_time": event.date_time.isoformat(),
            "location": event.location,
            "venue": event.venue,
            "notes": event.notes,
            "image_path": event.image_path,
            "sms_sender_id": event.sms_sender_id,
            "is_active": event.is_active,
            "archived_at": event.archived_at.isoformat() if event.archived_at else None,
            "role": role,
            "stats": EventService.event_stats(event),
        }
