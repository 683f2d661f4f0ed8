"""
Event collaborators: invitations, acceptance, roles and removal
"""

import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from rsvp_manager.models import User, WeddingEvent, EventCollaborator
from rsvp_manager.models.enums import CollaboratorRole

logger = logging.getLogger(__name__)

class CollaboratorService:

    @staticmethod
    def invite(
        db: Session,
        event: WeddingEvent,
        inviter: User,
        email: str,
        role: CollaboratorRole = CollaboratorRole.VIEWER
    ) -> EventCollaborator:
        """Invite a registered user by email; the caller must own the event"""
        invitee = db.query(User).filter(func.lower(User.email) == email.lower()).first()
        if not invitee:
            raise NotFoundError("User")
        if invitee.id == event.owner_id:
            raise ValidationError("The event owner cannot be invited as a collaborator")

        existing = db.query(EventCollaborator).filter(
            EventCollaborator.event_id == event.id,
            EventCollaborator.user_id == invitee.id
        ).first()
        if existing:
            raise ValidationError("User is already a collaborator on this event")

        collaborator = EventCollaborator(
            event_id=event.id,
            user_id=invitee.id,
            role=role,
            invited_by_id=inviter.id,
        )
        db.add(collaborator)
        db.commit()
        db.refresh(collaborator)

        logger.info(f"User {inviter.id} invited {invitee.id} to event {event.id} as {role.value}")
        return collaborator

    @staticmethod
    def accept(db: Session, user: User, event_id: int) -> EventCollaborator:
        collaborator = db.query(EventCollaborator).filter(
            EventCollaborator.event_id == event_id,
            EventCollaborator.user_id == user.id
        ).first()
        if not collaborator:
            raise NotFoundError("Invitation")

        if collaborator.accepted_at is None:
            collaborator.accepted_at = datetime.utcnow()
            db.commit()
            db.refresh(collaborator)
        return collaborator

    @staticmethod
    def update_role(db: Session, event: WeddingEvent, collaborator_id: int, role: CollaboratorRole) -> EventCollaborator:
        collaborator = CollaboratorService._get(db, event.id, collaborator_id)
        collaborator.role = role
        db.commit()
        db.refresh(collaborator)
        return collaborator

    @staticmethod
    def remove(db: Session, user: User, event: WeddingEvent, collaborator_id: int):
        """Owners remove anyone; collaborators may only remove themselves"""
        collaborator = CollaboratorService._get(db, event.id, collaborator_id)
        if event.owner_id != user.id and not user.is_platform_owner and collaborator.user_id != user.id:
            raise PermissionDeniedError("You can only remove yourself from this event")

        db.delete(collaborator)
        db.commit()
        logger.info(f"Removed collaborator {collaborator_id} from event {event.id}")

    @staticmethod
    def list_collaborators(db: Session, event: WeddingEvent) -> Dict:
        collaborators: List[EventCollaborator] = db.query(EventCollaborator).filter(
            EventCollaborator.event_id == event.id
        ).order_by(EventCollaborator.created_at, EventCollaborator.id).all()

        return {
            "owner": {"id": event.owner.id, "name": event.owner.name, "email": event.owner.email},
            "collaborators": [
                {
                    "id": c.id,
                    "role": c.role.value,
                    "user": {"id": c.user.id, "name": c.user.name, "email": c.user.email},
                    "accepted_at": c.accepted_at.isoformat() if c.accepted_at else None,
                }
                for c in collaborators
            ],
        }

    @staticmethod
    def _get(db: Session, event_id: int, collaborator_id: int) -> EventCollaborator:
        collaborator = db.query(EventCollaborator).filter(
            EventCollaborator.id == collaborator_id,
            EventCollaborator.event_id == event_id
        ).first()
        if not collaborator:
            raise NotFoundError("Collaborator")
        return collaborator
