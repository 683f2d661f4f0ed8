"""
Event access control for owners, collaborators and platform owners
"""

from typing import Optional
from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, PermissionDeniedError
from rsvp_manager.models import User, WeddingEvent, EventCollaborator
from rsvp_manager.models.enums import CollaboratorRole

ROLE_PLATFORM_OWNER = "platform_owner"
ROLE_OWNER = "owner"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"

def _accepted_collaboration(db: Session, user_id: int, event_id: int) -> Optional[EventCollaborator]:
    return db.query(EventCollaborator).filter(
        EventCollaborator.event_id == event_id,
        EventCollaborator.user_id == user_id,
        EventCollaborator.accepted_at.isnot(None)
    ).first()

def can_access_event(
    db: Session,
    user: User,
    event: WeddingEvent,
    required_role: Optional[CollaboratorRole] = None
) -> bool:
    """Platform owners see everything, owners their live events, collaborators once accepted"""
    if user.is_platform_owner:
        return True

    if event.owner_id == user.id and event.archived_at is None:
        return True

    collaboration = _accepted_collaboration(db, user.id, event.id)
    if not collaboration:
        return False

    if required_role == CollaboratorRole.EDITOR and collaboration.role == CollaboratorRole.VIEWER:
        return False
    return True

def is_event_owner(user: User, event: WeddingEvent) -> bool:
    return user.is_platform_owner or event.owner_id == user.id

def get_user_event_role(db: Session, user: User, event: WeddingEvent) -> Optional[str]:
    """Role of the user on the event, or None when they have no access"""
    if event.owner_id == user.id:
        return ROLE_OWNER
    if user.is_platform_owner:
        return ROLE_PLATFORM_OWNER

    collaboration = _accepted_collaboration(db, user.id, event.id)
    if not collaboration:
        return None
    return ROLE_EDITOR if collaboration.role == CollaboratorRole.EDITOR else ROLE_VIEWER

def get_accessible_event(
    db: Session,
    user: User,
    event_id: int,
    required_role: Optional[CollaboratorRole] = None
) -> WeddingEvent:
    """Load an event the user may access, raising otherwise"""
    event = db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
    if not event:
        raise NotFoundError("Event")

    if not can_access_event(db, user, event):
        # Do not reveal events the user cannot see
        raise NotFoundError("Event")
    if required_role is not None and not can_access_event(db, user, event, required_role):
        raise PermissionDeniedError("Viewers cannot modify this event")
    return event

def get_owned_event(db: Session, user: User, event_id: int) -> WeddingEvent:
    """Load an event the user owns (any event for platform owners), archived included"""
    event = db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()
    if not event:
        raise NotFoundError("Event")
    if not is_event_owner(user, event):
        if can_access_event(db, user, event):
            raise PermissionDeniedError("Only the event owner can perform this action")
        raise NotFoundError("Event")
    return event
