"""
Event API routes - requires a user API token
"""

import json
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.core.db import get_db
from rsvp_manager.core.exceptions import ValidationError
from rsvp_manager.models import User
from rsvp_manager.models.enums import CollaboratorRole
from rsvp_manager.schemas.event import CollaboratorInvite, CollaboratorRoleUpdate, EventCreate, EventUpdate
from rsvp_manager.schemas.notification import InvitationField
from rsvp_manager.services.collaborator_service import CollaboratorService
from rsvp_manager.services.event_service import EventService
from rsvp_manager.services.invitation_service import InvitationService
from rsvp_manager.services.permissions import get_accessible_event, get_owned_event, get_user_event_role
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import enforce_rate_limit, get_current_user

router = APIRouter()

@router.post("")
async def create_event(
    event_data: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Create a new event"""
    event = EventService.create_event(db, user, event_data)
    return success_response(
        message="Event created successfully",
        data=EventService.event_payload(event, get_user_event_role(db, user, event)),
        status_code=201
    )

@router.get("")
async def list_events(
    include_archived: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Events the user owns or collaborates on"""
    events = EventService.list_user_events(db, user, include_archived)
    return success_response(
        message=f"Found {len(events)} events",
        data=[EventService.event_payload(event, get_user_event_role(db, user, event)) for event in events]
    )

@router.get("/{event_id}")
async def get_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id)
    return success_response(
        message="Event details retrieved",
        data=EventService.event_payload(event, get_user_event_role(db, user, event))
    )

@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    event_data: EventUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    event = EventService.update_event(db, event, event_data)
    return success_response(
        message="Event updated successfully",
        data=EventService.event_payload(event, get_user_event_role(db, user, event))
    )

@router.post("/{event_id}/archive")
async def archive_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = EventService.archive_event(db, get_owned_event(db, user, event_id))
    return success_response(message="Event archived", data={"id": event.id, "archived_at": event.archived_at.isoformat()})

@router.post("/{event_id}/restore")
async def restore_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = EventService.restore_event(db, user, get_owned_event(db, user, event_id))
    return success_response(message="Event restored", data=EventService.event_payload(event))

# -------- Collaborators --------

@router.get("/{event_id}/collaborators")
async def list_collaborators(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id)
    return success_response(message="Collaborators retrieved", data=CollaboratorService.list_collaborators(db, event))

@router.post("/{event_id}/collaborators")
async def invite_collaborator(
    event_id: int,
    invite: CollaboratorInvite,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Invite a registered user to collaborate (owner only)"""
    enforce_rate_limit(str(user.id), "sensitive")
    event = get_owned_event(db, user, event_id)
    collaborator = CollaboratorService.invite(db, event, user, invite.email, invite.role)
    return success_response(
        message="Collaborator invited",
        data={"id": collaborator.id, "user_id": collaborator.user_id, "role": collaborator.role.value},
        status_code=201
    )

@router.post("/{event_id}/collaborators/accept")
async def accept_invitation(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    collaborator = CollaboratorService.accept(db, user, event_id)
    return success_response(
        message="Invitation accepted",
        data={"event_id": event_id, "role": collaborator.role.value, "accepted_at": collaborator.accepted_at.isoformat()}
    )

@router.patch("/{event_id}/collaborators/{collaborator_id}")
async def update_collaborator_role(
    event_id: int,
    collaborator_id: int,
    update: CollaboratorRoleUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_owned_event(db, user, event_id)
    collaborator = CollaboratorService.update_role(db, event, collaborator_id, update.role)
    return success_response(message="Collaborator role updated", data={"id": collaborator.id, "role": collaborator.role.value})

@router.delete("/{event_id}/collaborators/{collaborator_id}")
async def remove_collaborator(
    event_id: int,
    collaborator_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id)
    CollaboratorService.remove(db, user, event, collaborator_id)
    return success_response(message="Collaborator removed")

# -------- Invitation image --------

@router.post("/{event_id}/invitation")
async def generate_invitation(
    event_id: int,
    file: UploadFile = File(...),
    fields: str = Form(...),
    use_pro_model: bool = Form(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Generate the event's invitation image from an uploaded design

    `fields` is a JSON list of {field_type, label, original_value, new_value}.
    """
    enforce_rate_limit(str(user.id), "sensitive")
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)

    template_bytes = await file.read()
    if len(template_bytes) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError("Image is too large")

    try:
        parsed: List[InvitationField] = [InvitationField(**item) for item in json.loads(fields)]
    except (ValueError, TypeError, PydanticValidationError) as e:
        raise ValidationError("Invalid field replacements", details={"error": str(e)}) from e

    image_path = await InvitationService().generate_for_event(
        db, event, template_bytes, file.content_type, parsed, use_pro_model
    )
    return success_response(message="Invitation generated", data={"image_path": image_path})
