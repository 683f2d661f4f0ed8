"""
Hostess API routes - arrivals on the event day
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.models import User
from rsvp_manager.schemas.seating import MoveGuestRequest
from rsvp_manager.services.checkin_service import CheckInService
from rsvp_manager.services.permissions import get_accessible_event
from rsvp_manager.api.ws import websocket_manager
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import get_current_user

router = APIRouter()

# Initialize check-in service
checkin_service = CheckInService(websocket_manager)

@router.get("/{event_id}/hostess")
async def hostess_data(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Accepted guests and tables for the hostess screen"""
    get_accessible_event(db, user, event_id)
    return success_response(message="Hostess data retrieved", data=CheckInService.get_hostess_data(db, event_id))

@router.post("/{event_id}/hostess/guests/{guest_id}/arrive")
async def mark_arrived(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    result = await checkin_service.mark_arrived(db, event_id, guest_id)
    message = "Guest already checked in" if result["was_already_checked_in"] else "Guest checked in successfully"
    return success_response(message=message, data=result)

@router.delete("/{event_id}/hostess/guests/{guest_id}/arrive")
async def unmark_arrived(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    result = await checkin_service.unmark_arrived(db, event_id, guest_id)
    return success_response(message="Check-in undone", data=result)

@router.post("/{event_id}/hostess/guests/{guest_id}/table")
async def change_table(
    event_id: int,
    guest_id: int,
    request: MoveGuestRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    result = await checkin_service.change_table(db, event_id, guest_id, request.table_id)
    return success_response(message=f"Guest moved to {result['table_name']}", data=result)
