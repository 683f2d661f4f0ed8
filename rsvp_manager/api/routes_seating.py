"""
Seating API routes - tables, assignments and auto-arrangement
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.models import User
from rsvp_manager.models.enums import CollaboratorRole
from rsvp_manager.schemas.seating import (
    AssignGuestsRequest, AutoArrangeRequest, MoveGuestRequest, RemoveGuestsRequest, TableCreate, TableUpdate
)
from rsvp_manager.services.seating_service import SeatingService
from rsvp_manager.services.permissions import get_accessible_event
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import get_current_user

router = APIRouter()

@router.get("/{event_id}/tables")
async def list_tables(
    event_id: int,
    include_seats: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    tables = SeatingService.get_event_tables(db, event_id, include_seats)
    return success_response(message=f"Found {len(tables)} tables", data=tables)

@router.post("/{event_id}/tables")
async def create_table(
    event_id: int,
    table_data: TableCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    table = SeatingService.create_table(db, event_id, table_data)
    return success_response(message="Table created", data=SeatingService.table_summary(table, include_seats=True), status_code=201)

@router.patch("/{event_id}/tables/{table_id}")
async def update_table(
    event_id: int,
    table_id: int,
    table_update: TableUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    table = SeatingService.update_table(db, event_id, table_id, table_update)
    return success_response(message="Table updated", data=SeatingService.table_summary(table, include_seats=True))

@router.delete("/{event_id}/tables/{table_id}")
async def delete_table(
    event_id: int,
    table_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    SeatingService.delete_table(db, event_id, table_id)
    return success_response(message="Table deleted")

@router.post("/{event_id}/tables/{table_id}/guests")
async def assign_guests(
    event_id: int,
    table_id: int,
    request: AssignGuestsRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Seat guests at a table; over-capacity assignments succeed with a warning"""
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    result = SeatingService.assign_guests(db, event_id, table_id, request.guest_ids)
    return success_response(message=f"Assigned {result['assigned']} guests", data=result)

@router.post("/{event_id}/seating/guests/{guest_id}/move")
async def move_guest(
    event_id: int,
    guest_id: int,
    request: MoveGuestRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    result = SeatingService.move_guest(db, event_id, guest_id, request.table_id, request.seat_number)
    return success_response(message="Guest moved", data=result)

@router.post("/{event_id}/seating/remove")
async def remove_guests(
    event_id: int,
    request: RemoveGuestsRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    removed = SeatingService.remove_guests(db, event_id, request.guest_ids)
    return success_response(message=f"Removed {removed} guests from their tables", data={"removed": removed})

@router.get("/{event_id}/seating/unseated")
async def unseated_guests(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    guests = SeatingService.get_unseated_guests(db, event_id)
    return success_response(message=f"Found {len(guests)} unseated guests", data=guests)

@router.get("/{event_id}/seating/stats")
async def seating_stats(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    return success_response(message="Seating statistics", data=SeatingService.get_seating_stats(db, event_id))

@router.post("/{event_id}/seating/auto-arrange")
async def auto_arrange(
    event_id: int,
    options: AutoArrangeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    result = SeatingService.auto_arrange(db, event_id, options)
    return success_response(message="Guests arranged", data=result)
