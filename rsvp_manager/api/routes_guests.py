"""
Guest API routes - guest list, Excel import/export, RSVP overrides and QR codes
"""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.core.db import get_db
from rsvp_manager.models import User
from rsvp_manager.models.enums import CollaboratorRole
from rsvp_manager.schemas.guest import BulkRsvpUpdate, GuestCreate, GuestIdsRequest, GuestUpdate, RsvpUpdate
from rsvp_manager.services.excel_service import ExcelService
from rsvp_manager.services.guest_service import GuestService
from rsvp_manager.services.permissions import get_accessible_event
from rsvp_manager.services.qr_service import QRService
from rsvp_manager.services.rsvp_service import RsvpService
from rsvp_manager.utils.responses import error_response, success_response
from rsvp_manager.utils.security import get_current_user

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

@router.get("/guests/template.xlsx")
async def download_template(user: User = Depends(get_current_user)):
    """Download the guest list Excel template"""
    return Response(
        content=ExcelService.create_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=guest_list_template.xlsx"}
    )

@router.get("/{event_id}/guests")
async def list_guests(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    guests = GuestService.list_guests(db, event_id)
    return success_response(
        message=f"Found {len(guests)} guests",
        data=[GuestService.guest_payload(guest) for guest in guests]
    )

@router.post("/{event_id}/guests")
async def create_guest(
    event_id: int,
    guest_data: GuestCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    guest = GuestService.create_guest(db, event, guest_data)
    return success_response(message="Guest created successfully", data=GuestService.guest_payload(guest), status_code=201)

@router.patch("/{event_id}/guests/{guest_id}")
async def update_guest(
    event_id: int,
    guest_id: int,
    guest_update: GuestUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    guest = GuestService.update_guest(db, event_id, guest_id, guest_update)
    return success_response(message="Guest updated successfully", data=GuestService.guest_payload(guest))

@router.post("/{event_id}/guests/delete")
async def delete_guests(
    event_id: int,
    request: GuestIdsRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    deleted = GuestService.delete_guests(db, event_id, request.guest_ids)
    return success_response(message=f"Deleted {deleted} guests", data={"deleted": deleted})

@router.post("/{event_id}/guests/import")
async def import_guests(
    event_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Upload and import an Excel guest list"""
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)

    if not file.filename.endswith((".xlsx", ".xls")):
        return error_response(
            message="Invalid file format. Please upload an Excel file (.xlsx or .xls)",
            status_code=400
        )

    file_content = await file.read()
    if len(file_content) > settings.MAX_UPLOAD_SIZE:
        return error_response(message="File is too large", status_code=413)

    success, errors, imported = ExcelService.process_excel_upload(file_content, event, db)
    if not success:
        return error_response(
            message="Excel file validation failed",
            details=errors,
            status_code=422
        )

    return success_response(
        message=f"Excel file processed successfully. {imported} guests imported.",
        data={"imported": imported}
    )

@router.get("/{event_id}/guests/export.xlsx")
async def export_guests(
    event_id: int,
    include_rsvp: bool = True,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    return Response(
        content=ExcelService.export_current_data(event_id, db, include_rsvp),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=guests_event_{event_id}.xlsx"}
    )

@router.get("/{event_id}/guests/{guest_id}/qr.png")
async def guest_qr_code(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """QR code of the guest's RSVP link"""
    get_accessible_event(db, user, event_id)
    guest = GuestService.get_guest(db, event_id, guest_id)
    return Response(
        content=QRService.generate_rsvp_qr(guest.slug),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=rsvp_{guest.slug}.png"}
    )

# -------- RSVP --------

@router.put("/{event_id}/guests/{guest_id}/rsvp")
async def update_rsvp(
    event_id: int,
    guest_id: int,
    rsvp_update: RsvpUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Organizer override of one guest's RSVP"""
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    rsvp = await RsvpService.update_rsvp(db, event_id, guest_id, rsvp_update)
    return success_response(
        message="RSVP updated",
        data={"guest_id": guest_id, "status": rsvp.status.value, "guest_count": rsvp.guest_count}
    )

@router.post("/{event_id}/guests/rsvp-status")
async def bulk_update_rsvp(
    event_id: int,
    request: BulkRsvpUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    updated = GuestService.bulk_update_rsvp_status(db, event_id, request.guest_ids, request.status, request.guest_count)
    return success_response(message=f"Updated {updated} guests", data={"updated": updated})

@router.get("/{event_id}/rsvp-stats")
async def rsvp_stats(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    return success_response(message="RSVP statistics", data=RsvpService.get_rsvp_stats(db, event_id))
