"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.schemas.guest import RsvpSubmit
from rsvp_manager.services.qr_service import QRService
from rsvp_manager.services.rsvp_service import RsvpService
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import enforce_rate_limit, get_client_ip

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/rsvp/{slug}")
async def get_rsvp_page(
    slug: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Event and current answer behind a guest's RSVP link"""
    enforce_rate_limit(get_client_ip(request), "api")
    guest = RsvpService.get_guest_by_slug(db, slug)
    return success_response(message="RSVP details retrieved", data=RsvpService.public_payload(guest))

@router.post("/rsvp/{slug}")
async def submit_rsvp(
    slug: str,
    rsvp_data: RsvpSubmit,
    db: Session = Depends(get_db)
):
    """Guest submits or changes their answer"""
    enforce_rate_limit(slug, "rsvp")
    rsvp = await RsvpService.submit_rsvp(db, slug, rsvp_data)
    return success_response(
        message="RSVP received",
        data={
            "status": rsvp.status.value,
            "guest_count": rsvp.guest_count,
            "responded_at": rsvp.responded_at.isoformat() if rsvp.responded_at else None,
        }
    )

@router.get("/rsvp/{slug}/qr.png")
async def rsvp_qr_code(
    slug: str,
    db: Session = Depends(get_db)
):
    """QR code image pointing at the RSVP link"""
    guest = RsvpService.get_guest_by_slug(db, slug)
    return Response(
        content=QRService.generate_rsvp_qr(guest.slug),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=rsvp_{guest.slug}.png"}
    )
