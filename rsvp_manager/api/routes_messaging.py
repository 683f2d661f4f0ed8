"""
Messaging API routes - single sends, bulk jobs, usage and custom message texts
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.models import BulkMessageJob, User
from rsvp_manager.models.enums import CollaboratorRole
from rsvp_manager.schemas.notification import BulkJobCreate, MessageTemplateUpsert, SendMessageRequest
from rsvp_manager.services.bulk_messaging import BulkMessagingService
from rsvp_manager.services.messaging_service import MessagingService
from rsvp_manager.services.permissions import get_accessible_event
from rsvp_manager.utils.responses import error_response, success_response
from rsvp_manager.utils.security import enforce_rate_limit, get_current_user

router = APIRouter()

@router.get("/messaging/usage")
async def message_usage(user: User = Depends(get_current_user)):
    """Messages sent and remaining on the user's plan"""
    return success_response(message="Message usage", data=MessagingService.get_usage(user))

@router.post("/{event_id}/guests/{guest_id}/send")
async def send_to_guest(
    event_id: int,
    guest_id: int,
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    result = await MessagingService.send_to_guest(db, event, guest_id, request.type, request.channel)
    data = {
        "channel": result.channel.value,
        "status": result.status.value,
        "provider_message_id": result.provider_message_id,
    }
    if not result.success:
        return error_response(
            message=result.error or "Failed to send message",
            error_code="send_failed",
            details=data,
            status_code=502
        )
    return success_response(message="Message sent", data=data)

# -------- Bulk jobs --------

@router.post("/{event_id}/bulk-jobs")
async def create_bulk_job(
    event_id: int,
    request: BulkJobCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    enforce_rate_limit(str(user.id), "bulk")
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    job = BulkMessagingService.create_job(db, event, user, request.message_type, request.channel, request.guest_ids)
    return success_response(
        message=f"Bulk job created for {job.total} guests",
        data=BulkMessagingService.job_payload(job),
        status_code=201
    )

@router.get("/{event_id}/bulk-jobs")
async def list_bulk_jobs(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    jobs = db.query(BulkMessageJob).filter(
        BulkMessageJob.event_id == event_id
    ).order_by(BulkMessageJob.created_at.desc(), BulkMessageJob.id.desc()).all()
    return success_response(message=f"Found {len(jobs)} jobs", data=[BulkMessagingService.job_payload(job) for job in jobs])

@router.get("/{event_id}/bulk-jobs/{job_id}")
async def get_bulk_job(
    event_id: int,
    job_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    job = BulkMessagingService.get_job(db, event_id, job_id)
    return success_response(message="Bulk job retrieved", data=BulkMessagingService.job_payload(job))

@router.post("/{event_id}/bulk-jobs/{job_id}/process")
async def process_bulk_job(
    event_id: int,
    job_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Send the next chunk now instead of waiting for the cron"""
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    job = BulkMessagingService.get_job(db, event_id, job_id)
    result = await BulkMessagingService.process_job(db, job.id)
    return success_response(message="Bulk job processed", data=result)

@router.post("/{event_id}/bulk-jobs/{job_id}/cancel")
async def cancel_bulk_job(
    event_id: int,
    job_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    job = BulkMessagingService.cancel_job(db, event_id, job_id)
    return success_response(message="Bulk job cancelled", data=BulkMessagingService.job_payload(job))

# -------- Custom message texts --------

@router.get("/{event_id}/message-templates")
async def list_message_templates(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    return success_response(message="Message templates", data=MessagingService.list_templates(db, event_id))

@router.put("/{event_id}/message-templates")
async def upsert_message_template(
    event_id: int,
    request: MessageTemplateUpsert,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    template = MessagingService.upsert_template(db, event, request)
    return success_response(message="Message template saved", data={"id": template.id, "type": template.type.value, "locale": template.locale})
