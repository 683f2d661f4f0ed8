"""
Cron API routes - called by the external scheduler with the cron secret
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.services.automation import (
    cleanup_old_executions, process_automation_flows, schedule_upcoming_event_triggers
)
from rsvp_manager.services.bulk_messaging import BulkMessagingService
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import verify_cron_secret

router = APIRouter()

@router.post("/automation")
async def run_automation(
    db: Session = Depends(get_db),
    authorized: bool = Depends(verify_cron_secret)
):
    """Schedule upcoming event-time executions, then run every due execution"""
    scheduled = schedule_upcoming_event_triggers(db)
    result = await process_automation_flows(db)
    result["scheduled"] = scheduled
    return success_response(message="Automation sweep completed", data=result)

@router.post("/bulk-jobs")
async def run_bulk_jobs(
    db: Session = Depends(get_db),
    authorized: bool = Depends(verify_cron_secret)
):
    results = await BulkMessagingService.process_pending_jobs(db)
    return success_response(message=f"Processed {len(results)} bulk jobs", data=results)

@router.post("/cleanup")
async def run_cleanup(
    days_to_keep: int = 30,
    db: Session = Depends(get_db),
    authorized: bool = Depends(verify_cron_secret)
):
    deleted = cleanup_old_executions(db, days_to_keep)
    return success_response(message=f"Deleted {deleted} old executions", data={"deleted": deleted})
