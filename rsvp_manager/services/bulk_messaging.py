"""
Bulk message jobs

A job holds one item per guest. Each processing pass sends a chunk of due
items; failed items are retried with a growing backoff until they run out
of attempts. The job completes once no retryable item is left.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import BulkMessageJob, BulkMessageJobItem, Guest, GuestRsvp, NotificationLog, User, WeddingEvent
from rsvp_manager.models.enums import (
    BulkItemStatus, BulkJobStatus, NotificationStatus, NotificationType, NotificationChannel, RsvpStatus
)
from rsvp_manager.services.notifications import get_notification_service
from rsvp_manager.services.messaging_service import dispatch, has_quota, record_result, settle_channel

logger = logging.getLogger(__name__)

BULK_MESSAGE_TYPES = (NotificationType.INVITE, NotificationType.REMINDER)
BACKOFF_SECONDS = [5, 15, 60]

def backoff_for(attempts: int) -> timedelta:
    index = min(max(attempts, 1), len(BACKOFF_SECONDS)) - 1
    return timedelta(seconds=BACKOFF_SECONDS[index])

class BulkMessagingService:
    """Service for creating and processing bulk message jobs"""

    @staticmethod
    def eligible_guests(
        db: Session,
        event_id: int,
        message_type: NotificationType,
        guest_ids: Optional[List[int]] = None
    ) -> List[Guest]:
        """Guests with a phone; invites skip the already invited, reminders only reach pending guests"""
        query = db.query(Guest).filter(Guest.event_id == event_id, Guest.phone_number.isnot(None), Guest.phone_number != "")
        if guest_ids:
            query = query.filter(Guest.id.in_(guest_ids))

        if message_type == NotificationType.INVITE:
            invited = select(NotificationLog.guest_id).where(
                NotificationLog.type == NotificationType.INVITE,
                NotificationLog.status.in_([NotificationStatus.SENT, NotificationStatus.DELIVERED])
            )
            query = query.filter(Guest.id.notin_(invited))
        else:
            query = query.outerjoin(GuestRsvp).filter(
                or_(GuestRsvp.id.is_(None), GuestRsvp.status == RsvpStatus.PENDING)
            )
        return query.order_by(Guest.id).all()

    @staticmethod
    def create_job(
        db: Session,
        event: WeddingEvent,
        user: User,
        message_type: NotificationType,
        channel: Optional[NotificationChannel] = None,
        guest_ids: Optional[List[int]] = None
    ) -> BulkMessageJob:
        if message_type not in BULK_MESSAGE_TYPES:
            raise ValidationError("Bulk jobs support INVITE and REMINDER messages only")

        guests = BulkMessagingService.eligible_guests(db, event.id, message_type, guest_ids)
        if not guests:
            raise ValidationError("No eligible guests found")

        job = BulkMessageJob(
            event_id=event.id,
            user_id=user.id,
            message_type=message_type,
            channel=channel,
            status=BulkJobStatus.PENDING,
            total=len(guests),
        )
        job.items = [BulkMessageJobItem(guest_id=guest.id) for guest in guests]
        db.add(job)
        db.commit()
        db.refresh(job)

        logger.info(f"Created bulk {message_type.value} job {job.id} for event {event.id} ({len(guests)} guests)")
        return job

    @staticmethod
    def get_job(db: Session, event_id: int, job_id: int) -> BulkMessageJob:
        job = db.query(BulkMessageJob).filter(
            BulkMessageJob.id == job_id,
            BulkMessageJob.event_id == event_id
        ).first()
        if not job:
            raise NotFoundError("Bulk job")
        return job

    @staticmethod
    def cancel_job(db: Session, event_id: int, job_id: int) -> BulkMessageJob:
        job = BulkMessagingService.get_job(db, event_id, job_id)
        if job.status in (BulkJobStatus.COMPLETED, BulkJobStatus.CANCELLED):
            raise ValidationError(f"Job is already {job.status.value.lower()}")

        job.status = BulkJobStatus.CANCELLED
        job.completed_at = datetime.utcnow()
        db.commit()
        db.refresh(job)
        logger.info(f"Cancelled bulk job {job.id}")
        return job

    @staticmethod
    def _retryable_items(db: Session, job_id: int):
        return db.query(BulkMessageJobItem).filter(
            BulkMessageJobItem.job_id == job_id,
            BulkMessageJobItem.status == BulkItemStatus.PENDING,
            BulkMessageJobItem.attempts < settings.BULK_MAX_ATTEMPTS
        )

    @staticmethod
    def _update_progress(db: Session, job: BulkMessageJob):
        counts = {status: 0 for status in BulkItemStatus}
        for item in job.items:
            counts[item.status] += 1
        job.success_count = counts[BulkItemStatus.SENT]
        job.failed_count = counts[BulkItemStatus.FAILED]
        job.processed = job.success_count + job.failed_count

    @staticmethod
    async def process_job(db: Session, job_id: int, chunk_size: Optional[int] = None, now: Optional[datetime] = None) -> Dict:
        """Send one chunk of due items and refresh the job's counters"""
        now = now or datetime.utcnow()
        job = db.query(BulkMessageJob).filter(BulkMessageJob.id == job_id).first()
        if not job:
            raise NotFoundError("Bulk job")

        if job.status in (BulkJobStatus.CANCELLED, BulkJobStatus.COMPLETED, BulkJobStatus.FAILED):
            return {"processed": 0, "success": 0, "failed": 0, "is_complete": True}

        if job.status == BulkJobStatus.PENDING:
            job.status = BulkJobStatus.PROCESSING
            job.started_at = now
            db.commit()

        event = db.query(WeddingEvent).filter(WeddingEvent.id == job.event_id).first()
        owner = event.owner
        service = get_notification_service(db)

        items = BulkMessagingService._retryable_items(db, job.id).filter(
            or_(BulkMessageJobItem.next_attempt_at.is_(None), BulkMessageJobItem.next_attempt_at <= now)
        ).order_by(BulkMessageJobItem.id).limit(chunk_size or settings.BULK_BATCH_SIZE).all()

        channel = settle_channel(db, job.message_type, job.channel)
        success = 0
        failed = 0
        for item in items:
            item.attempts += 1

            if not has_quota(owner, channel):
                # Quota will not recover within the job
                item.status = BulkItemStatus.FAILED
                item.last_error = f"{channel.value} message limit reached"
                failed += 1
                db.commit()
                continue

            result = await dispatch(service, item.guest, event, job.message_type, channel)
            record_result(db, item.guest, owner, job.message_type, result)

            if result.success:
                item.status = BulkItemStatus.SENT
                item.sent_at = now
                item.last_error = None
                success += 1
            else:
                item.last_error = result.error or "Failed to send message"
                if item.attempts >= settings.BULK_MAX_ATTEMPTS:
                    item.status = BulkItemStatus.FAILED
                else:
                    item.next_attempt_at = now + backoff_for(item.attempts)
                failed += 1
            db.commit()

        db.refresh(job)
        BulkMessagingService._update_progress(db, job)
        is_complete = BulkMessagingService._retryable_items(db, job.id).count() == 0
        if is_complete:
            job.status = BulkJobStatus.COMPLETED
            job.completed_at = now
        db.commit()

        logger.info(f"Bulk job {job.id}: sent {success}, failed {failed}, complete={is_complete}")
        return {"processed": len(items), "success": success, "failed": failed, "is_complete": is_complete}

    @staticmethod
    async def process_pending_jobs(db: Session, now: Optional[datetime] = None) -> List[Dict]:
        """Cron entry point: advance every open job by one chunk"""
        jobs = db.query(BulkMessageJob).filter(
            BulkMessageJob.status.in_([BulkJobStatus.PENDING, BulkJobStatus.PROCESSING])
        ).order_by(BulkMessageJob.created_at, BulkMessageJob.id).all()

        results = []
        for job in jobs:
            result = await BulkMessagingService.process_job(db, job.id, now=now)
            result["job_id"] = job.id
            results.append(result)
        return results

    @staticmethod
    def job_payload(job: BulkMessageJob) -> Dict:
        return {
            "id": job.id,
            "event_id": job.event_id,
            "message_type": job.message_type.value,
            "channel": job.channel.value if job.channel else None,
            "status": job.status.value,
            "total": job.total,
            "processed": job.processed,
            "success_count": job.success_count,
            "failed_count": job.failed_count,
            "started_at": job.started_at.isoformat() if job.started_at else None,
            "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        }
