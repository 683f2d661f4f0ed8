"""
Automation cron sweep

process_automation_flows() is called from the cron endpoint. It picks up
due PENDING executions of ACTIVE flows, rechecks the trigger and runs the
action, retrying failed sends a limited number of times.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import httpx
from sqlalchemy import or_
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.models import AutomationFlow, AutomationFlowExecution, WeddingEvent
from rsvp_manager.models.enums import AutomationTrigger, ExecutionStatus, FlowStatus, RsvpStatus
from rsvp_manager.services.automation.actions import execute_action, build_context
from rsvp_manager.services.automation.handlers import last_notification_for_trigger
from rsvp_manager.services.automation.triggers import check_trigger, calculate_scheduled_time

logger = logging.getLogger(__name__)

# Reasons after which an execution will never fire for this guest
TERMINAL_SKIP_REASONS = ("Guest already responded", "Guest not confirmed")

# Flows pre-scheduled for accepted guests once the event is within a day
UPCOMING_EVENT_TRIGGERS = (
    AutomationTrigger.EVENT_MORNING,
    AutomationTrigger.EVENT_DAY_MORNING,
    AutomationTrigger.HOURS_BEFORE_EVENT_2,
)

async def process_automation_flows(
    db: Session,
    now: Optional[datetime] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, int]:
    now = now or datetime.utcnow()
    result = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0}

    executions = db.query(AutomationFlowExecution).join(AutomationFlow).filter(
        AutomationFlowExecution.status == ExecutionStatus.PENDING,
        AutomationFlow.status == FlowStatus.ACTIVE,
        or_(
            AutomationFlowExecution.scheduled_for.is_(None),
            AutomationFlowExecution.scheduled_for <= now
        )
    ).order_by(AutomationFlowExecution.scheduled_for, AutomationFlowExecution.id).limit(
        settings.AUTOMATION_BATCH_SIZE
    ).all()

    for execution in executions:
        result["processed"] += 1
        flow = execution.flow
        guest = execution.guest

        try:
            check = check_trigger(
                flow.trigger,
                guest.rsvp_status,
                last_notification_for_trigger(db, guest.id, flow.trigger),
                flow.event.date_time,
                flow.delay_hours,
                now=now,
            )

            if not check.should_trigger:
                if check.scheduled_for and check.scheduled_for > now:
                    execution.scheduled_for = check.scheduled_for
                    db.commit()
                    result["skipped"] += 1
                    continue

                if check.reason in TERMINAL_SKIP_REASONS:
                    execution.status = ExecutionStatus.SKIPPED
                    execution.executed_at = now
                    execution.error_message = check.reason
                    db.commit()
                    result["skipped"] += 1
                    continue

            execution.status = ExecutionStatus.PROCESSING
            db.commit()

            action_result = await execute_action(db, flow.action, build_context(flow, guest), transport=transport)

            if action_result.success:
                execution.status = ExecutionStatus.COMPLETED
                execution.executed_at = now
                result["succeeded"] += 1
            else:
                max_retries = settings.AUTOMATION_MAX_RETRIES
                retry_count = (execution.retry_count or 0) + 1
                if retry_count < max_retries:
                    execution.status = ExecutionStatus.PENDING
                    execution.scheduled_for = now + timedelta(hours=settings.AUTOMATION_RETRY_DELAY_HOURS)
                    execution.retry_count = retry_count
                    execution.error_message = action_result.message
                else:
                    execution.status = ExecutionStatus.FAILED
                    execution.executed_at = now
                    execution.error_message = f"{action_result.message} (after {max_retries} retries)"
                result["failed"] += 1
            db.commit()

        except Exception as e:
            logger.exception(f"Error processing execution {execution.id}")
            db.rollback()
            execution.status = ExecutionStatus.FAILED
            execution.executed_at = now
            execution.error_message = str(e) or "Unknown error"
            db.commit()
            result["failed"] += 1

    logger.info(
        f"Automation sweep: processed={result['processed']} succeeded={result['succeeded']} "
        f"failed={result['failed']} skipped={result['skipped']}"
    )
    return result

def schedule_upcoming_event_triggers(db: Session, now: Optional[datetime] = None) -> int:
    """Create executions for accepted guests of events starting within 24 hours"""
    now = now or datetime.utcnow()
    tomorrow = now + timedelta(hours=24)

    events = db.query(WeddingEvent).filter(
        WeddingEvent.date_time >= now,
        WeddingEvent.date_time <= tomorrow,
        WeddingEvent.is_active == True
    ).all()

    scheduled = 0
    for event in events:
        flows = [
            flow for flow in event.automation_flows
            if flow.status == FlowStatus.ACTIVE and flow.trigger in UPCOMING_EVENT_TRIGGERS
        ]
        accepted = [guest for guest in event.guests if guest.rsvp_status == RsvpStatus.ACCEPTED]

        for flow in flows:
            scheduled_for = calculate_scheduled_time(flow.trigger, event.date_time, now=now)
            if not scheduled_for:
                continue

            for guest in accepted:
                exists = db.query(AutomationFlowExecution.id).filter(
                    AutomationFlowExecution.flow_id == flow.id,
                    AutomationFlowExecution.guest_id == guest.id
                ).first()
                if exists:
                    continue
                db.add(AutomationFlowExecution(
                    flow_id=flow.id,
                    guest_id=guest.id,
                    status=ExecutionStatus.PENDING,
                    scheduled_for=scheduled_for,
                ))
                scheduled += 1

    db.commit()
    if scheduled:
        logger.info(f"Scheduled {scheduled} executions for upcoming events")
    return scheduled

def cleanup_old_executions(db: Session, days_to_keep: int = 30, now: Optional[datetime] = None) -> int:
    """Delete finished executions older than the retention window"""
    cutoff = (now or datetime.utcnow()) - timedelta(days=days_to_keep)
    deleted = db.query(AutomationFlowExecution).filter(
        AutomationFlowExecution.status.in_([
            ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.SKIPPED
        ]),
        AutomationFlowExecution.executed_at < cutoff
    ).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Deleted {deleted} automation executions older than {days_to_keep} days")
    return deleted

def get_automation_stats(db: Session, event_id: int) -> List[dict]:
    flows = db.query(AutomationFlow).filter(AutomationFlow.event_id == event_id).order_by(AutomationFlow.id).all()

    stats = []
    for flow in flows:
        statuses = [execution.status for execution in flow.executions]
        stats.append({
            "id": flow.id,
            "name": flow.name,
            "trigger": flow.trigger.value,
            "action": flow.action.value,
            "status": flow.status.value,
            "stats": {
                "total": len(statuses),
                "pending": statuses.count(ExecutionStatus.PENDING),
                "completed": statuses.count(ExecutionStatus.COMPLETED),
                "failed": statuses.count(ExecutionStatus.FAILED),
                "skipped": statuses.count(ExecutionStatus.SKIPPED),
            },
        })
    return stats
