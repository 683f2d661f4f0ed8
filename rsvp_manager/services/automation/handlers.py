"""
Automation event handlers

Application events (an RSVP changed, a message went out, a flow was
switched on) create or adjust flow executions here. Event-based flows run
immediately; time-based ones get a PENDING execution for the sweep.
"""

import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from rsvp_manager.models import AutomationFlow, AutomationFlowExecution, Guest
from rsvp_manager.models.enums import (
    AutomationTrigger, ExecutionStatus, FlowStatus, NotificationChannel, NotificationType, RsvpStatus
)
from rsvp_manager.services.repositories import NotificationRepo
from rsvp_manager.services.automation.types import (
    NO_RESPONSE_TRIGGERS, CONFIRMED_GUEST_TRIGGERS, is_event_based_trigger
)
from rsvp_manager.services.automation.triggers import calculate_scheduled_time

logger = logging.getLogger(__name__)

def _get_execution(db: Session, flow_id: int, guest_id: int) -> Optional[AutomationFlowExecution]:
    return db.query(AutomationFlowExecution).filter(
        AutomationFlowExecution.flow_id == flow_id,
        AutomationFlowExecution.guest_id == guest_id
    ).first()

def last_notification_for_trigger(db: Session, guest_id: int, trigger: AutomationTrigger) -> Optional[datetime]:
    """Send time the no-response clock starts from; WhatsApp/SMS variants only count their channel"""
    channel = None
    if trigger == AutomationTrigger.NO_RESPONSE_WHATSAPP:
        channel = NotificationChannel.WHATSAPP
    elif trigger == AutomationTrigger.NO_RESPONSE_SMS:
        channel = NotificationChannel.SMS

    log = NotificationRepo.last_sent_invitation(db, guest_id, channel)
    return log.sent_at if log else None

async def on_rsvp_status_changed(
    db: Session,
    guest_id: int,
    event_id: int,
    status: RsvpStatus,
    previous_status: Optional[RsvpStatus] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
):
    """Run RSVP_CONFIRMED/RSVP_DECLINED flows and stop no-response chasers"""
    status = RsvpStatus(status)
    trigger = None
    if status == RsvpStatus.ACCEPTED and previous_status != RsvpStatus.ACCEPTED:
        trigger = AutomationTrigger.RSVP_CONFIRMED
    elif status == RsvpStatus.DECLINED and previous_status != RsvpStatus.DECLINED:
        trigger = AutomationTrigger.RSVP_DECLINED

    if not trigger:
        return

    flows = db.query(AutomationFlow).filter(
        AutomationFlow.event_id == event_id,
        AutomationFlow.trigger == trigger,
        AutomationFlow.status == FlowStatus.ACTIVE
    ).all()

    logger.info(f"RSVP {status.value} for guest {guest_id}: {len(flows)} {trigger.value} flows")
    for flow in flows:
        await _execute_immediately(db, flow, guest_id, transport)

    cancelled = _cancel_pending_no_response(db, guest_id)
    if cancelled:
        logger.info(f"Skipped {cancelled} pending no-response executions for guest {guest_id}")

def on_notification_sent(
    db: Session,
    guest_id: int,
    event_id: int,
    notification_type: NotificationType,
    sent_at: datetime,
    now: Optional[datetime] = None
):
    """(Re)schedule the event's no-response flows for a still pending guest"""
    now = now or datetime.utcnow()

    flows = db.query(AutomationFlow).filter(
        AutomationFlow.event_id == event_id,
        AutomationFlow.trigger.in_(NO_RESPONSE_TRIGGERS),
        AutomationFlow.status == FlowStatus.ACTIVE
    ).all()
    if not flows:
        return

    guest = db.query(Guest).filter(Guest.id == guest_id).first()
    if not guest or guest.rsvp_status != RsvpStatus.PENDING:
        logger.info(f"Guest {guest_id} is not pending, no-response flows not scheduled")
        return

    for flow in flows:
        scheduled_for = calculate_scheduled_time(flow.trigger, flow.event.date_time, sent_at, flow.delay_hours, now=now)
        if not scheduled_for or scheduled_for <= now:
            continue

        existing = _get_execution(db, flow.id, guest_id)
        if existing:
            if existing.status == ExecutionStatus.PENDING:
                existing.scheduled_for = scheduled_for
                logger.info(f"Rescheduled execution {existing.id} for {scheduled_for}")
        else:
            db.add(AutomationFlowExecution(
                flow_id=flow.id,
                guest_id=guest_id,
                status=ExecutionStatus.PENDING,
                scheduled_for=scheduled_for,
            ))
            logger.info(f"Scheduled flow {flow.id} ({flow.trigger.value}) for guest {guest_id} at {scheduled_for}")

    db.commit()

def on_flow_activated(db: Session, flow_id: int, now: Optional[datetime] = None) -> int:
    """Create executions for every eligible guest of a newly active time-based flow"""
    now = now or datetime.utcnow()

    flow = db.query(AutomationFlow).filter(AutomationFlow.id == flow_id).first()
    if not flow or flow.status != FlowStatus.ACTIVE or is_event_based_trigger(flow.trigger):
        return 0

    created = 0
    for guest in flow.event.guests:
        if _get_execution(db, flow.id, guest.id):
            continue

        last_sent = last_notification_for_trigger(db, guest.id, flow.trigger)
        if flow.trigger in NO_RESPONSE_TRIGGERS:
            eligible = guest.rsvp_status == RsvpStatus.PENDING and last_sent is not None
        elif flow.trigger in CONFIRMED_GUEST_TRIGGERS:
            eligible = guest.rsvp_status == RsvpStatus.ACCEPTED
        else:
            eligible = False

        scheduled_for = calculate_scheduled_time(flow.trigger, flow.event.date_time, last_sent, flow.delay_hours, now=now)
        if eligible and scheduled_for and scheduled_for > now:
            db.add(AutomationFlowExecution(
                flow_id=flow.id,
                guest_id=guest.id,
                status=ExecutionStatus.PENDING,
                scheduled_for=scheduled_for,
            ))
            created += 1

    db.commit()
    logger.info(f"Flow {flow.id} activated: {created} executions scheduled")
    return created

async def _execute_immediately(
    db: Session,
    flow: AutomationFlow,
    guest_id: int,
    transport: Optional[httpx.AsyncBaseTransport] = None
):
    from rsvp_manager.services.automation.actions import execute_action, build_context

    execution = _get_execution(db, flow.id, guest_id)
    if execution and execution.status == ExecutionStatus.COMPLETED:
        return

    if not execution:
        execution = AutomationFlowExecution(flow_id=flow.id, guest_id=guest_id)
        db.add(execution)
    execution.status = ExecutionStatus.PROCESSING
    db.commit()

    try:
        result = await execute_action(db, flow.action, build_context(flow, execution.guest), transport=transport)
    except Exception as e:
        logger.exception(f"Immediate execution {execution.id} of flow {flow.id} failed")
        db.rollback()
        execution.status = ExecutionStatus.FAILED
        execution.executed_at = datetime.utcnow()
        execution.error_message = str(e)
        execution.retry_count = (execution.retry_count or 0) + 1
        db.commit()
        return

    execution.status = ExecutionStatus.COMPLETED if result.success else ExecutionStatus.FAILED
    execution.executed_at = datetime.utcnow()
    execution.error_message = None if result.success else result.message
    db.commit()

def _cancel_pending_no_response(db: Session, guest_id: int) -> int:
    flow_ids = [
        flow_id for (flow_id,) in db.query(AutomationFlow.id).filter(
            AutomationFlow.trigger.in_(NO_RESPONSE_TRIGGERS)
        ).all()
    ]
    if not flow_ids:
        return 0

    executions = db.query(AutomationFlowExecution).filter(
        AutomationFlowExecution.guest_id == guest_id,
        AutomationFlowExecution.status == ExecutionStatus.PENDING,
        AutomationFlowExecution.flow_id.in_(flow_ids)
    ).all()
    for execution in executions:
        execution.status = ExecutionStatus.SKIPPED
    db.commit()
    return len(executions)
