"""
Automation flow management
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import AutomationFlow
from rsvp_manager.models.enums import FlowStatus
from rsvp_manager.schemas.automation import FlowCreate, FlowUpdate
from rsvp_manager.services.automation.types import get_flow_template, requires_delay_hours
from rsvp_manager.services.automation.handlers import on_flow_activated

logger = logging.getLogger(__name__)

class AutomationFlowService:
    """CRUD and status changes for an event's automation flows"""

    @staticmethod
    def list_flows(db: Session, event_id: int) -> List[AutomationFlow]:
        return db.query(AutomationFlow).filter(
            AutomationFlow.event_id == event_id
        ).order_by(AutomationFlow.created_at, AutomationFlow.id).all()

    @staticmethod
    def get_flow(db: Session, event_id: int, flow_id: int) -> AutomationFlow:
        flow = db.query(AutomationFlow).filter(
            AutomationFlow.id == flow_id,
            AutomationFlow.event_id == event_id
        ).first()
        if not flow:
            raise NotFoundError("Automation flow")
        return flow

    @staticmethod
    def create_flow(db: Session, event_id: int, data: FlowCreate) -> AutomationFlow:
        if requires_delay_hours(data.trigger) and not data.delay_hours:
            raise ValidationError(f"Trigger {data.trigger.value} requires delay_hours")

        flow = AutomationFlow(
            event_id=event_id,
            name=data.name,
            trigger=data.trigger,
            action=data.action,
            status=FlowStatus.DRAFT,
            delay_hours=data.delay_hours,
            custom_message=data.custom_message,
            template_style=data.template_style,
        )
        db.add(flow)
        db.commit()
        db.refresh(flow)

        logger.info(f"Created automation flow {flow.id} ({flow.trigger.value} -> {flow.action.value}) for event {event_id}")
        return flow

    @staticmethod
    def create_from_template(db: Session, event_id: int, template_id: str) -> AutomationFlow:
        template = get_flow_template(template_id)
        if not template:
            raise NotFoundError("Flow template")

        return AutomationFlowService.create_flow(db, event_id, FlowCreate(
            name=template.name,
            trigger=template.trigger,
            action=template.action,
        ))

    @staticmethod
    def update_flow(db: Session, event_id: int, flow_id: int, data: FlowUpdate) -> AutomationFlow:
        flow = AutomationFlowService.get_flow(db, event_id, flow_id)

        for field, value in data.dict(exclude_unset=True).items():
            setattr(flow, field, value)

        if requires_delay_hours(flow.trigger) and not flow.delay_hours:
            raise ValidationError(f"Trigger {flow.trigger.value} requires delay_hours")

        db.commit()
        db.refresh(flow)
        return flow

    @staticmethod
    def set_status(db: Session, event_id: int, flow_id: int, status: FlowStatus) -> AutomationFlow:
        """Change a flow's status; activating it schedules eligible guests"""
        flow = AutomationFlowService.get_flow(db, event_id, flow_id)
        previous = flow.status
        flow.status = status
        db.commit()
        db.refresh(flow)

        logger.info(f"Flow {flow.id} status {previous.value} -> {status.value}")
        if status == FlowStatus.ACTIVE and previous != FlowStatus.ACTIVE:
            on_flow_activated(db, flow.id)
        return flow

    @staticmethod
    def delete_flow(db: Session, event_id: int, flow_id: int):
        flow = AutomationFlowService.get_flow(db, event_id, flow_id)
        db.delete(flow)
        db.commit()
        logger.info(f"Deleted automation flow {flow_id}")
