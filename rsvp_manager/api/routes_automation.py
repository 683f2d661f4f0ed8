"""
Automation API routes - flows, flow templates and execution stats
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.models import AutomationFlow, User
from rsvp_manager.models.enums import CollaboratorRole
from rsvp_manager.schemas.automation import FlowCreate, FlowFromTemplate, FlowResponse, FlowStatusUpdate, FlowUpdate
from rsvp_manager.services.automation import FLOW_TEMPLATES, AutomationFlowService, get_automation_stats
from rsvp_manager.services.permissions import get_accessible_event
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import get_current_user

router = APIRouter()

def flow_payload(flow: AutomationFlow) -> dict:
    return FlowResponse.model_validate(flow).model_dump(mode="json")

@router.get("/automation/templates")
async def list_flow_templates(user: User = Depends(get_current_user)):
    """Ready-made flows an organizer can add with one click"""
    return success_response(message="Flow templates", data=[template.to_dict() for template in FLOW_TEMPLATES])

@router.get("/{event_id}/automation/flows")
async def list_flows(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    flows = AutomationFlowService.list_flows(db, event_id)
    return success_response(message=f"Found {len(flows)} flows", data=[flow_payload(flow) for flow in flows])

@router.post("/{event_id}/automation/flows")
async def create_flow(
    event_id: int,
    flow_data: FlowCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    flow = AutomationFlowService.create_flow(db, event_id, flow_data)
    return success_response(message="Flow created", data=flow_payload(flow), status_code=201)

@router.post("/{event_id}/automation/flows/from-template")
async def create_flow_from_template(
    event_id: int,
    request: FlowFromTemplate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    flow = AutomationFlowService.create_from_template(db, event_id, request.template_id)
    return success_response(message="Flow created from template", data=flow_payload(flow), status_code=201)

@router.patch("/{event_id}/automation/flows/{flow_id}")
async def update_flow(
    event_id: int,
    flow_id: int,
    flow_update: FlowUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    flow = AutomationFlowService.update_flow(db, event_id, flow_id, flow_update)
    return success_response(message="Flow updated", data=flow_payload(flow))

@router.put("/{event_id}/automation/flows/{flow_id}/status")
async def set_flow_status(
    event_id: int,
    flow_id: int,
    request: FlowStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Activate, pause or archive a flow"""
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    flow = AutomationFlowService.set_status(db, event_id, flow_id, request.status)
    return success_response(message=f"Flow is now {flow.status.value}", data=flow_payload(flow))

@router.delete("/{event_id}/automation/flows/{flow_id}")
async def delete_flow(
    event_id: int,
    flow_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id, CollaboratorRole.EDITOR)
    AutomationFlowService.delete_flow(db, event_id, flow_id)
    return success_response(message="Flow deleted")

@router.get("/{event_id}/automation/stats")
async def automation_stats(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    get_accessible_event(db, user, event_id)
    return success_response(message="Automation statistics", data=get_automation_stats(db, event_id))
