"""
Automation flow Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from rsvp_manager.models.enums import AutomationTrigger, AutomationAction, FlowStatus

class FlowCreate(BaseModel):
    """Schema for creating an automation flow"""
    name: str = Field(..., min_length=1, max_length=255)
    trigger: AutomationTrigger
    action: AutomationAction
    delay_hours: Optional[int] = Field(None, ge=1, le=720)
    custom_message: Optional[str] = None
    template_style: Optional[str] = None

class FlowUpdate(BaseModel):
    name: Optional[str] = None
    delay_hours: Optional[int] = Field(None, ge=1, le=720)
    custom_message: Optional[str] = None
    template_style: Optional[str] = None

class FlowStatusUpdate(BaseModel):
    status: FlowStatus

class FlowFromTemplate(BaseModel):
    template_id: str

class FlowResponse(BaseModel):
    id: int
    event_id: int
    name: str
    trigger: AutomationTrigger
    action: AutomationAction
    status: FlowStatus
    delay_hours: Optional[int] = None
    custom_message: Optional[str] = None
    template_style: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
