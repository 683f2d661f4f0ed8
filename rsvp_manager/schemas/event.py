"""
Event and collaborator Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from rsvp_manager.models.enums import CollaboratorRole

class EventCreate(BaseModel):
    """Schema for creating an event"""
    title: str = Field(..., min_length=1, max_length=255)
    date_time: datetime
    location: str = Field(..., min_length=1)
    venue: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    sms_sender_id: Optional[str] = Field(None, max_length=11)

class EventUpdate(BaseModel):
    """Schema for updating an event"""
    title: Optional[str] = None
    date_time: Optional[datetime] = None
    location: Optional[str] = None
    venue: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    sms_sender_id: Optional[str] = Field(None, max_length=11)
    is_active: Optional[bool] = None

class EventResponse(BaseModel):
    """Basic event response"""
    id: int
    owner_id: int
    title: str
    date_time: datetime
    location: str
    venue: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    image_path: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

class CollaboratorInvite(BaseModel):
    """Invite a registered user to an event"""
    email: EmailStr
    role: CollaboratorRole = CollaboratorRole.VIEWER

class CollaboratorRoleUpdate(BaseModel):
    role: CollaboratorRole
