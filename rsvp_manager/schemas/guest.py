"""
Guest and RSVP Pydantic schemas
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from rsvp_manager.models.enums import RsvpStatus

class GuestCreate(BaseModel):
    """Schema for creating a guest"""
    name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = None
    email: Optional[str] = None
    side: Optional[str] = None
    group_name: Optional[str] = None
    expected_guests: int = Field(1, ge=1)
    notes: Optional[str] = None
    is_test: bool = False

class GuestUpdate(BaseModel):
    """Schema for updating a guest"""
    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    side: Optional[str] = None
    group_name: Optional[str] = None
    expected_guests: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None

class GuestResponse(BaseModel):
    """Guest response schema"""
    id: int
    event_id: int
    name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    slug: str
    side: Optional[str] = None
    group_name: Optional[str] = None
    expected_guests: int
    is_test: bool

    class Config:
        from_attributes = True

class RsvpSubmit(BaseModel):
    """Public RSVP submission"""
    status: RsvpStatus
    guest_count: int = Field(1, ge=0, le=50)
    note: Optional[str] = Field(None, max_length=1000)

class RsvpUpdate(BaseModel):
    """Organizer-side RSVP override"""
    status: RsvpStatus
    guest_count: Optional[int] = Field(None, ge=0)

class RsvpResponse(BaseModel):
    status: RsvpStatus
    guest_count: int
    note: Optional[str] = None
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class GuestIdsRequest(BaseModel):
    guest_ids: List[int] = Field(..., min_length=1)

class BulkRsvpUpdate(BaseModel):
    """Set the same RSVP status on several guests"""
    guest_ids: List[int] = Field(..., min_length=1)
    status: RsvpStatus
    guest_count: Optional[int] = Field(None, ge=0)
