"""
Seating Pydantic schemas
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from rsvp_manager.models.enums import RsvpStatus

class TableCreate(BaseModel):
    """Schema for creating a table"""
    name: str = Field(..., min_length=1, max_length=100)
    capacity: int = Field(10, ge=1, le=100)
    shape: str = Field("circle", pattern="^(square|circle|rectangle|oval)$")
    seating_arrangement: str = Field("even", pattern="^(even|bride-side|sides-only|custom)$")
    position_x: float = 0
    position_y: float = 0
    width: float = Field(100, gt=0)
    height: float = Field(100, gt=0)
    rotation: float = 0
    color: Optional[str] = None

class TableUpdate(BaseModel):
    """Schema for updating a table"""
    name: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1, le=100)
    shape: Optional[str] = Field(None, pattern="^(square|circle|rectangle|oval)$")
    seating_arrangement: Optional[str] = Field(None, pattern="^(even|bride-side|sides-only|custom)$")
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    rotation: Optional[float] = None
    color: Optional[str] = None

class AssignGuestsRequest(BaseModel):
    guest_ids: List[int] = Field(..., min_length=1)

class MoveGuestRequest(BaseModel):
    table_id: int
    seat_number: Optional[int] = None

class RemoveGuestsRequest(BaseModel):
    guest_ids: List[int] = Field(..., min_length=1)

class AutoArrangeRequest(BaseModel):
    """Options for automatic table arrangement"""
    table_size: int = Field(10, ge=1, le=100)
    table_shape: str = Field("circle", pattern="^(square|circle|rectangle|oval)$")
    group_by_side: bool = True
    sides: Optional[List[str]] = None
    groups: Optional[List[str]] = None
    rsvp_statuses: List[RsvpStatus] = [RsvpStatus.ACCEPTED]
