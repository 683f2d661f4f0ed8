"""
User administration Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from rsvp_manager.models.enums import PlanTier, UserRole

class UserCreate(BaseModel):
    """Platform admin creates a user; the API token is issued server-side"""
    email: EmailStr
    name: Optional[str] = None
    plan: PlanTier = PlanTier.FREE
    role: UserRole = UserRole.ROLE_WEDDING_OWNER

class UserPlanUpdate(BaseModel):
    plan: Optional[PlanTier] = None
    whatsapp_bonus: Optional[int] = Field(None, ge=0)
    sms_bonus: Optional[int] = Field(None, ge=0)
