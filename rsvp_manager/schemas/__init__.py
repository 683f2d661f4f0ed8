"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .guest import *
from .seating import *
from .automation import *
from .notification import *
from .user import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventCreate",
    "EventUpdate",
    "EventResponse",
    "CollaboratorInvite",
    "CollaboratorRoleUpdate",
    "GuestCreate",
    "GuestUpdate",
    "GuestResponse",
    "RsvpSubmit",
    "RsvpUpdate",
    "RsvpResponse",
    "GuestIdsRequest",
    "BulkRsvpUpdate",
    "TableCreate",
    "TableUpdate",
    "AssignGuestsRequest",
    "MoveGuestRequest",
    "RemoveGuestsRequest",
    "AutoArrangeRequest",
    "FlowCreate",
    "FlowUpdate",
    "FlowStatusUpdate",
    "FlowFromTemplate",
    "FlowResponse",
    "MessagingSettingsUpdate",
    "WhatsAppTemplateCreate",
    "MessageTemplateUpsert",
    "SendMessageRequest",
    "BulkJobCreate",
    "InvitationField",
    "UserCreate",
    "UserPlanUpdate",
]
