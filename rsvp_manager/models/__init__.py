"""
Database models package
"""

from .user import User
from .event import WeddingEvent, EventCollaborator
from .guest import Guest, GuestRsvp
from .table import WeddingTable, TableAssignment
from .notification import NotificationLog, MessageTemplate, MessagingProviderSettings, WhatsAppTemplate
from .automation import AutomationFlow, AutomationFlowExecution
from .bulk_job import BulkMessageJob, BulkMessageJobItem

__all__ = [
    "User",
    "WeddingEvent",
    "EventCollaborator",
    "Guest",
    "GuestRsvp",
    "WeddingTable",
    "TableAssignment",
    "NotificationLog",
    "MessageTemplate",
    "MessagingProviderSettings",
    "WhatsAppTemplate",
    "AutomationFlow",
    "AutomationFlowExecution",
    "BulkMessageJob",
    "BulkMessageJobItem",
]
