"""
Automation flows: trigger checks, actions, event handlers and the cron sweep
"""

from rsvp_manager.services.automation.types import (
    ActionResult, AutomationContext, TriggerResult, FLOW_TEMPLATES,
    is_event_based_trigger, requires_delay_hours
)
from rsvp_manager.services.automation.triggers import check_trigger, calculate_scheduled_time
from rsvp_manager.services.automation.actions import execute_action
from rsvp_manager.services.automation.handlers import (
    on_rsvp_status_changed, on_notification_sent, on_flow_activated
)
from rsvp_manager.services.automation.processor import (
    process_automation_flows, schedule_upcoming_event_triggers,
    cleanup_old_executions, get_automation_stats
)
from rsvp_manager.services.automation.flows import AutomationFlowService

__all__ = [
    "ActionResult",
    "AutomationContext",
    "TriggerResult",
    "FLOW_TEMPLATES",
    "is_event_based_trigger",
    "requires_delay_hours",
    "check_trigger",
    "calculate_scheduled_time",
    "execute_action",
    "on_rsvp_status_changed",
    "on_notification_sent",
    "on_flow_activated",
    "process_automation_flows",
    "schedule_upcoming_event_triggers",
    "cleanup_old_executions",
    "get_automation_stats",
    "AutomationFlowService",
]
