"""Reactive maintenance: decision rules, work order workflow, follow-up automation, email intake."""

from maintenance.automation import build_action_message, select_due_actions
from maintenance.decisions import decide_work_order
from maintenance.workflow import InvalidTransitionError, WorkOrderEvent, allowed_events, next_status

__all__ = [
    "build_action_message",
    "select_due_actions",
    "decide_work_order",
    "InvalidTransitionError",
    "WorkOrderEvent",
    "allowed_events",
    "next_status",
]
