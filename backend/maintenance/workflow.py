"""Work order status transitions. Triggered by vendor confirmation, manual resolution or escalation."""
from __future__ import annotations

from enum import Enum

from models import WorkOrderStatus


class WorkOrderEvent(str, Enum):
    ASSIGN_VENDOR = "assign_vendor"
    VENDOR_CONFIRMED = "vendor_confirmed"
    RESOLVE = "resolve"
    ESCALATE = "escalate"


class InvalidTransitionError(ValueError):
    def __init__(self, status: WorkOrderStatus, event: WorkOrderEvent):
        super().__init__(f"Cannot apply {event.value!r} to a work order in status {status.value}")
        self.status = status
        self.event = event


OPEN_STATUSES = frozenset({WorkOrderStatus.NEW, WorkOrderStatus.ASSIGNED, WorkOrderStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({WorkOrderStatus.RESOLVED, WorkOrderStatus.ESCALATED})

TRANSITIONS: dict[tuple[WorkOrderStatus, WorkOrderEvent], WorkOrderStatus] = {
    (WorkOrderStatus.NEW, WorkOrderEvent.ASSIGN_VENDOR): WorkOrderStatus.ASSIGNED,
    # Vendor may confirm straight from NEW when dispatched by phone.
    (WorkOrderStatus.NEW, WorkOrderEvent.VENDOR_CONFIRMED): WorkOrderStatus.IN_PROGRESS,
    (WorkOrderStatus.ASSIGNED, WorkOrderEvent.VENDOR_CONFIRMED): WorkOrderStatus.IN_PROGRESS,
    (WorkOrderStatus.IN_PROGRESS, WorkOrderEvent.RESOLVE): WorkOrderStatus.RESOLVED,
    **{(s, WorkOrderEvent.ESCALATE): WorkOrderStatus.ESCALATED for s in OPEN_STATUSES},
}


def next_status(status: WorkOrderStatus, event: WorkOrderEvent) -> WorkOrderStatus:
    try:
        return TRANSITIONS[(status, event)]
    except KeyError:
        raise InvalidTransitionError(status, event) from None


def allowed_events(status: WorkOrderStatus) -> list[WorkOrderEvent]:
    return [event for (s, event) in TRANSITIONS if s == status]
