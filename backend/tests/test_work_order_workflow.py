import pytest

from maintenance.workflow import (
    TERMINAL_STATUSES,
    InvalidTransitionError,
    WorkOrderEvent,
    allowed_events,
    next_status,
)
from models import WorkOrderStatus


def test_happy_path():
    status = WorkOrderStatus.NEW
    for event in (WorkOrderEvent.ASSIGN_VENDOR, WorkOrderEvent.VENDOR_CONFIRMED, WorkOrderEvent.RESOLVE):
        status = next_status(status, event)
    assert status == WorkOrderStatus.RESOLVED


def test_vendor_can_confirm_from_new():
    assert next_status(WorkOrderStatus.NEW, WorkOrderEvent.VENDOR_CONFIRMED) == WorkOrderStatus.IN_PROGRESS


@pytest.mark.parametrize("status", [WorkOrderStatus.NEW, WorkOrderStatus.ASSIGNED, WorkOrderStatus.IN_PROGRESS])
def test_any_open_status_can_escalate(status):
    assert next_status(status, WorkOrderEvent.ESCALATE) == WorkOrderStatus.ESCALATED


@pytest.mark.parametrize("event", list(WorkOrderEvent))
def test_terminal_statuses_reject_everything(event):
    for status in TERMINAL_STATUSES:
        with pytest.raises(InvalidTransitionError) as exc:
            next_status(status, event)
        assert exc.value.status == status
        assert exc.value.event == event
        assert allowed_events(status) == []


def test_cannot_resolve_before_work_starts():
    with pytest.raises(ValueError):
        next_status(WorkOrderStatus.ASSIGNED, WorkOrderEvent.RESOLVE)
    assert WorkOrderEvent.RESOLVE not in allowed_events(WorkOrderStatus.NEW)
