"""Due-action selection and follow-up message building."""
from datetime import datetime, timedelta, timezone

from maintenance.automation import build_action_message, select_due_actions, work_order_ref
from models import (
    Occupier,
    Priority,
    ScheduledAction,
    ScheduledActionStatus,
    ScheduledActionType,
    Vendor,
    WorkOrderStatus,
    WorkOrderView,
)

NOW = datetime(2026, 2, 3, 12, 0, tzinfo=timezone.utc)

VENDOR = Vendor(id="v1", name="Rapid Response Plumbing", trade="PLUMBING", email="jobs@rapid.example.com")
OCCUPIER = Occupier(
    id="o1",
    space_id="s1",
    legal_name="Bean There Coffee LLC",
    brand_name="Bean There Coffee",
    primary_contact_name="Maria Lopez",
    primary_contact_email="maria@beanthere.example.com",
)


def _action(action_type, minutes=-5, status=ScheduledActionStatus.PENDING, action_id="act-1", **payload):
    return ScheduledAction(
        id=action_id,
        work_order_id="wo-1234abcd",
        action_type=action_type,
        scheduled_for=NOW + timedelta(minutes=minutes),
        payload=payload,
        description="Escalate to asset manager if work order not completed by due date",
        status=status,
    )


def _work_order(vendor=VENDOR, occupier=OCCUPIER, status=WorkOrderStatus.ASSIGNED):
    return WorkOrderView(
        id="wo-0000000001234abcd",
        summary="Clogged drain in back room",
        priority=Priority.MEDIUM,
        status=status,
        property_name="Willow Creek Shopping Center",
        space_label="Suite 101",
        vendor=vendor,
        occupier=occupier,
    )


def test_select_due_actions_filters_and_orders():
    actions = [
        _action(ScheduledActionType.OCCUPIER_CHECKIN, minutes=-1, action_id="late"),
        _action(ScheduledActionType.VENDOR_FOLLOWUP, minutes=-60, action_id="early"),
        _action(ScheduledActionType.VENDOR_FOLLOWUP, minutes=30, action_id="future"),
        _action(ScheduledActionType.VENDOR_FOLLOWUP, minutes=-90, action_id="done", status=ScheduledActionStatus.EXECUTED),
        _action(ScheduledActionType.ESCALATION_INTERNAL, minutes=0, action_id="now"),
    ]
    assert [a.id for a in select_due_actions(actions, NOW)] == ["early", "late", "now"]


def test_select_due_actions_treats_naive_as_utc():
    actions = [_action(ScheduledActionType.VENDOR_FOLLOWUP, minutes=-1)]
    assert len(select_due_actions(actions, NOW.replace(tzinfo=None))) == 1


def test_work_order_ref():
    assert work_order_ref("wo-0000000001234abcd") == "1234ABCD"
    assert work_order_ref("abc") == "ABC"


def test_vendor_followup_message():
    msg = build_action_message(_action(ScheduledActionType.VENDOR_FOLLOWUP), _work_order())
    assert msg.recipient_type == "VENDOR"
    assert msg.channel == "EMAIL"
    assert msg.subject == "Follow-up: Work Order #1234ABCD Status"
    assert "Hello Rapid Response Plumbing" in msg.body
    assert "Location: Suite 101" in msg.body
    assert msg.meta["recipient_email"] == "jobs@rapid.example.com"
    assert msg.meta["action_id"] == "act-1"


def test_occupier_checkin_message():
    msg = build_action_message(_action(ScheduledActionType.OCCUPIER_CHECKIN), _work_order())
    assert msg.recipient_type == "OCCUPIER"
    assert msg.subject == "Update: Your Maintenance Request #1234ABCD"
    assert msg.body.startswith("Hello Maria Lopez")
    assert "A technician has been assigned" in msg.body


def test_messages_need_a_recipient():
    assert build_action_message(_action(ScheduledActionType.VENDOR_FOLLOWUP), _work_order(vendor=None)) is None
    assert build_action_message(_action(ScheduledActionType.OCCUPIER_CHECKIN), _work_order(occupier=None)) is None


def test_escalation_is_always_an_internal_note():
    action = _action(ScheduledActionType.ESCALATION_INTERNAL, reason="work_order_overdue")
    msg = build_action_message(action, _work_order(vendor=None, occupier=None), now=NOW)

    assert msg.recipient_type == "INTERNAL"
    assert msg.channel == "NOTE"
    assert msg.subject == "Escalation Alert: Work Order #1234ABCD"
    assert "Vendor: Not assigned" in msg.body
    assert "work_order_overdue" in msg.body
    assert NOW.isoformat() in msg.body
    assert msg.meta["escalation_level"] == 1
