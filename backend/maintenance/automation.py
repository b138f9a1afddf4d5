"""
Follow-up automation: pick the scheduled actions that are due and build the
message each one should send. Delivery and status updates belong to the caller.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from models import (
    ActionMessage,
    ScheduledAction,
    ScheduledActionStatus,
    ScheduledActionType,
    WorkOrderStatus,
    WorkOrderView,
)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def select_due_actions(actions: Iterable[ScheduledAction], now: datetime) -> List[ScheduledAction]:
    """Pending actions scheduled at or before now, oldest first."""
    now = _aware(now)
    due = [
        a for a in actions
        if a.status == ScheduledActionStatus.PENDING and _aware(a.scheduled_for) <= now
    ]
    return sorted(due, key=lambda a: _aware(a.scheduled_for))


def work_order_ref(work_order_id: str) -> str:
    return work_order_id[-8:].upper()


def _location_line(wo: WorkOrderView) -> str:
    return f"Location: {wo.space_label}\n" if wo.space_label else ""


def _status_note(status: WorkOrderStatus) -> str:
    if status == WorkOrderStatus.IN_PROGRESS:
        return "Work is currently in progress. We expect the issue to be resolved soon."
    if status == WorkOrderStatus.ASSIGNED:
        return "A technician has been assigned and will be in contact shortly."
    return "We are actively working on your request."


def build_action_message(
    action: ScheduledAction,
    work_order: WorkOrderView,
    now: Optional[datetime] = None,
) -> Optional[ActionMessage]:
    """
    Message for one due action, or None when the action has no recipient
    (vendor follow-up without a vendor, check-in without an occupier).
    """
    ref = work_order_ref(work_order.id)
    meta = {"automated_action": True, "action_id": action.id}

    if action.action_type == ScheduledActionType.VENDOR_FOLLOWUP:
        vendor = work_order.vendor
        if vendor is None:
            return None
        body = (
            f"Hello {vendor.name},\n\n"
            f"This is an automated follow-up regarding Work Order #{ref}.\n\n"
            f"Property: {work_order.property_name}\n"
            f"{_location_line(work_order)}"
            f"Issue: {work_order.summary}\n"
            f"Priority: {work_order.priority.value}\n\n"
            "Please provide a status update on this work order at your earliest convenience. "
            "If the work has been completed, kindly confirm so we can close out this ticket.\n\n"
            "Thank you,\nProperty Management"
        )
        return ActionMessage(
            recipient_type="VENDOR",
            channel="EMAIL",
            subject=f"Follow-up: Work Order #{ref} Status",
            body=body,
            meta={**meta, "recipient_name": vendor.name, "recipient_email": vendor.email},
        )

    if action.action_type == ScheduledActionType.OCCUPIER_CHECKIN:
        occupier = work_order.occupier
        if occupier is None:
            return None
        name = occupier.primary_contact_name or occupier.brand_name or occupier.legal_name
        vendor_line = f"Assigned Vendor: {work_order.vendor.name}\n" if work_order.vendor else ""
        body = (
            f"Hello {name},\n\n"
            f"We wanted to follow up on your maintenance request regarding: {work_order.summary}\n\n"
            f"Current Status: {work_order.status.value.replace('_', ' ')}\n"
            f"{vendor_line}\n"
            f"{_status_note(work_order.status)}\n\n"
            "If you have any questions or concerns, please don't hesitate to reach out.\n\n"
            "Thank you for your patience,\nProperty Management Team"
        )
        return ActionMessage(
            recipient_type="OCCUPIER",
            channel="EMAIL",
            subject=f"Update: Your Maintenance Request #{ref}",
            body=body,
            meta={**meta, "recipient_name": name, "recipient_email": occupier.primary_contact_email},
        )

    # Escalations always produce an internal note.
    vendor_line = (
        f"Assigned Vendor: {work_order.vendor.name}" if work_order.vendor else "Vendor: Not assigned"
    )
    reason = action.payload.get("reason") or action.description
    triggered = f"\n\nAutomated escalation triggered at: {now.isoformat()}" if now else ""
    body = (
        f"ESCALATION NOTICE\n\nWork Order #{ref} requires attention.\n\n"
        f"Property: {work_order.property_name}\n"
        f"{_location_line(work_order)}"
        f"Issue: {work_order.summary}\n"
        f"Priority: {work_order.priority.value}\n"
        f"Current Status: {work_order.status.value}\n"
        f"{vendor_line}\n\n"
        f"Reason for Escalation: {reason}"
        f"{triggered}"
    )
    return ActionMessage(
        recipient_type="INTERNAL",
        channel="NOTE",
        subject=f"Escalation Alert: Work Order #{ref}",
        body=body,
        meta={**meta, "escalation_level": action.payload.get("escalation_level", 1)},
    )
