"""
Business rules for reactive maintenance work orders.

Deterministic: consumes an already-extracted ExtractedWorkOrder and produces
a WorkOrderDecision (priority, SLA, due date, approval, vendor, visit window,
follow-up actions). Never raises for bad or partial input; defaults apply and
a human reviews the plan before it is executed.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Protocol, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models import (
    CATEGORY_TO_TRADE,
    GENERAL_CONTRACTOR_TRADE,
    BusinessImpact,
    ExtractedWorkOrder,
    IssueCategory,
    Priority,
    ScheduledActionProposal,
    ScheduledActionType,
    Vendor,
    VisitWindow,
    WorkOrderDecision,
    WorkOrderStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_TIME_ZONE = os.environ.get("DEFAULT_TIME_ZONE", "America/New_York")

SLA_HOURS = {
    Priority.EMERGENCY: 2,
    Priority.HIGH: 4,
    Priority.MEDIUM: 24,
    Priority.LOW: 72,
}

CATEGORY_BASE_COSTS = {
    IssueCategory.ROOFING: 3500,
    IssueCategory.HVAC: 2000,
    IssueCategory.PLUMBING: 1200,
    IssueCategory.ELECTRICAL: 1500,
    IssueCategory.LIFE_SAFETY: 4000,
    IssueCategory.GENERAL: 1500,
    IssueCategory.OTHER: 2000,
}

PRIORITY_COST_MULTIPLIERS = {
    Priority.EMERGENCY: 2.0,  # call-out premium
    Priority.HIGH: 1.5,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 0.8,
}

AUTO_APPROVAL_LIMIT = 2500

WINTER_MONTHS = {12, 1, 2}
SUMMER_MONTHS = {6, 7, 8}

BUSINESS_START_HOUR = 8
BUSINESS_END_HOUR = 18
EXTENDED_END_HOUR = 22
VISIT_DURATION_HOURS = 2
OCCUPIER_CHECKIN_HOUR = 9
ESCALATION_GRACE_HOURS = 24

LIFE_SAFETY_KEYWORDS = [
    "fire", "smoke", "burning smell", "electrical burning", "gas leak", "gas smell",
    "blocked exit", "blocked egress", "emergency exit", "sprinkler", "fire alarm",
    "evacuation", "structural damage", "collapse", "flooding", "sewage", "hazmat",
    "chemical spill",
]

WATER_EMERGENCY_KEYWORDS = [
    "water intrusion", "water damage", "active leak", "flooding", "burst pipe",
    "water pouring", "ceiling leak", "roof leak active", "water on floor",
]

OPERATIONS_IMPACT_KEYWORDS = [
    "cannot operate", "store closure", "business closed", "uninhabitable", "cannot open",
    "customer safety", "employee safety", "health hazard", "no power", "no heat",
    "no cooling", "no water", "sales floor", "lobby", "main entrance", "critical area",
]

MODERATE_IMPACT_KEYWORDS = [
    "discomfort", "inconvenience", "minor leak", "slow drain", "flickering light",
    "back office", "storage area", "break room",
]

EXTENDED_HOURS_KEYWORDS = [
    "open until 10", "open until 11", "open til 10", "open til 11", "hours are 7am-10pm",
    "hours are 8am-10pm", "7am to 10pm", "8am to 10pm", "24/7", "24 hour", "open late",
    "evening hours",
]

NO_HEAT_PHRASES = ("no heat", "heat is out", "heating failure", "furnace out")
NO_COOLING_PHRASES = ("no cooling", "no air", "ac not working", "a/c not working")


class VendorDirectory(Protocol):
    def find_vendor_by_trade(self, trade: str) -> Optional[Vendor]:
        ...


def _has_any(text: str, keywords: Iterable[str]) -> bool:
    return any(kw in text for kw in keywords)


def resolve_time_zone(name: Optional[str]) -> Tuple[ZoneInfo, str]:
    """IANA zone for a property; unknown or blank names fall back to DEFAULT_TIME_ZONE."""
    candidate = (name or "").strip()
    if candidate:
        try:
            return ZoneInfo(candidate), candidate
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("[maintenance] unknown time zone %r, using %s", candidate, DEFAULT_TIME_ZONE)
    return ZoneInfo(DEFAULT_TIME_ZONE), DEFAULT_TIME_ZONE


def _as_aware(now: datetime) -> datetime:
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def determine_priority(extracted: ExtractedWorkOrder, local_now: datetime) -> Priority:
    """
    First matching rule wins. local_now is in the property time zone and
    drives the seasonal HVAC escalation.
    """
    desc = extracted.description.lower()
    category = extracted.issue_category

    if category == IssueCategory.LIFE_SAFETY or _has_any(desc, LIFE_SAFETY_KEYWORDS):
        return Priority.EMERGENCY

    if _has_any(desc, WATER_EMERGENCY_KEYWORDS):
        if _has_any(desc, OPERATIONS_IMPACT_KEYWORDS):
            return Priority.EMERGENCY
        return Priority.HIGH

    if category == IssueCategory.ELECTRICAL and "burning" in desc:
        return Priority.EMERGENCY

    no_heat = _has_any(desc, NO_HEAT_PHRASES)
    no_cooling = _has_any(desc, NO_COOLING_PHRASES)
    if category == IssueCategory.HVAC:
        if (no_heat and local_now.month in WINTER_MONTHS) or (
            no_cooling and local_now.month in SUMMER_MONTHS
        ):
            return Priority.EMERGENCY

    if extracted.severity in (Priority.EMERGENCY, Priority.HIGH):
        return extracted.severity

    if category == IssueCategory.HVAC:
        return Priority.HIGH if (no_heat or no_cooling) else Priority.MEDIUM

    if category == IssueCategory.PLUMBING:
        if "clogged" in desc or "slow drain" in desc:
            return Priority.MEDIUM
        if "leak" in desc:
            return Priority.HIGH
        return Priority.MEDIUM

    if category == IssueCategory.ROOFING:
        return Priority.HIGH if "leak" in desc else Priority.MEDIUM

    if category == IssueCategory.OTHER:
        return Priority.MEDIUM
    if extracted.severity == Priority.LOW:
        return Priority.LOW
    return Priority.MEDIUM


def sla_hours_for(priority: Priority) -> int:
    return SLA_HOURS.get(priority, SLA_HOURS[Priority.MEDIUM])


def determine_business_impact(extracted: ExtractedWorkOrder, priority: Priority) -> BusinessImpact:
    desc = extracted.description.lower()
    if priority == Priority.EMERGENCY:
        return BusinessImpact.CRITICAL
    if _has_any(desc, OPERATIONS_IMPACT_KEYWORDS):
        return BusinessImpact.MAJOR if priority == Priority.HIGH else BusinessImpact.MODERATE
    if _has_any(desc, MODERATE_IMPACT_KEYWORDS) or priority in (Priority.HIGH, Priority.MEDIUM):
        return BusinessImpact.MODERATE
    return BusinessImpact.MINOR


def estimate_cost(category: IssueCategory, priority: Priority) -> float:
    base = CATEGORY_BASE_COSTS.get(category, CATEGORY_BASE_COSTS[IssueCategory.OTHER])
    return float(round(base * PRIORITY_COST_MULTIPLIERS[priority]))


def determine_owner_approval(estimated_cost: float) -> Tuple[bool, float]:
    """
    Above the auto-approval limit the owner must sign off; the vendor may
    still proceed with temporary mitigation up to the limit.
    """
    return estimated_cost > AUTO_APPROVAL_LIMIT, float(AUTO_APPROVAL_LIMIT)


def select_vendor(category: IssueCategory, directory: Optional[VendorDirectory]) -> Optional[Vendor]:
    """Matching trade first, then a general contractor; None leaves the work order unassigned."""
    if directory is None:
        return None
    trade = CATEGORY_TO_TRADE.get(category, GENERAL_CONTRACTOR_TRADE)
    trades = [trade] if trade == GENERAL_CONTRACTOR_TRADE else [trade, GENERAL_CONTRACTOR_TRADE]
    for t in trades:
        try:
            vendor = directory.find_vendor_by_trade(t)
        except Exception as e:
            logger.warning("[maintenance] vendor lookup failed trade=%s error=%s", t, e)
            return None
        if vendor is not None:
            return vendor
    logger.info("[maintenance] no vendor available for trade=%s", trade)
    return None


def compute_due_date(now: datetime, sla_hours: int, tz: ZoneInfo) -> datetime:
    return (_as_aware(now) + timedelta(hours=sla_hours)).astimezone(tz)


def calculate_visit_window(
    sla_hours: int,
    now: datetime,
    tz: ZoneInfo,
    access_constraints: Optional[str] = None,
) -> VisitWindow:
    """
    Two-hour visit window in property local time.

    Starts two hours after the current hour, clamped into business hours
    (8:00-18:00, or 8:00-22:00 when access notes mention extended hours).
    Urgent work (SLA <= 4h) that would miss its due time is dispatched
    within the hour instead.
    """
    local_now = _as_aware(now).astimezone(tz)
    extended = _has_any((access_constraints or "").lower(), EXTENDED_HOURS_KEYWORDS)
    end_hour = EXTENDED_END_HOUR if extended else BUSINESS_END_HOUR

    top_of_hour = local_now.replace(minute=0, second=0, microsecond=0)
    start_hour = local_now.hour + 2
    if start_hour < BUSINESS_START_HOUR:
        start = top_of_hour.replace(hour=BUSINESS_START_HOUR)
    elif start_hour >= end_hour:
        start = (top_of_hour + timedelta(days=1)).replace(hour=BUSINESS_START_HOUR)
    else:
        start = top_of_hour.replace(hour=start_hour)
    end = min(start + timedelta(hours=VISIT_DURATION_HOURS), start.replace(hour=end_hour))

    due = compute_due_date(now, sla_hours, tz)
    if start > due and sla_hours <= SLA_HOURS[Priority.HIGH]:
        urgent = (local_now + timedelta(hours=1)).replace(minute=0, second=0, microsecond=0)
        return VisitWindow(start=urgent, end=urgent + timedelta(hours=VISIT_DURATION_HOURS))
    return VisitWindow(start=start, end=end)


def generate_scheduled_actions(
    priority: Priority,
    due_at: datetime,
    now: datetime,
    tz: ZoneInfo,
    enabled_action_types: Optional[Iterable[ScheduledActionType]] = None,
) -> List[ScheduledActionProposal]:
    """Vendor follow-up, next-morning occupier check-in and post-due escalation, filtered by the allow-list."""
    local_now = _as_aware(now).astimezone(tz)
    followup_hours = 1 if priority in (Priority.EMERGENCY, Priority.HIGH) else 4
    checkin_at = (local_now + timedelta(days=1)).replace(
        hour=OCCUPIER_CHECKIN_HOUR, minute=0, second=0, microsecond=0
    )

    actions = [
        ScheduledActionProposal(
            action_type=ScheduledActionType.VENDOR_FOLLOWUP,
            scheduled_for=local_now + timedelta(hours=followup_hours),
            payload={"check_for": "vendor_confirmation", "escalate_if_no_response": True},
            description=f"Follow up with vendor if no confirmation received ({followup_hours}h after dispatch)",
        ),
        ScheduledActionProposal(
            action_type=ScheduledActionType.OCCUPIER_CHECKIN,
            scheduled_for=checkin_at,
            payload={
                "purpose": "satisfaction_check",
                "ask_about": ["issue_resolved", "vendor_arrival", "additional_concerns"],
            },
            description="Check in with occupier on work order status and satisfaction",
        ),
        ScheduledActionProposal(
            action_type=ScheduledActionType.ESCALATION_INTERNAL,
            scheduled_for=due_at.astimezone(tz) + timedelta(hours=ESCALATION_GRACE_HOURS),
            payload={"escalate_to": "asset_manager", "reason": "work_order_overdue", "include_timeline": True},
            description="Escalate to asset manager if work order not completed by due date",
        ),
    ]
    if enabled_action_types is None:
        return actions
    enabled = set(enabled_action_types)
    return [a for a in actions if a.action_type in enabled]


def decide_work_order(
    extracted: ExtractedWorkOrder,
    now: datetime,
    time_zone: Optional[str] = None,
    vendor_directory: Optional[VendorDirectory] = None,
    enabled_action_types: Optional[Iterable[ScheduledActionType]] = None,
) -> WorkOrderDecision:
    """
    Compute the full decision bundle for one extracted work order.

    Same inputs (including `now`) always give the same bundle.
    """
    tz, tz_name = resolve_time_zone(time_zone)
    local_now = _as_aware(now).astimezone(tz)

    priority = determine_priority(extracted, local_now)
    sla_hours = sla_hours_for(priority)
    due_at = compute_due_date(now, sla_hours, tz)
    estimated_cost = estimate_cost(extracted.issue_category, priority)
    needs_approval, max_approved = determine_owner_approval(estimated_cost)
    vendor = select_vendor(extracted.issue_category, vendor_directory)

    logger.info(
        "[maintenance] category=%s priority=%s sla_hours=%d vendor=%s tz=%s",
        extracted.issue_category.value, priority.value, sla_hours,
        vendor.id if vendor else None, tz_name,
    )
    return WorkOrderDecision(
        priority=priority,
        business_impact=determine_business_impact(extracted, priority),
        sla_hours=sla_hours,
        due_at=due_at,
        time_zone=tz_name,
        needs_owner_approval=needs_approval,
        estimated_cost=estimated_cost,
        max_approved_cost=max_approved,
        assigned_vendor=vendor,
        initial_status=WorkOrderStatus.ASSIGNED if vendor else WorkOrderStatus.NEW,
        proposed_visit_window=calculate_visit_window(sla_hours, now, tz, extracted.access_constraints),
        scheduled_actions=generate_scheduled_actions(priority, due_at, now, tz, enabled_action_types),
    )
