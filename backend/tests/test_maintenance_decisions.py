"""Maintenance decision engine: priority, SLA, vendor, cost, visit window and follow-ups."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from maintenance import decisions
from maintenance.decisions import (
    calculate_visit_window,
    decide_work_order,
    determine_priority,
    generate_scheduled_actions,
)
from models import (
    BusinessImpact,
    ExtractedWorkOrder,
    IssueCategory,
    Priority,
    ScheduledActionType,
    Vendor,
    WorkOrderStatus,
)

CHICAGO = ZoneInfo("America/Chicago")
# 09:00 in Chicago on a January weekday
WINTER_NOW = datetime(2026, 1, 15, 15, 0, tzinfo=timezone.utc)
SUMMER_NOW = datetime(2026, 7, 15, 14, 0, tzinfo=timezone.utc)


class _Directory:
    def __init__(self, *vendors: Vendor):
        self.vendors = {v.trade: v for v in vendors}

    def find_vendor_by_trade(self, trade):
        return self.vendors.get(trade)


class _BrokenDirectory:
    def find_vendor_by_trade(self, trade):
        raise RuntimeError("directory offline")


HVAC_VENDOR = Vendor(id="v-hvac", name="Climate Control HVAC", trade="HVAC")
GC_VENDOR = Vendor(id="v-gc", name="BuildRight", trade="GENERAL_CONTRACTOR")


def _wo(category=IssueCategory.OTHER, description="Something is wrong", severity=Priority.MEDIUM, **kwargs):
    return ExtractedWorkOrder(issue_category=category, description=description, severity=severity, **kwargs)


def _priority(description, category=IssueCategory.OTHER, severity=Priority.LOW, now=WINTER_NOW):
    return determine_priority(_wo(category, description, severity), now.astimezone(CHICAGO))


def test_no_heat_in_winter_is_emergency_with_escalation():
    extracted = _wo(IssueCategory.HVAC, "HVAC failure, no heat in the suite since this morning")
    decision = decide_work_order(
        extracted, WINTER_NOW, time_zone="America/Chicago", vendor_directory=_Directory(HVAC_VENDOR)
    )

    assert decision.priority == Priority.EMERGENCY
    assert decision.sla_hours == 2
    assert decision.due_at - WINTER_NOW == timedelta(hours=2)
    assert decision.due_at.utcoffset() == timedelta(hours=-6)
    assert decision.time_zone == "America/Chicago"
    assert decision.business_impact == BusinessImpact.CRITICAL
    assert decision.assigned_vendor == HVAC_VENDOR
    assert decision.initial_status == WorkOrderStatus.ASSIGNED

    escalations = [
        a for a in decision.scheduled_actions if a.action_type == ScheduledActionType.ESCALATION_INTERNAL
    ]
    assert len(escalations) == 1
    assert escalations[0].scheduled_for == decision.due_at + timedelta(hours=24)


def test_no_heat_outside_winter_is_high():
    assert _priority("no heat on floor 3", IssueCategory.HVAC, now=SUMMER_NOW) == Priority.HIGH


def test_no_cooling_in_summer_is_emergency():
    assert _priority("no cooling in the server room", IssueCategory.HVAC, now=SUMMER_NOW) == Priority.EMERGENCY
    assert _priority("no cooling in the server room", IssueCategory.HVAC, now=WINTER_NOW) == Priority.HIGH


def test_other_hvac_is_medium_unless_severity_says_more():
    assert _priority("thermostat display is blank", IssueCategory.HVAC) == Priority.MEDIUM
    assert _priority("thermostat display is blank", IssueCategory.HVAC, severity=Priority.HIGH) == Priority.HIGH


def test_life_safety_and_water_rules():
    assert _priority("smoke coming from the panel", IssueCategory.ELECTRICAL) == Priority.EMERGENCY
    assert _priority("anything", IssueCategory.LIFE_SAFETY) == Priority.EMERGENCY
    assert _priority("water pouring into the lobby") == Priority.EMERGENCY
    assert _priority("some water damage in the back office") == Priority.HIGH
    assert _priority("outlet is burning hot", IssueCategory.ELECTRICAL) == Priority.EMERGENCY


def test_plumbing_and_roofing_rules():
    assert _priority("clogged toilet in restroom", IssueCategory.PLUMBING) == Priority.MEDIUM
    assert _priority("small leak under the sink", IssueCategory.PLUMBING) == Priority.HIGH
    assert _priority("running toilet", IssueCategory.PLUMBING) == Priority.MEDIUM
    assert _priority("leak near skylight", IssueCategory.ROOFING) == Priority.HIGH
    assert _priority("loose flashing", IssueCategory.ROOFING) == Priority.MEDIUM


def test_unrecognized_issue_defaults_to_medium():
    assert _priority("paint is scuffed in the hallway", severity=Priority.LOW) == Priority.MEDIUM
    assert _priority("paint is scuffed in the hallway", severity=Priority.MEDIUM) == Priority.MEDIUM

    decision = decide_work_order(_wo(description="paint is scuffed", severity=Priority.LOW), WINTER_NOW)
    assert decision.priority == Priority.MEDIUM
    assert decision.sla_hours == 24
    assert decision.estimated_cost == 2000
    assert decision.needs_owner_approval is False
    assert decision.business_impact == BusinessImpact.MODERATE


def test_low_severity_kept_for_known_category():
    assert _priority("paint is scuffed in the hallway", IssueCategory.GENERAL, Priority.LOW) == Priority.LOW

    decision = decide_work_order(_wo(IssueCategory.GENERAL, "paint is scuffed", Priority.LOW), WINTER_NOW)
    assert decision.sla_hours == 72
    # GENERAL 1500 x LOW 0.8
    assert decision.estimated_cost == 1200
    assert decision.max_approved_cost == 2500
    assert decision.business_impact == BusinessImpact.MINOR


def test_free_text_category_is_mapped():
    extracted = ExtractedWorkOrder(issue_category="HVAC failure, no heat", description="HVAC failure, no heat")
    assert extracted.issue_category == IssueCategory.HVAC

    decision = decide_work_order(
        extracted, WINTER_NOW, time_zone="America/Chicago", vendor_directory=_Directory(HVAC_VENDOR, GC_VENDOR)
    )
    assert decision.priority == Priority.EMERGENCY
    assert decision.sla_hours == 2
    assert decision.assigned_vendor.id == "v-hvac"


def test_owner_approval_above_limit():
    decision = decide_work_order(_wo(IssueCategory.ROOFING, "leak over the sales floor", Priority.LOW), WINTER_NOW)
    # ROOFING 3500 x HIGH 1.5
    assert decision.estimated_cost == 5250
    assert decision.needs_owner_approval is True
    assert decision.max_approved_cost == 2500


def test_vendor_fallback_and_unassigned():
    hvac = _wo(IssueCategory.HVAC, "rattling noise from the unit")

    assert decide_work_order(hvac, WINTER_NOW, vendor_directory=_Directory(GC_VENDOR)).assigned_vendor == GC_VENDOR

    decision = decide_work_order(hvac, WINTER_NOW, vendor_directory=_Directory())
    assert decision.assigned_vendor is None
    assert decision.initial_status == WorkOrderStatus.NEW

    decision = decide_work_order(hvac, WINTER_NOW, vendor_directory=_BrokenDirectory())
    assert decision.assigned_vendor is None
    assert decision.initial_status == WorkOrderStatus.NEW


def test_invalid_time_zone_falls_back_to_default():
    decision = decide_work_order(_wo(), WINTER_NOW, time_zone="Mars/Olympus_Mons")
    assert decision.time_zone == decisions.DEFAULT_TIME_ZONE
    assert decision.due_at.tzinfo is not None

    assert decide_work_order(_wo(), WINTER_NOW, time_zone=None).time_zone == decisions.DEFAULT_TIME_ZONE


def test_disabled_action_types_are_not_materialized():
    extracted = _wo(IssueCategory.HVAC, "no heat", Priority.MEDIUM)

    only_escalation = decide_work_order(
        extracted, WINTER_NOW, enabled_action_types=[ScheduledActionType.ESCALATION_INTERNAL]
    )
    assert [a.action_type for a in only_escalation.scheduled_actions] == [ScheduledActionType.ESCALATION_INTERNAL]

    assert decide_work_order(extracted, WINTER_NOW, enabled_action_types=[]).scheduled_actions == []
    assert len(decide_work_order(extracted, WINTER_NOW).scheduled_actions) == 3


def test_scheduled_action_timing():
    due = WINTER_NOW + timedelta(hours=4)
    actions = {a.action_type: a for a in generate_scheduled_actions(Priority.HIGH, due, WINTER_NOW, CHICAGO)}

    assert actions[ScheduledActionType.VENDOR_FOLLOWUP].scheduled_for == WINTER_NOW + timedelta(hours=1)
    checkin = actions[ScheduledActionType.OCCUPIER_CHECKIN].scheduled_for.astimezone(CHICAGO)
    assert (checkin.date(), checkin.hour, checkin.minute) == (datetime(2026, 1, 16).date(), 9, 0)

    low = {a.action_type: a for a in generate_scheduled_actions(Priority.LOW, due, WINTER_NOW, CHICAGO)}
    assert low[ScheduledActionType.VENDOR_FOLLOWUP].scheduled_for == WINTER_NOW + timedelta(hours=4)


def _local(hour, minute=0):
    return datetime(2026, 1, 15, hour, minute, tzinfo=CHICAGO)


def test_visit_window_inside_business_hours():
    window = calculate_visit_window(24, _local(9), CHICAGO)
    assert window.start == _local(11)
    assert window.end == _local(13)


def test_visit_window_before_opening_and_after_closing():
    assert calculate_visit_window(24, _local(5), CHICAGO).start == _local(8)

    window = calculate_visit_window(24, _local(17, 30), CHICAGO)
    assert window.start == datetime(2026, 1, 16, 8, 0, tzinfo=CHICAGO)


def test_visit_window_extended_hours():
    window = calculate_visit_window(24, _local(17), CHICAGO, "Store is open until 10 pm")
    assert window.start == _local(19)
    assert window.end == _local(21)


def test_urgent_work_dispatched_within_the_hour():
    window = calculate_visit_window(4, _local(17, 30), CHICAGO)
    assert window.start == _local(18)
    assert window.end == _local(20)


def test_decision_is_deterministic_and_accepts_naive_now():
    extracted = _wo(IssueCategory.PLUMBING, "clogged drain", Priority.LOW)
    first = decide_work_order(extracted, WINTER_NOW, "America/Chicago")
    second = decide_work_order(extracted, WINTER_NOW, "America/Chicago")
    assert first == second

    naive = decide_work_order(extracted, WINTER_NOW.replace(tzinfo=None), "America/Chicago")
    assert naive.due_at == first.due_at
