"""
Alert generation for the portfolio dashboard.

Maps risk-annotated lease rows to actionable alerts, ordered by severity and
then by due date so the most urgent items come first.
"""
from __future__ import annotations

from datetime import date
from typing import Callable, List, Sequence

from engine.risk import MID_EXPIRY_DAYS, NEAR_EXPIRY_DAYS
from models import Alert, AlertSeverity, AlertType, LeaseForAlerts, RiskLevel

AlertGenerator = Callable[[Sequence[LeaseForAlerts], date], List[Alert]]

_SEVERITY_ORDER = {AlertSeverity.HIGH: 0, AlertSeverity.MEDIUM: 1, AlertSeverity.LOW: 2}

_RECOMMENDED_ACTIONS = {
    AlertType.LEASE_EXPIRING: {
        AlertSeverity.HIGH: "Initiate renewal strategy and market rent comparison immediately.",
        AlertSeverity.MEDIUM: "Review tenant performance and begin renewal discussions.",
        AlertSeverity.LOW: "Monitor and plan renewal or backfill strategy.",
    },
    AlertType.NO_DOCUMENT: {
        AlertSeverity.HIGH: "Locate and upload the executed lease document as soon as possible.",
        AlertSeverity.MEDIUM: "Request the executed lease from legal or property management.",
        AlertSeverity.LOW: "Confirm whether a signed lease exists and digitize it.",
    },
    AlertType.HIGH_RISK: {
        AlertSeverity.HIGH: "Schedule a portfolio review for this tenant and evaluate revenue impact if they vacate.",
        AlertSeverity.MEDIUM: "Review key clauses (renewal options, co-tenancy, termination) for this lease.",
        AlertSeverity.LOW: "Monitor this tenant and review risk factors quarterly.",
    },
}


def recommended_action(alert_type: AlertType, severity: AlertSeverity) -> str:
    return _RECOMMENDED_ACTIONS.get(alert_type, {}).get(
        severity, "Review this item and take appropriate action."
    )


def _alert(
    alert_type: AlertType,
    severity: AlertSeverity,
    lease: LeaseForAlerts,
    message: str,
    due_date: date | None = None,
) -> Alert:
    return Alert(
        id=f"{alert_type.value}-{lease.id}",
        type=alert_type,
        severity=severity,
        message=message,
        recommended_action=recommended_action(alert_type, severity),
        lease_id=lease.id,
        due_date=due_date,
    )


def _alerts_for_lease(lease: LeaseForAlerts, today: date) -> List[Alert]:
    out: List[Alert] = []
    where = f"{lease.tenant_name} at {lease.property_name}"
    days = (lease.lease_end - today).days

    if 0 <= days <= NEAR_EXPIRY_DAYS:
        out.append(_alert(
            AlertType.LEASE_EXPIRING, AlertSeverity.HIGH, lease,
            f"{where} expires in {days} days", due_date=lease.lease_end,
        ))
    elif NEAR_EXPIRY_DAYS < days <= MID_EXPIRY_DAYS:
        out.append(_alert(
            AlertType.LEASE_EXPIRING, AlertSeverity.MEDIUM, lease,
            f"{where} expires in {days} days", due_date=lease.lease_end,
        ))

    if not lease.has_document:
        out.append(_alert(
            AlertType.NO_DOCUMENT, AlertSeverity.MEDIUM, lease,
            f"Missing lease document for {where}",
        ))

    if lease.risk_level == RiskLevel.HIGH:
        out.append(_alert(
            AlertType.HIGH_RISK, AlertSeverity.HIGH, lease,
            f"High-risk lease: {where} (Risk Score: {lease.risk_score})",
        ))
    return out


def _sort_key(alert: Alert) -> tuple:
    # Dated alerts before undated ones within a severity; sorted() keeps input order on ties.
    if alert.due_date is not None:
        return (_SEVERITY_ORDER[alert.severity], 0, alert.due_date.toordinal())
    return (_SEVERITY_ORDER[alert.severity], 1, 0)


def generate_alerts(leases: Sequence[LeaseForAlerts], today: date) -> List[Alert]:
    """Default alert generator: expiring, missing-document and high-risk alerts."""
    alerts = [a for lease in leases for a in _alerts_for_lease(lease, today)]
    return sorted(alerts, key=_sort_key)
