"""Portfolio computation: lease risk, alerts, dashboard aggregates."""

from engine.alerts import generate_alerts
from engine.portfolio import annotate_leases, summarize_portfolio
from engine.risk import compute_lease_risk

__all__ = [
    "annotate_leases",
    "compute_lease_risk",
    "generate_alerts",
    "summarize_portfolio",
]
