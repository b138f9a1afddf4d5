"""
Portfolio aggregation for the dashboard summary.

Pure folds over the lease collection: totals, per-lease risk, WALT,
12-month exposure, expiration buckets and rent by expiration year.
Leases without an end date count toward rent/area totals but are not
risk-scored, bucketed or weighted into WALT.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from functools import reduce
from itertools import groupby
from typing import Iterable, List, Sequence

from engine.alerts import AlertGenerator, generate_alerts
from engine.risk import compute_lease_risk, days_until
from models import (
    Lease,
    LeaseForAlerts,
    LeaseWithRisk,
    PortfolioSummary,
    RentByYear,
    RiskLevel,
)

AVG_DAYS_PER_MONTH = 30.44
EXPIRING_SOON_DAYS = 90
EXPOSURE_HORIZON_DAYS = 365


@dataclass(frozen=True)
class _Totals:
    monthly_rent: float = 0.0
    square_feet: float = 0.0
    leases_with_area: int = 0

    @property
    def avg_square_feet(self) -> float:
        return self.square_feet / self.leases_with_area if self.leases_with_area > 0 else 0.0


@dataclass(frozen=True)
class _Exposure:
    walt_numerator: float = 0.0
    walt_denominator: float = 0.0
    revenue_at_risk: float = 0.0
    square_feet_at_risk: float = 0.0
    high: int = 0
    medium: int = 0
    low: int = 0


def _add_totals(acc: _Totals, lease: Lease) -> _Totals:
    area = lease.square_feet or 0.0
    return _Totals(
        monthly_rent=acc.monthly_rent + (lease.base_rent or 0.0),
        square_feet=acc.square_feet + area,
        leases_with_area=acc.leases_with_area + (1 if area > 0 else 0),
    )


def portfolio_totals(leases: Iterable[Lease]) -> _Totals:
    return reduce(_add_totals, leases, _Totals())


def remaining_months(lease_end: date, today: date) -> float:
    """Remaining term in average-length months, floored at 0."""
    return max(0.0, (lease_end - today).days / AVG_DAYS_PER_MONTH)


def _with_risk(lease: Lease, avg_square_feet: float, today: date) -> LeaseWithRisk:
    row = LeaseWithRisk(
        id=lease.id,
        tenant_name=lease.tenant_name,
        property_name=lease.property_name,
        suite=lease.suite,
        base_rent=lease.base_rent,
        square_feet=lease.square_feet,
        lease_end=lease.lease_end,
        has_document=lease.has_document,
    )
    if lease.lease_end is None:
        return row
    risk = compute_lease_risk(
        lease_end=lease.lease_end,
        has_document=lease.has_document,
        square_feet=lease.square_feet,
        portfolio_avg_square_feet=avg_square_feet,
        today=today,
    )
    return row.model_copy(update={
        "days_until_expiry": days_until(lease.lease_end, today),
        "risk_score": risk.score,
        "risk_level": risk.level,
    })


def annotate_leases(leases: Sequence[Lease], today: date) -> List[LeaseWithRisk]:
    """Risk-annotated view of every lease; leases without an end date carry no risk fields."""
    avg = portfolio_totals(leases).avg_square_feet
    return [_with_risk(lease, avg, today) for lease in leases]


def _add_exposure(today: date):
    horizon = today + timedelta(days=EXPOSURE_HORIZON_DAYS)

    def step(acc: _Exposure, row: LeaseWithRisk) -> _Exposure:
        area = row.square_feet or 0.0
        acc = replace(
            acc,
            high=acc.high + (row.risk_level == RiskLevel.HIGH),
            medium=acc.medium + (row.risk_level == RiskLevel.MEDIUM),
            low=acc.low + (row.risk_level == RiskLevel.LOW),
        )
        if area > 0:
            acc = replace(
                acc,
                walt_numerator=acc.walt_numerator + remaining_months(row.lease_end, today) * area,
                walt_denominator=acc.walt_denominator + area,
            )
        if row.lease_end <= horizon:
            acc = replace(
                acc,
                revenue_at_risk=acc.revenue_at_risk + (row.base_rent or 0.0) * 12,
                square_feet_at_risk=acc.square_feet_at_risk + area,
            )
        return acc

    return step


def _ratio(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return min(1.0, max(0.0, part / whole))


def expiring_within(rows: Iterable[LeaseWithRisk], today: date, days: int) -> List[LeaseWithRisk]:
    """Rows ending on or before today + days, soonest first (stable on ties)."""
    cutoff = today + timedelta(days=days)
    return sorted((r for r in rows if r.lease_end <= cutoff), key=lambda r: r.lease_end)


def rent_by_expiration_year(rows: Iterable[LeaseWithRisk]) -> List[RentByYear]:
    ordered = sorted(rows, key=lambda r: r.lease_end.year)
    return [
        RentByYear(year=year, total_rent=sum((r.base_rent or 0.0) * 12 for r in group))
        for year, group in groupby(ordered, key=lambda r: r.lease_end.year)
    ]


def _alert_rows(rows: Iterable[LeaseWithRisk]) -> List[LeaseForAlerts]:
    return [
        LeaseForAlerts(
            id=r.id,
            tenant_name=r.tenant_name,
            property_name=r.property_name,
            lease_end=r.lease_end,
            has_document=r.has_document,
            risk_score=r.risk_score,
            risk_level=r.risk_level,
        )
        for r in rows
    ]


def summarize_portfolio(
    leases: Sequence[Lease],
    today: date,
    alert_generator: AlertGenerator = generate_alerts,
) -> PortfolioSummary:
    """
    Build the dashboard summary for a lease collection as of `today`.

    alert_generator receives the risk-scored rows and returns ordered alerts;
    it defaults to engine.alerts.generate_alerts.
    """
    totals = portfolio_totals(leases)
    dated = [r for r in annotate_leases(leases, today) if r.lease_end is not None]
    exposure = reduce(_add_exposure(today), dated, _Exposure())

    walt_months = (
        exposure.walt_numerator / exposure.walt_denominator if exposure.walt_denominator > 0 else 0.0
    )
    total_annual_rent = totals.monthly_rent * 12

    return PortfolioSummary(
        total_monthly_rent=totals.monthly_rent,
        total_annual_rent=total_annual_rent,
        total_square_feet=totals.square_feet,
        lease_count=len(leases),
        high_risk_leases_count=exposure.high,
        medium_risk_leases_count=exposure.medium,
        low_risk_leases_count=exposure.low,
        walt_months=walt_months,
        walt_years=round(walt_months / 12, 2),
        revenue_at_risk=exposure.revenue_at_risk,
        revenue_at_risk_pct=_ratio(exposure.revenue_at_risk, total_annual_rent),
        square_feet_at_risk=exposure.square_feet_at_risk,
        square_feet_at_risk_pct=_ratio(exposure.square_feet_at_risk, totals.square_feet),
        leases_expiring_soon=expiring_within(dated, today, EXPIRING_SOON_DAYS),
        leases_expiring_next_year=expiring_within(dated, today, EXPOSURE_HORIZON_DAYS),
        rent_by_expiration_year=rent_by_expiration_year(dated),
        alerts=alert_generator(_alert_rows(dated), today),
    )
