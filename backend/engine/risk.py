"""
Per-lease risk scoring.

Score components (capped at 100):
- expiration proximity: +40 within 90 days, +25 within 180 days
- no executed lease document on file: +20
- square footage above 1.5x portfolio average: +15
A lease already past its end date scores 100.

Levels: >= 70 HIGH, >= 40 MEDIUM, otherwise LOW.
"""
from __future__ import annotations

from datetime import date

from models import RiskAssessment, RiskLevel

NEAR_EXPIRY_DAYS = 90
MID_EXPIRY_DAYS = 180
NEAR_EXPIRY_POINTS = 40
MID_EXPIRY_POINTS = 25
NO_DOCUMENT_POINTS = 20
LARGE_SPACE_POINTS = 15
LARGE_SPACE_FACTOR = 1.5
EXPIRED_SCORE = 100
MAX_SCORE = 100

HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 40


def days_until(lease_end: date, today: date) -> int:
    return (lease_end - today).days


def risk_level_for_score(score: int) -> RiskLevel:
    if score >= HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def compute_lease_risk(
    lease_end: date,
    has_document: bool,
    square_feet: float | None,
    portfolio_avg_square_feet: float,
    today: date,
) -> RiskAssessment:
    """Score one lease against the portfolio average. Missing square footage counts as 0."""
    days = days_until(lease_end, today)
    if days < 0:
        return RiskAssessment(score=EXPIRED_SCORE, level=RiskLevel.HIGH)

    score = 0
    if days <= NEAR_EXPIRY_DAYS:
        score += NEAR_EXPIRY_POINTS
    elif days <= MID_EXPIRY_DAYS:
        score += MID_EXPIRY_POINTS

    if not has_document:
        score += NO_DOCUMENT_POINTS

    # Large-space points need a positive portfolio average.
    if portfolio_avg_square_feet > 0 and (square_feet or 0.0) > LARGE_SPACE_FACTOR * portfolio_avg_square_feet:
        score += LARGE_SPACE_POINTS

    score = min(score, MAX_SCORE)
    return RiskAssessment(score=score, level=risk_level_for_score(score))
