from __future__ import annotations

import logging
import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


def _coerce_non_negative(v: Any) -> Optional[float]:
    """Rent / area inputs: anything non-numeric, negative or NaN becomes None (zero contribution)."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.replace(",", "").replace("$", "").strip()
        if not v:
            return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f) or f < 0:
        return None
    return f


# --- Leases / portfolio ---


class RiskLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class LeaseDocument(BaseModel):
    id: str
    file_name: str = ""
    document_type: str = "LEASE"


class Lease(BaseModel):
    """
    A lease row as returned by the lease listing collaborator.

    base_rent is monthly. square_feet and base_rent are optional; bad values
    are coerced to None so aggregation treats them as zero-weight.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    tenant_name: str
    property_id: Optional[str] = None
    property_name: str = ""
    suite: Optional[str] = None
    square_feet: Optional[float] = None
    base_rent: Optional[float] = None
    lease_start: Optional[date] = None
    lease_end: Optional[date] = None
    documents: List[LeaseDocument] = Field(default_factory=list)

    @field_validator("square_feet", "base_rent", mode="before")
    @classmethod
    def normalize_amount(cls, v: Any) -> Optional[float]:
        return _coerce_non_negative(v)

    @field_validator("lease_start", "lease_end", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        """Accept ISO, US-style or spelled-out dates; blank/unparseable -> None."""
        if v is None or isinstance(v, date):
            return v.date() if isinstance(v, datetime) else v
        s = str(v).strip()
        if not s:
            return None
        try:
            return date_parser.parse(s).date()
        except (ValueError, OverflowError):
            logger.warning("[lease] unparseable lease date %r, treating as missing", s)
            return None

    @property
    def has_document(self) -> bool:
        return len(self.documents) > 0


class RiskAssessment(BaseModel):
    score: int = Field(ge=0, le=100)
    level: RiskLevel


class LeaseWithRisk(BaseModel):
    id: str
    tenant_name: str
    property_name: str
    suite: Optional[str] = None
    base_rent: Optional[float] = None
    square_feet: Optional[float] = None
    lease_end: Optional[date] = None
    has_document: bool
    days_until_expiry: Optional[int] = None
    risk_score: Optional[int] = None
    risk_level: Optional[RiskLevel] = None


class AlertType(str, Enum):
    LEASE_EXPIRING = "LEASE_EXPIRING"
    NO_DOCUMENT = "NO_DOCUMENT"
    HIGH_RISK = "HIGH_RISK"


class AlertSeverity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class LeaseForAlerts(BaseModel):
    """Input row for the alert generator."""
    id: str
    tenant_name: str
    property_name: str
    lease_end: date
    has_document: bool
    risk_score: int
    risk_level: RiskLevel


class Alert(BaseModel):
    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    recommended_action: str
    lease_id: Optional[str] = None
    property_id: Optional[str] = None
    due_date: Optional[date] = None


class RentByYear(BaseModel):
    year: int
    total_rent: float


class PortfolioSummary(BaseModel):
    total_monthly_rent: float
    total_annual_rent: float
    total_square_feet: float
    lease_count: int
    high_risk_leases_count: int
    medium_risk_leases_count: int
    low_risk_leases_count: int
    walt_months: float
    walt_years: float
    revenue_at_risk: float
    revenue_at_risk_pct: float = Field(ge=0.0, le=1.0)
    square_feet_at_risk: float
    square_feet_at_risk_pct: float = Field(ge=0.0, le=1.0)
    leases_expiring_soon: List[LeaseWithRisk] = Field(default_factory=list)
    leases_expiring_next_year: List[LeaseWithRisk] = Field(default_factory=list)
    rent_by_expiration_year: List[RentByYear] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)


# --- Maintenance ---


class IssueCategory(str, Enum):
    ROOFING = "ROOFING"
    HVAC = "HVAC"
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    LIFE_SAFETY = "LIFE_SAFETY"
    GENERAL = "GENERAL"
    OTHER = "OTHER"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EMERGENCY = "EMERGENCY"


class BusinessImpact(str, Enum):
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    CRITICAL = "CRITICAL"


class WorkOrderStatus(str, Enum):
    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"


class ScheduledActionType(str, Enum):
    VENDOR_FOLLOWUP = "VENDOR_FOLLOWUP"
    OCCUPIER_CHECKIN = "OCCUPIER_CHECKIN"
    ESCALATION_INTERNAL = "ESCALATION_INTERNAL"


class ScheduledActionStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"


# Vendor trade per issue category; GENERAL_CONTRACTOR is the fallback trade.
CATEGORY_TO_TRADE: Dict[IssueCategory, str] = {
    IssueCategory.ROOFING: "ROOFING",
    IssueCategory.HVAC: "HVAC",
    IssueCategory.PLUMBING: "PLUMBING",
    IssueCategory.ELECTRICAL: "ELECTRICAL",
    IssueCategory.LIFE_SAFETY: "LIFE_SAFETY",
    IssueCategory.GENERAL: "GENERAL_CONTRACTOR",
    IssueCategory.OTHER: "GENERAL_CONTRACTOR",
}
GENERAL_CONTRACTOR_TRADE = "GENERAL_CONTRACTOR"

# Free-text category hints, checked in order; first match wins.
CATEGORY_KEYWORDS: List[Tuple[IssueCategory, Tuple[str, ...]]] = [
    (IssueCategory.LIFE_SAFETY, ("fire alarm", "sprinkler", "smoke", "gas leak", "gas smell", "carbon monoxide", "fire")),
    (IssueCategory.ROOFING, ("roof", "skylight", "flashing", "gutter")),
    (IssueCategory.PLUMBING, (
        "plumb", "toilet", "drain", "pipe", "sink", "faucet", "sewer", "water heater", "clog", "leak",
    )),
    (IssueCategory.HVAC, (
        "hvac", "heat", "furnace", "boiler", "a/c", "air condition", "cooling", "thermostat", "ventilation",
    )),
    (IssueCategory.ELECTRICAL, ("electric", "outlet", "breaker", "power", "wiring", "light")),
]


def infer_category(text: Optional[str]) -> IssueCategory:
    """Best-effort category from free text such as "HVAC failure, no heat"; OTHER when nothing matches."""
    lowered = (text or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(kw in lowered for kw in keywords):
            return category
    return IssueCategory.OTHER


class ExtractedWorkOrder(BaseModel):
    """
    Structured fields pulled from an occupier email.

    Every field tolerates junk: a free-text category is mapped by keyword
    (OTHER when nothing matches), unknown severity -> MEDIUM, missing
    description -> placeholder.
    """

    model_config = ConfigDict(extra="ignore")

    property_name: Optional[str] = None
    space_label: Optional[str] = None
    occupier_name: Optional[str] = None
    occupier_email: Optional[str] = None
    issue_category: IssueCategory = IssueCategory.OTHER
    description: str = "No description provided"
    severity: Priority = Priority.MEDIUM
    access_constraints: Optional[str] = None
    reported_at: Optional[datetime] = None

    @field_validator("issue_category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> IssueCategory:
        if isinstance(v, IssueCategory):
            return v
        key = str(v or "").strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return IssueCategory(key)
        except ValueError:
            return infer_category(str(v or ""))

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: Any) -> Priority:
        if isinstance(v, Priority):
            return v
        key = str(v or "").strip().upper()
        try:
            return Priority(key)
        except ValueError:
            return Priority.MEDIUM

    @field_validator("description", mode="before")
    @classmethod
    def normalize_description(cls, v: Any) -> str:
        s = str(v or "").strip()
        return s or "No description provided"

    @field_validator(
        "property_name", "space_label", "occupier_name", "occupier_email", "access_constraints",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("reported_at", mode="before")
    @classmethod
    def normalize_reported_at(cls, v: Any) -> Optional[datetime]:
        if v is None or isinstance(v, datetime):
            return v
        s = str(v).strip()
        if not s:
            return None
        try:
            return date_parser.parse(s)
        except (ValueError, OverflowError):
            return None


class Vendor(BaseModel):
    id: str
    name: str
    trade: str
    email: Optional[str] = None
    phone: Optional[str] = None


class Property(BaseModel):
    id: str
    name: str
    address: str = ""
    type: Optional[str] = None
    time_zone: str = "America/New_York"


class Space(BaseModel):
    id: str
    property_id: str
    space_label: str
    floor: Optional[str] = None
    area_sqft: Optional[float] = None
    use_type: Optional[str] = None


class Occupier(BaseModel):
    id: str
    space_id: str
    legal_name: str
    brand_name: Optional[str] = None
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[str] = None
    primary_contact_phone: Optional[str] = None


class VisitWindow(BaseModel):
    start: datetime
    end: datetime


class ScheduledActionProposal(BaseModel):
    action_type: ScheduledActionType
    scheduled_for: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)
    description: str


class ScheduledAction(ScheduledActionProposal):
    """A persisted-shape action as seen by the automation runner."""
    id: str
    work_order_id: str
    status: ScheduledActionStatus = ScheduledActionStatus.PENDING


class WorkOrderDecision(BaseModel):
    priority: Priority
    business_impact: BusinessImpact
    sla_hours: int
    due_at: datetime
    time_zone: str
    needs_owner_approval: bool
    estimated_cost: Optional[float] = None
    max_approved_cost: Optional[float] = None
    assigned_vendor: Optional[Vendor] = None
    initial_status: WorkOrderStatus
    proposed_visit_window: Optional[VisitWindow] = None
    scheduled_actions: List[ScheduledActionProposal] = Field(default_factory=list)


class ResolvedEntities(BaseModel):
    property: Optional[Property] = None
    space: Optional[Space] = None
    occupier: Optional[Occupier] = None


class WorkOrderView(BaseModel):
    """Minimal work order context for automation messages."""
    id: str
    summary: str
    priority: Priority
    status: WorkOrderStatus
    property_name: str
    space_label: Optional[str] = None
    vendor: Optional[Vendor] = None
    occupier: Optional[Occupier] = None


class WorkOrder(BaseModel):
    """Stored work order; related records are referenced by id."""

    model_config = ConfigDict(extra="ignore")

    id: str
    property_id: str
    space_id: Optional[str] = None
    occupier_id: Optional[str] = None
    vendor_id: Optional[str] = None
    summary: str
    priority: Priority = Priority.MEDIUM
    status: WorkOrderStatus = WorkOrderStatus.NEW
    sla_hours: Optional[int] = None
    due_at: Optional[datetime] = None
    vendor_confirmed_at: Optional[datetime] = None


class ActionMessage(BaseModel):
    recipient_type: Literal["VENDOR", "OCCUPIER", "INTERNAL"]
    channel: Literal["EMAIL", "NOTE"]
    subject: str
    body: str
    meta: Dict[str, Any] = Field(default_factory=dict)


class AutomationResult(BaseModel):
    action_id: str
    action_type: ScheduledActionType
    work_order_id: str
    property_name: Optional[str] = None
    message_created: bool
    message: Optional[ActionMessage] = None
    error: Optional[str] = None


class AutomationRunResponse(BaseModel):
    processed: int
    successful: int
    failed: int
    results: List[AutomationResult] = Field(default_factory=list)


# --- Lease Q&A ---


class LeaseChunk(BaseModel):
    lease_id: str
    chunk_index: int = Field(ge=0)
    content: str
    section_label: Optional[str] = None
    embedding: List[float] = Field(default_factory=list)


class SourceChunk(BaseModel):
    lease_id: str
    chunk_index: int
    snippet: str
    similarity: float
    tenant_name: Optional[str] = None
    property_name: Optional[str] = None


class LeaseQuestionResponse(BaseModel):
    answer: str
    mode: Literal["rag", "metadata_only"]
    source_chunks: List[SourceChunk] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PortfolioQuestionResponse(BaseModel):
    answer: str
    mode: Literal["rag", "no_documents"]
    scope: Literal["portfolio", "property"]
    source_chunks: List[SourceChunk] = Field(default_factory=list)


# --- Request bodies ---


class QuestionRequest(BaseModel):
    question: str
    property_id: Optional[str] = None


class MaintenanceDecisionRequest(BaseModel):
    extracted: ExtractedWorkOrder
    enabled_action_types: Optional[List[ScheduledActionType]] = None


class EmailIntakeRequest(BaseModel):
    raw_email_text: str
    enabled_action_types: Optional[List[ScheduledActionType]] = None


class EmailIntakeResponse(BaseModel):
    extracted: ExtractedWorkOrder
    resolved: ResolvedEntities
    decision: WorkOrderDecision
