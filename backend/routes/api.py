"""
Portfolio API: dashboard summary, lease Q&A and indexing, maintenance
decisions, work orders and follow-up automation.
All collaborators (store, clock, LLM, embedder) come in through Depends so
tests can swap them via app.dependency_overrides.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from engine import annotate_leases, summarize_portfolio
from leases import answer_lease_question, answer_portfolio_question, chunk_lease_text
from leases.qa import ensure_embeddings
from llm import Embedder, LLMCall, call_llm, embed_texts
from maintenance import (
    InvalidTransitionError,
    WorkOrderEvent,
    allowed_events,
    build_action_message,
    decide_work_order,
    next_status,
    select_due_actions,
)
from maintenance.automation import work_order_ref
from maintenance.extract import extract_work_order_from_email
from maintenance.workflow import TERMINAL_STATUSES
from models import (
    ActionMessage,
    AutomationResult,
    AutomationRunResponse,
    EmailIntakeRequest,
    EmailIntakeResponse,
    ExtractedWorkOrder,
    LeaseChunk,
    LeaseQuestionResponse,
    LeaseWithRisk,
    MaintenanceDecisionRequest,
    PortfolioQuestionResponse,
    PortfolioSummary,
    QuestionRequest,
    ResolvedEntities,
    ScheduledAction,
    ScheduledActionStatus,
    Vendor,
    WorkOrder,
    WorkOrderDecision,
    WorkOrderView,
)
from portfolio_store import PortfolioStore, get_portfolio_store

router = APIRouter(prefix="/api/v1", tags=["api"])

_LOG = logging.getLogger("uvicorn.error")

MIN_TEXT_CHARS = 10


# --- Request/response schemas ---

class LeaseIndexRequest(BaseModel):
    text: str


class LeaseIndexResponse(BaseModel):
    lease_id: str
    chunks_indexed: int
    embedded: bool
    section_labels: List[Optional[str]]


class WorkOrderEventRequest(BaseModel):
    event: WorkOrderEvent
    vendor_id: Optional[str] = None


class ApprovePlanRequest(BaseModel):
    extracted: ExtractedWorkOrder
    resolved: ResolvedEntities
    decision: WorkOrderDecision


class WorkOrderDetail(BaseModel):
    work_order: WorkOrderView
    allowed_events: List[WorkOrderEvent]
    scheduled_actions: List[ScheduledAction]
    messages: List[ActionMessage]


# --- Dependencies ---

def get_store() -> PortfolioStore:
    return get_portfolio_store()


def get_today() -> date:
    return date.today()


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_llm() -> LLMCall:
    return call_llm


def get_embedder() -> Embedder:
    return embed_texts


def _require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if len(text) < MIN_TEXT_CHARS:
        raise HTTPException(status_code=400, detail=f"{field} must be at least {MIN_TEXT_CHARS} characters")
    return text


def _resolve(store: PortfolioStore, extracted: ExtractedWorkOrder) -> ResolvedEntities:
    return store.resolve_entities(
        property_name=extracted.property_name,
        space_label=extracted.space_label,
        occupier_name=extracted.occupier_name,
    )


def _require_work_order(store: PortfolioStore, work_order_id: str) -> WorkOrder:
    work_order = store.get_work_order(work_order_id)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Work order not found")
    return work_order


def _detail(store: PortfolioStore, work_order: WorkOrder) -> WorkOrderDetail:
    return WorkOrderDetail(
        work_order=store.work_order_view(work_order),
        allowed_events=allowed_events(work_order.status),
        scheduled_actions=store.list_scheduled_actions(work_order.id),
        messages=store.list_messages(work_order.id),
    )


# --- Dashboard ---

@router.get("/dashboard-summary", response_model=PortfolioSummary)
def dashboard_summary(
    as_of: Optional[date] = None,
    store: PortfolioStore = Depends(get_store),
    today: date = Depends(get_today),
) -> PortfolioSummary:
    return summarize_portfolio(store.list_leases(), as_of or today)


@router.get("/leases", response_model=List[LeaseWithRisk])
def list_leases(
    as_of: Optional[date] = None,
    store: PortfolioStore = Depends(get_store),
    today: date = Depends(get_today),
) -> List[LeaseWithRisk]:
    return annotate_leases(store.list_leases(), as_of or today)


# --- Q&A ---

@router.post("/leases/{lease_id}/ask", response_model=LeaseQuestionResponse)
def ask_lease(
    lease_id: str,
    body: QuestionRequest,
    store: PortfolioStore = Depends(get_store),
    llm: LLMCall = Depends(get_llm),
    embedder: Embedder = Depends(get_embedder),
) -> LeaseQuestionResponse:
    question = _require_text(body.question, "question")
    lease = store.get_lease(lease_id)
    if lease is None:
        raise HTTPException(status_code=404, detail="Lease not found")
    try:
        return answer_lease_question(lease, question, store.list_chunks(lease_id), llm, embedder)
    except Exception as e:
        _LOG.exception("[qa] lease question failed lease=%s", lease_id)
        raise HTTPException(status_code=502, detail=f"Question answering failed: {e!s}")


@router.post("/leases/{lease_id}/index", response_model=LeaseIndexResponse)
def index_lease(
    lease_id: str,
    body: LeaseIndexRequest,
    store: PortfolioStore = Depends(get_store),
    embedder: Embedder = Depends(get_embedder),
) -> LeaseIndexResponse:
    """Chunk raw lease text into clauses and replace the lease's indexed chunks."""
    lease = store.get_lease(lease_id)
    if lease is None:
        raise HTTPException(status_code=404, detail="Lease not found")
    clauses = chunk_lease_text(body.text or "")
    if not clauses:
        raise HTTPException(status_code=400, detail="No indexable clauses found in lease text")
    chunks = [
        LeaseChunk(lease_id=lease.id, chunk_index=i, content=c.text, section_label=c.section_label)
        for i, c in enumerate(clauses)
    ]
    embedded = True
    try:
        chunks = ensure_embeddings(chunks, embedder)
    except Exception as e:
        # Stored without vectors; they are embedded on the next question.
        _LOG.warning("[qa] embedding failed lease=%s, indexing without vectors: %s", lease_id, e)
        embedded = False
    store.replace_chunks(lease.id, chunks)
    _LOG.info("[qa] indexed lease=%s chunks=%d embedded=%s", lease_id, len(chunks), embedded)
    return LeaseIndexResponse(
        lease_id=lease.id,
        chunks_indexed=len(chunks),
        embedded=embedded,
        section_labels=[c.section_label for c in chunks],
    )


@router.post("/portfolio/ask", response_model=PortfolioQuestionResponse)
def ask_portfolio(
    body: QuestionRequest,
    store: PortfolioStore = Depends(get_store),
    llm: LLMCall = Depends(get_llm),
    embedder: Embedder = Depends(get_embedder),
) -> PortfolioQuestionResponse:
    question = _require_text(body.question, "question")
    try:
        return answer_portfolio_question(
            question,
            store.list_leases(),
            store.list_chunks(),
            llm,
            embedder,
            property_id=body.property_id,
        )
    except Exception as e:
        _LOG.exception("[qa] portfolio question failed property=%s", body.property_id)
        raise HTTPException(status_code=502, detail=f"Question answering failed: {e!s}")


# --- Maintenance ---

@router.post("/maintenance/decisions", response_model=WorkOrderDecision)
def maintenance_decision(
    body: MaintenanceDecisionRequest,
    store: PortfolioStore = Depends(get_store),
    now: datetime = Depends(get_now),
) -> WorkOrderDecision:
    resolved = _resolve(store, body.extracted)
    return decide_work_order(
        body.extracted,
        now,
        time_zone=resolved.property.time_zone if resolved.property else None,
        vendor_directory=store,
        enabled_action_types=body.enabled_action_types,
    )


@router.post("/maintenance/from-email", response_model=EmailIntakeResponse)
def maintenance_from_email(
    body: EmailIntakeRequest,
    store: PortfolioStore = Depends(get_store),
    now: datetime = Depends(get_now),
    llm: LLMCall = Depends(get_llm),
) -> EmailIntakeResponse:
    raw_email = _require_text(body.raw_email_text, "raw_email_text")
    extracted = extract_work_order_from_email(raw_email, llm=llm)
    resolved = _resolve(store, extracted)
    _LOG.info(
        "[maintenance] email intake property=%s space=%s occupier=%s",
        resolved.property.id if resolved.property else None,
        resolved.space.id if resolved.space else None,
        resolved.occupier.id if resolved.occupier else None,
    )
    decision = decide_work_order(
        extracted,
        now,
        time_zone=resolved.property.time_zone if resolved.property else None,
        vendor_directory=store,
        enabled_action_types=body.enabled_action_types,
    )
    return EmailIntakeResponse(extracted=extracted, resolved=resolved, decision=decision)


@router.post("/maintenance/approve-plan", response_model=WorkOrderDetail)
def approve_plan(
    body: ApprovePlanRequest,
    store: PortfolioStore = Depends(get_store),
) -> WorkOrderDetail:
    """Persist a reviewed decision as a work order with its follow-up actions."""
    prop = body.resolved.property
    if prop is None or prop.id not in store.properties:
        raise HTTPException(status_code=400, detail="A known property is required to create a work order")
    decision = body.decision
    work_order = WorkOrder(
        id=f"wo-{uuid.uuid4().hex[:12]}",
        property_id=prop.id,
        space_id=body.resolved.space.id if body.resolved.space else None,
        occupier_id=body.resolved.occupier.id if body.resolved.occupier else None,
        vendor_id=decision.assigned_vendor.id if decision.assigned_vendor else None,
        summary=body.extracted.description,
        priority=decision.priority,
        status=decision.initial_status,
        sla_hours=decision.sla_hours,
        due_at=decision.due_at,
    )
    actions = [
        ScheduledAction(id=f"act-{uuid.uuid4().hex[:12]}", work_order_id=work_order.id, **p.model_dump())
        for p in decision.scheduled_actions
    ]
    store.add_work_order(work_order, actions)
    _LOG.info(
        "[maintenance] plan approved work_order=%s priority=%s actions=%d",
        work_order.id, work_order.priority.value, len(actions),
    )
    return _detail(store, work_order)


@router.get("/maintenance/work-orders/{work_order_id}", response_model=WorkOrderDetail)
def get_work_order(work_order_id: str, store: PortfolioStore = Depends(get_store)) -> WorkOrderDetail:
    return _detail(store, _require_work_order(store, work_order_id))


@router.post("/maintenance/work-orders/{work_order_id}/events", response_model=WorkOrderDetail)
def apply_work_order_event(
    work_order_id: str,
    body: WorkOrderEventRequest,
    store: PortfolioStore = Depends(get_store),
    now: datetime = Depends(get_now),
) -> WorkOrderDetail:
    work_order = _require_work_order(store, work_order_id)
    try:
        status = next_status(work_order.status, body.event)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    update = {"status": status}
    if body.event == WorkOrderEvent.ASSIGN_VENDOR:
        vendor = store.get_vendor(body.vendor_id)
        if vendor is None:
            raise HTTPException(status_code=400, detail="vendor_id must name a known vendor")
        update["vendor_id"] = vendor.id
    elif body.event == WorkOrderEvent.VENDOR_CONFIRMED:
        update["vendor_confirmed_at"] = now

    updated = store.save_work_order(work_order.model_copy(update=update))
    if status in TERMINAL_STATUSES:
        for action in store.list_scheduled_actions(updated.id):
            if action.status == ScheduledActionStatus.PENDING:
                store.mark_action(action.id, ScheduledActionStatus.CANCELLED)
    store.add_message(updated.id, ActionMessage(
        recipient_type="INTERNAL",
        channel="NOTE",
        subject=f"Status change: Work Order #{work_order_ref(updated.id)}",
        body=f"Status changed from {work_order.status.value} to {status.value} ({body.event.value}) at {now.isoformat()}",
        meta={"event": body.event.value},
    ))
    _LOG.info(
        "[maintenance] work_order=%s event=%s status=%s->%s",
        updated.id, body.event.value, work_order.status.value, status.value,
    )
    return _detail(store, updated)


@router.post("/maintenance/run-automation", response_model=AutomationRunResponse)
def run_automation(
    store: PortfolioStore = Depends(get_store),
    now: datetime = Depends(get_now),
) -> AutomationRunResponse:
    """Execute every due follow-up: build its message and mark it EXECUTED."""
    results: List[AutomationResult] = []
    for action in select_due_actions(store.list_scheduled_actions(), now):
        work_order = store.get_work_order(action.work_order_id)
        if work_order is None:
            _LOG.warning("[automation] action=%s references unknown work_order=%s", action.id, action.work_order_id)
            results.append(AutomationResult(
                action_id=action.id,
                action_type=action.action_type,
                work_order_id=action.work_order_id,
                message_created=False,
                error="Work order not found",
            ))
            continue
        view = store.work_order_view(work_order)
        message = build_action_message(action, view, now=now)
        if message is not None:
            store.add_message(work_order.id, message)
        store.mark_action(action.id, ScheduledActionStatus.EXECUTED)
        results.append(AutomationResult(
            action_id=action.id,
            action_type=action.action_type,
            work_order_id=work_order.id,
            property_name=view.property_name,
            message_created=message is not None,
            message=message,
        ))
    failed = sum(1 for r in results if r.error)
    _LOG.info("[automation] processed=%d failed=%d", len(results), failed)
    return AutomationRunResponse(
        processed=len(results),
        successful=len(results) - failed,
        failed=failed,
        results=results,
    )


@router.get("/maintenance/vendors", response_model=List[Vendor])
def list_vendors(store: PortfolioStore = Depends(get_store)) -> List[Vendor]:
    return store.list_vendors()
