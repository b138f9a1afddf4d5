"""
Portfolio data loaded from a JSON fixture file.

Serves as the data-access collaborator for the dashboard, Q&A and
maintenance routes: lease listing, clause chunks, vendor directory,
property / space / occupier resolution, work orders and their scheduled
actions. Writes (approved plans, status changes, executed actions, outgoing
messages, re-indexed chunks) are kept in memory for the life of the process.
Set PORTFOLIO_DATA_PATH to point at another file.
"""
from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from models import (
    ActionMessage,
    Lease,
    LeaseChunk,
    Occupier,
    Property,
    ResolvedEntities,
    ScheduledAction,
    ScheduledActionStatus,
    Space,
    Vendor,
    WorkOrder,
    WorkOrderView,
)

DEFAULT_DATA_PATH = Path(__file__).resolve().parent / "data" / "portfolio.json"


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


class PortfolioStore:
    def __init__(
        self,
        properties: List[Property],
        leases: List[Lease],
        chunks: Optional[List[LeaseChunk]] = None,
        vendors: Optional[List[Vendor]] = None,
        spaces: Optional[List[Space]] = None,
        occupiers: Optional[List[Occupier]] = None,
        work_orders: Optional[List[WorkOrder]] = None,
        scheduled_actions: Optional[List[ScheduledAction]] = None,
    ):
        self.properties = {p.id: p for p in properties}
        self.leases = [
            lease if lease.property_name or lease.property_id not in self.properties
            else lease.model_copy(update={"property_name": self.properties[lease.property_id].name})
            for lease in leases
        ]
        self.chunks = sorted(chunks or [], key=lambda c: (c.lease_id, c.chunk_index))
        self.vendors = vendors or []
        self.spaces = spaces or []
        self.occupiers = occupiers or []
        self.work_orders = {wo.id: wo for wo in work_orders or []}
        self.scheduled_actions = list(scheduled_actions or [])
        self.messages: Dict[str, List[ActionMessage]] = {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortfolioStore":
        return cls(
            properties=[Property.model_validate(p) for p in data.get("properties", [])],
            leases=[Lease.model_validate(x) for x in data.get("leases", [])],
            chunks=[LeaseChunk.model_validate(c) for c in data.get("chunks", [])],
            vendors=[Vendor.model_validate(v) for v in data.get("vendors", [])],
            spaces=[Space.model_validate(s) for s in data.get("spaces", [])],
            occupiers=[Occupier.model_validate(o) for o in data.get("occupiers", [])],
            work_orders=[WorkOrder.model_validate(w) for w in data.get("work_orders", [])],
            scheduled_actions=[ScheduledAction.model_validate(a) for a in data.get("scheduled_actions", [])],
        )

    @classmethod
    def from_file(cls, path: Path) -> "PortfolioStore":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    # --- leases ---

    def list_leases(self) -> List[Lease]:
        return list(self.leases)

    def get_lease(self, lease_id: str) -> Optional[Lease]:
        return next((lease for lease in self.leases if lease.id == lease_id), None)

    def list_chunks(self, lease_id: Optional[str] = None) -> List[LeaseChunk]:
        if lease_id is None:
            return list(self.chunks)
        return [c for c in self.chunks if c.lease_id == lease_id]

    def replace_chunks(self, lease_id: str, chunks: List[LeaseChunk]) -> None:
        """Re-indexing a lease drops its previous chunks."""
        kept = [c for c in self.chunks if c.lease_id != lease_id]
        self.chunks = sorted(kept + list(chunks), key=lambda c: (c.lease_id, c.chunk_index))

    # --- vendors ---

    def list_vendors(self) -> List[Vendor]:
        return sorted(self.vendors, key=lambda v: (v.trade, v.name))

    def get_vendor(self, vendor_id: Optional[str]) -> Optional[Vendor]:
        return next((v for v in self.vendors if v.id == vendor_id), None)

    def find_vendor_by_trade(self, trade: str) -> Optional[Vendor]:
        return next((v for v in self.vendors if v.trade == trade), None)

    # --- entity resolution ---

    def resolve_property(self, name: str) -> Optional[Property]:
        return next((p for p in self.properties.values() if _contains(p.name, name)), None)

    def resolve_space(self, label: str, property_id: Optional[str] = None) -> Optional[Space]:
        return next(
            (
                s for s in self.spaces
                if _contains(s.space_label, label) and (property_id is None or s.property_id == property_id)
            ),
            None,
        )

    def resolve_occupier(self, name: str, space_id: Optional[str] = None) -> Optional[Occupier]:
        return next(
            (
                o for o in self.occupiers
                if (_contains(o.brand_name, name) or _contains(o.legal_name, name))
                and (space_id is None or o.space_id == space_id)
            ),
            None,
        )

    def resolve_entities(
        self,
        property_name: Optional[str] = None,
        space_label: Optional[str] = None,
        occupier_name: Optional[str] = None,
    ) -> ResolvedEntities:
        """
        Match extracted names to known records. Each level narrows the next;
        a matched space or occupier back-fills the levels above it.
        """
        prop = self.resolve_property(property_name) if property_name else None
        space = self.resolve_space(space_label, prop.id if prop else None) if space_label else None
        if space and prop is None:
            prop = self.properties.get(space.property_id)
        occupier = self.resolve_occupier(occupier_name, space.id if space else None) if occupier_name else None
        if occupier and space is None:
            space = next((s for s in self.spaces if s.id == occupier.space_id), None)
            if space and prop is None:
                prop = self.properties.get(space.property_id)
        return ResolvedEntities(property=prop, space=space, occupier=occupier)

    # --- work orders ---

    def get_work_order(self, work_order_id: str) -> Optional[WorkOrder]:
        return self.work_orders.get(work_order_id)

    def save_work_order(self, work_order: WorkOrder) -> WorkOrder:
        self.work_orders[work_order.id] = work_order
        return work_order

    def add_work_order(self, work_order: WorkOrder, actions: List[ScheduledAction]) -> None:
        self.save_work_order(work_order)
        self.scheduled_actions.extend(actions)

    def work_order_view(self, work_order: WorkOrder) -> WorkOrderView:
        prop = self.properties.get(work_order.property_id)
        space = next((s for s in self.spaces if s.id == work_order.space_id), None)
        occupier = next((o for o in self.occupiers if o.id == work_order.occupier_id), None)
        return WorkOrderView(
            id=work_order.id,
            summary=work_order.summary,
            priority=work_order.priority,
            status=work_order.status,
            property_name=prop.name if prop else work_order.property_id,
            space_label=space.space_label if space else None,
            vendor=self.get_vendor(work_order.vendor_id),
            occupier=occupier,
        )

    def list_scheduled_actions(self, work_order_id: Optional[str] = None) -> List[ScheduledAction]:
        if work_order_id is None:
            return list(self.scheduled_actions)
        return [a for a in self.scheduled_actions if a.work_order_id == work_order_id]

    def mark_action(self, action_id: str, status: ScheduledActionStatus) -> None:
        self.scheduled_actions = [
            a.model_copy(update={"status": status}) if a.id == action_id else a
            for a in self.scheduled_actions
        ]

    def add_message(self, work_order_id: str, message: ActionMessage) -> None:
        self.messages.setdefault(work_order_id, []).append(message)

    def list_messages(self, work_order_id: str) -> List[ActionMessage]:
        return list(self.messages.get(work_order_id, []))


def data_path() -> Path:
    configured = (os.environ.get("PORTFOLIO_DATA_PATH") or "").strip()
    return Path(configured) if configured else DEFAULT_DATA_PATH


@lru_cache(maxsize=1)
def get_portfolio_store() -> PortfolioStore:
    return PortfolioStore.from_file(data_path())
