"""
Domain records for the production pipeline.

These are plain frozen dataclasses: transitions build new instances with
``dataclasses.replace`` and hand them to the persistence collaborator.
Nested stage details serialize to JSON-ready dicts so any store can keep
them as embedded documents.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from functools import cached_property
from typing import Any

from production.grid import Grid, GridAxes, OrderItem


class OrderStatus(str, Enum):
    CUTTING = "cutting"
    SUBCONTRACTING = "subcontracting"
    QUALITY_CONTROL = "quality_control"
    PACKING = "packing"
    COMPLETED = "completed"


class ShipmentStatus(str, Enum):
    SENT = "sent"
    PARTIAL = "partial"
    DONE = "done"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PackingType(str, Enum):
    STANDARD_BOX = "standard_box"
    INDIVIDUAL_BAG = "individual_bag"
    HANGER = "hanger"


class EventType(str, Enum):
    STATUS_CHANGE = "status_change"
    UPDATE = "update"
    ALERT = "alert"


def _items_to_list(items: tuple[OrderItem, ...]) -> list[dict[str, Any]]:
    return [item.to_dict() for item in items]


def _items_from_list(rows: list[dict[str, Any]] | None) -> tuple[OrderItem, ...]:
    return tuple(OrderItem.from_dict(row) for row in rows or [])


def _dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ── Audit ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OrderEvent:
    date: datetime
    user: str
    action: str
    description: str
    type: EventType = EventType.UPDATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "user": self.user,
            "action": self.action,
            "description": self.description,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrderEvent:
        return cls(
            date=_dt(data["date"]),
            user=data["user"],
            action=data["action"],
            description=data["description"],
            type=EventType(data.get("type", EventType.UPDATE.value)),
        )


# ── Stage details ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RevisionDetails:
    inspector_name: str = ""
    approved_qty: int = 0
    rework_qty: int = 0
    rejected_qty: int = 0
    items_approved: tuple[OrderItem, ...] = ()
    is_finalized: bool = False
    start_date: datetime | None = None
    end_date: datetime | None = None
    notes: str | None = None

    def approved_grid(self) -> Grid:
        return Grid.from_items(self.items_approved)

    def to_dict(self) -> dict[str, Any]:
        return {
            "inspector_name": self.inspector_name,
            "approved_qty": self.approved_qty,
            "rework_qty": self.rework_qty,
            "rejected_qty": self.rejected_qty,
            "items_approved": _items_to_list(self.items_approved),
            "is_finalized": self.is_finalized,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RevisionDetails | None:
        if data is None:
            return None
        return cls(
            inspector_name=data.get("inspector_name", ""),
            approved_qty=int(data.get("approved_qty", 0)),
            rework_qty=int(data.get("rework_qty", 0)),
            rejected_qty=int(data.get("rejected_qty", 0)),
            items_approved=_items_from_list(data.get("items_approved")),
            is_finalized=bool(data.get("is_finalized", False)),
            start_date=_dt(data.get("start_date")),
            end_date=_dt(data.get("end_date")),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class PackingDetails:
    packing_type: PackingType = PackingType.STANDARD_BOX
    total_boxes: int = 1
    items_per_box: int | None = None
    total_packed_qty: int = 0
    warehouse: str = ""
    packer_name: str = ""
    items_packed: tuple[OrderItem, ...] = ()
    is_finalized: bool = False
    packed_date: datetime | None = None

    def packed_grid(self) -> Grid:
        return Grid.from_items(self.items_packed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "packing_type": self.packing_type.value,
            "total_boxes": self.total_boxes,
            "items_per_box": self.items_per_box,
            "total_packed_qty": self.total_packed_qty,
            "warehouse": self.warehouse,
            "packer_name": self.packer_name,
            "items_packed": _items_to_list(self.items_packed),
            "is_finalized": self.is_finalized,
            "packed_date": _iso(self.packed_date),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PackingDetails | None:
        if data is None:
            return None
        return cls(
            packing_type=PackingType(data.get("packing_type", PackingType.STANDARD_BOX.value)),
            total_boxes=int(data.get("total_boxes", 1)),
            items_per_box=data.get("items_per_box"),
            total_packed_qty=int(data.get("total_packed_qty", 0)),
            warehouse=data.get("warehouse", ""),
            packer_name=data.get("packer_name", ""),
            items_packed=_items_from_list(data.get("items_packed")),
            is_finalized=bool(data.get("is_finalized", False)),
            packed_date=_dt(data.get("packed_date")),
        )


# ── Production order ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProductionOrder:
    id: uuid.UUID
    lot_number: str
    product_id: str
    quantity_total: int
    items: tuple[OrderItem, ...]
    status: OrderStatus = OrderStatus.CUTTING
    subcontractor: str | None = None
    is_internal: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    revision_details: RevisionDetails | None = None
    packing_details: PackingDetails | None = None
    events: tuple[OrderEvent, ...] = ()

    @cached_property
    def planned_grid(self) -> Grid:
        return Grid.from_items(self.items)

    @cached_property
    def axes(self) -> GridAxes:
        return GridAxes.from_items(self.items)


# ── Subcontracting ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReturnEvent:
    id: uuid.UUID
    date: datetime
    total_quantity: int
    conferente: str
    items: tuple[OrderItem, ...]

    def grid(self) -> Grid:
        return Grid.from_items(self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "date": self.date.isoformat(),
            "total_quantity": self.total_quantity,
            "conferente": self.conferente,
            "items": _items_to_list(self.items),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReturnEvent:
        return cls(
            id=uuid.UUID(str(data["id"])),
            date=_dt(data["date"]),
            total_quantity=int(data["total_quantity"]),
            conferente=data["conferente"],
            items=_items_from_list(data.get("items")),
        )


@dataclass(frozen=True)
class Shipment:
    """A subcontracting shipment (OSF) tied to one production order."""

    id: uuid.UUID
    op_id: uuid.UUID
    subcontractor_name: str
    sent_quantity: int
    sent_date: datetime
    items_sent: tuple[OrderItem, ...]
    received_quantity: int = 0
    items_received: tuple[OrderItem, ...] = ()
    status: ShipmentStatus = ShipmentStatus.SENT
    return_date: datetime | None = None
    parent_id: uuid.UUID | None = None
    external_token: str | None = None
    is_internal: bool = False
    rate_per_piece: float = 0.0
    conferente: str | None = None
    return_history: tuple[ReturnEvent, ...] = ()
    observations: str | None = None

    def sent_grid(self) -> Grid:
        return Grid.from_items(self.items_sent)

    def received_grid(self) -> Grid:
        return Grid.from_items(self.items_received)


# ── Finance ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PaymentRecord:
    """Raw ledger row: amount owed to a partner for one service event."""

    id: uuid.UUID
    op_id: uuid.UUID
    partner_name: str
    stage: str
    total_amount: float
    quantity_delivered: int
    rate_per_piece: float
    date: date
    amount_paid: float = 0.0
    quantity_defect: int = 0
    status: PaymentStatus = PaymentStatus.PENDING
    partner_type: str = "subcontractor"
    bank_account_name: str | None = None

    @property
    def remaining_amount(self) -> float:
        return round(self.total_amount - self.amount_paid, 2)


@dataclass(frozen=True)
class PayableItem:
    """Read-side projection of a PaymentRecord with due-date status."""

    id: uuid.UUID
    op_id: uuid.UUID
    partner: str
    service_type: str
    execution_date: date
    due_date: date
    quantity: int
    unit_price: float
    total: float
    amount_paid: float
    status: PaymentStatus
    is_overdue: bool
    days_overdue: int
    bank_account_name: str | None = None

    @property
    def remaining_amount(self) -> float:
        return round(self.total - self.amount_paid, 2)
