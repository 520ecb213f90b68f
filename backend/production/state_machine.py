"""
Order state machine.

    cutting → subcontracting → quality_control → packing → completed

Every function here is a pure reducer: it takes the current records,
validates the request, and returns new records. Nothing is written; the
pipeline service persists the result in a single step, so a failed
validation never leaves a partial write behind.

Internal production skips the subcontracting status: the order stays in
cutting while its internal shipment is open, and reverting revision
returns it to cutting.

Revert edges move exactly one stage backward and are the only
non-forward transitions.
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from production.errors import (
    IllegalTransitionError,
    InspectorRequired,
    InvalidPartner,
    PackerRequired,
    ReturnsAlreadyRegistered,
    ValidationError,
    WarehouseRequired,
)
from production.grid import Grid, OrderItem
from production.models import (
    EventType,
    OrderEvent,
    OrderStatus,
    PackingDetails,
    PackingType,
    ProductionOrder,
    RevisionDetails,
    Shipment,
    ShipmentStatus,
)
from production.validators import require, validate_grid, validate_stage_total

SYSTEM_USER = "system"

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CUTTING: frozenset({OrderStatus.SUBCONTRACTING, OrderStatus.QUALITY_CONTROL}),
    OrderStatus.SUBCONTRACTING: frozenset({OrderStatus.QUALITY_CONTROL, OrderStatus.CUTTING}),
    OrderStatus.QUALITY_CONTROL: frozenset({OrderStatus.PACKING, OrderStatus.SUBCONTRACTING, OrderStatus.CUTTING}),
    OrderStatus.PACKING: frozenset({OrderStatus.COMPLETED, OrderStatus.QUALITY_CONTROL}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.PACKING}),
}

EMPTY_PACKING_WARNING = "empty_packing"


@dataclass(frozen=True)
class PackingOutcome:
    order: ProductionOrder
    warnings: tuple[str, ...] = field(default_factory=tuple)


def _event(now: datetime, user: str, action: str, description: str, type_: EventType) -> OrderEvent:
    return OrderEvent(date=now, user=user, action=action, description=description, type=type_)


def _transition(
    order: ProductionOrder,
    target: OrderStatus,
    *,
    now: datetime,
    user: str,
    action: str,
    description: str,
    type_: EventType = EventType.STATUS_CHANGE,
    **changes,
) -> ProductionOrder:
    if target != order.status and target not in ALLOWED_TRANSITIONS[order.status]:
        raise IllegalTransitionError(f"Order {order.lot_number} cannot move from {order.status.value} to {target.value}")
    event = _event(now, user, action, description, type_)
    return replace(order, status=target, events=order.events + (event,), **changes)


def require_status(order: ProductionOrder, *expected: OrderStatus, action: str) -> None:
    if order.status not in expected:
        allowed = ", ".join(s.value for s in expected)
        raise IllegalTransitionError(f"Cannot {action} order {order.lot_number} in status '{order.status.value}' (expected {allowed})")


# ── Cutting ────────────────────────────────────────────────────────────────


def create_order(
    lot_number: str,
    product_id: str,
    items: Iterable[OrderItem],
    *,
    subcontractor: str | None = None,
    order_id: uuid.UUID | None = None,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Open a production order in cutting with its planned grid."""
    now = now or datetime.utcnow()
    if not (lot_number or "").strip():
        raise ValidationError("lot_number is required")
    if not (product_id or "").strip():
        raise ValidationError("product_id is required")

    planned = Grid.from_items(items)
    total = planned.grand_total()
    if total <= 0:
        raise ValidationError("Planned grid must contain at least one piece")

    return ProductionOrder(
        id=order_id or uuid.uuid4(),
        lot_number=lot_number.strip(),
        product_id=product_id.strip(),
        quantity_total=total,
        items=tuple(planned.to_items()),
        status=OrderStatus.CUTTING,
        subcontractor=(subcontractor or "").strip() or None,
        created_at=now,
        events=(_event(now, user, "created", f"Order created with {total} pieces", EventType.STATUS_CHANGE),),
    )


def ship(
    order: ProductionOrder,
    partner_name: str,
    *,
    existing_shipments: Iterable[Shipment] = (),
    is_internal: bool = False,
    rate_per_piece: float = 0.0,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> tuple[ProductionOrder, Shipment]:
    """Send the whole planned grid to a partner; returns (order, shipment)."""
    now = now or datetime.utcnow()
    partner = require(partner_name, InvalidPartner)
    require_status(order, OrderStatus.CUTTING, action="ship")
    if any(s.op_id == order.id for s in existing_shipments):
        raise IllegalTransitionError(f"Order {order.lot_number} already has a shipment")
    if rate_per_piece < 0:
        raise ValidationError("rate_per_piece must be non-negative")

    shipment = Shipment(
        id=uuid.uuid4(),
        op_id=order.id,
        subcontractor_name=partner,
        sent_quantity=order.quantity_total,
        sent_date=now,
        items_sent=order.items,
        is_internal=is_internal,
        rate_per_piece=rate_per_piece,
        external_token=secrets.token_urlsafe(16),
    )
    target = OrderStatus.CUTTING if is_internal else OrderStatus.SUBCONTRACTING
    updated = _transition(
        order,
        target,
        now=now,
        user=user,
        action="shipped",
        description=f"Shipped {order.quantity_total} pieces to {partner}",
        subcontractor=partner,
        is_internal=is_internal,
    )
    return updated, shipment


def cancel_shipment(
    order: ProductionOrder,
    shipment: Shipment,
    order_shipments: Iterable[Shipment],
    *,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Undo a shipment that has no returns; the order goes back to cutting."""
    now = now or datetime.utcnow()
    siblings = [s for s in order_shipments if s.id != shipment.id]
    if shipment.received_quantity > 0 or shipment.return_history or siblings:
        raise ReturnsAlreadyRegistered(shipment.id)
    require_status(order, OrderStatus.CUTTING, OrderStatus.SUBCONTRACTING, action="cancel the shipment of")

    return _transition(
        order,
        OrderStatus.CUTTING,
        now=now,
        user=user,
        action="shipment_cancelled",
        description=f"Shipment to {shipment.subcontractor_name} cancelled; order back in cutting",
        type_=EventType.ALERT,
        subcontractor=None,
        is_internal=False,
    )


def advance_after_returns(
    order: ProductionOrder,
    order_shipments: Iterable[Shipment],
    *,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Move to quality control once no shipment of the order is still open."""
    now = now or datetime.utcnow()
    shipments = list(order_shipments)
    if not shipments or any(s.status == ShipmentStatus.SENT for s in shipments):
        return order
    if order.status not in (OrderStatus.CUTTING, OrderStatus.SUBCONTRACTING):
        return order

    received = sum(s.received_quantity for s in shipments)
    return _transition(
        order,
        OrderStatus.QUALITY_CONTROL,
        now=now,
        user=user,
        action="returned",
        description=f"All {received} pieces returned; order sent to revision",
    )


# ── Revision ───────────────────────────────────────────────────────────────


def revision_source_grid(order: ProductionOrder) -> Grid:
    return order.planned_grid


def start_revision(order: ProductionOrder, *, now: datetime | None = None) -> ProductionOrder:
    """First open of the revision stage; a no-op when details already exist."""
    require_status(order, OrderStatus.QUALITY_CONTROL, action="start revision for")
    if order.revision_details is not None:
        return order
    return replace(order, revision_details=RevisionDetails(start_date=now or datetime.utcnow()))


def finalize_revision(
    order: ProductionOrder,
    approved_grid: Grid,
    rework_qty: int,
    rejected_qty: int,
    inspector_name: str,
    *,
    notes: str | None = None,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    now = now or datetime.utcnow()
    inspector = require(inspector_name, InspectorRequired)
    require_status(order, OrderStatus.QUALITY_CONTROL, action="finalize revision for")
    if rework_qty < 0 or rejected_qty < 0:
        raise ValidationError("rework_qty and rejected_qty must be non-negative")

    validate_grid(approved_grid, revision_source_grid(order))
    validate_stage_total(approved_grid, (rework_qty, rejected_qty), order.quantity_total)

    previous = order.revision_details
    details = RevisionDetails(
        inspector_name=inspector,
        approved_qty=approved_grid.grand_total(),
        rework_qty=rework_qty,
        rejected_qty=rejected_qty,
        items_approved=tuple(approved_grid.to_items(skip_zero=True)),
        is_finalized=True,
        start_date=previous.start_date if previous and previous.start_date else now,
        end_date=now,
        notes=notes,
    )
    return _transition(
        order,
        OrderStatus.PACKING,
        now=now,
        user=user,
        action="revision_finalized",
        description=(
            f"Revision by {inspector}: {details.approved_qty} approved, "
            f"{rework_qty} rework, {rejected_qty} rejected"
        ),
        revision_details=details,
    )


def revert_revision_to_subcontracting(
    order: ProductionOrder,
    *,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Operator correction: clear revision data and return to the sewing stage."""
    now = now or datetime.utcnow()
    if order.status in (OrderStatus.CUTTING, OrderStatus.SUBCONTRACTING):
        return order
    require_status(order, OrderStatus.QUALITY_CONTROL, action="revert revision of")

    target = OrderStatus.CUTTING if order.is_internal else OrderStatus.SUBCONTRACTING
    return _transition(
        order,
        target,
        now=now,
        user=user,
        action="revision_reverted",
        description=f"Revision reverted; order back in {target.value}",
        type_=EventType.ALERT,
        revision_details=None,
    )


def reopen_revision(
    order: ProductionOrder,
    order_shipments: Iterable[Shipment],
    *,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Send a reverted order back to revision once its shipments are resolved."""
    shipments = list(order_shipments)
    require_status(order, OrderStatus.CUTTING, OrderStatus.SUBCONTRACTING, action="reopen revision for")
    if not shipments or any(s.status == ShipmentStatus.SENT for s in shipments):
        raise IllegalTransitionError(f"Order {order.lot_number} still has pieces out with the partner")
    return advance_after_returns(order, shipments, now=now, user=user)


# ── Packing ────────────────────────────────────────────────────────────────


def packing_source_grid(order: ProductionOrder) -> Grid:
    """Approved grid of a finalized revision, or the planned grid when there is none.

    An all-zero approval yields an empty grid, so nothing can be packed.
    """
    details = order.revision_details
    if details is not None and details.is_finalized:
        return details.approved_grid()
    return order.planned_grid


def finalize_packing(
    order: ProductionOrder,
    packed_grid: Grid,
    warehouse: str,
    packer_name: str,
    *,
    packing_type: PackingType = PackingType.STANDARD_BOX,
    total_boxes: int = 1,
    items_per_box: int | None = None,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> PackingOutcome:
    """Finalize packing. A zero-piece packing succeeds but carries a warning."""
    now = now or datetime.utcnow()
    warehouse_name = require(warehouse, WarehouseRequired)
    packer = require(packer_name, PackerRequired)
    require_status(order, OrderStatus.PACKING, action="finalize packing for")
    if total_boxes < 0:
        raise ValidationError("total_boxes must be non-negative")

    source = packing_source_grid(order)
    validate_grid(packed_grid, source)
    validate_stage_total(packed_grid, (), source.grand_total())

    packed_total = packed_grid.grand_total()
    details = PackingDetails(
        packing_type=packing_type,
        total_boxes=total_boxes,
        items_per_box=items_per_box,
        total_packed_qty=packed_total,
        warehouse=warehouse_name,
        packer_name=packer,
        items_packed=tuple(packed_grid.to_items(skip_zero=True)),
        is_finalized=True,
        packed_date=now,
    )
    updated = _transition(
        order,
        OrderStatus.COMPLETED,
        now=now,
        user=user,
        action="packing_finalized",
        description=f"{packed_total} pieces packed by {packer} into {warehouse_name}",
        packing_details=details,
    )
    warnings = (EMPTY_PACKING_WARNING,) if packed_total == 0 else ()
    return PackingOutcome(order=updated, warnings=warnings)


def revert_packing_to_revision(
    order: ProductionOrder,
    *,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Reopen revision: packing data is cleared, the finalized revision is left as is."""
    now = now or datetime.utcnow()
    if order.status == OrderStatus.QUALITY_CONTROL:
        return order
    require_status(order, OrderStatus.PACKING, action="revert packing of")
    return _transition(
        order,
        OrderStatus.QUALITY_CONTROL,
        now=now,
        user=user,
        action="packing_reverted",
        description="Packing reverted; order back in revision",
        type_=EventType.ALERT,
        packing_details=None,
    )


def revert_completion_to_packing(
    order: ProductionOrder,
    *,
    now: datetime | None = None,
    user: str = SYSTEM_USER,
) -> ProductionOrder:
    """Reopen a completed order for packing; its packing details are cleared."""
    now = now or datetime.utcnow()
    require_status(order, OrderStatus.COMPLETED, action="revert completion of")
    return _transition(
        order,
        OrderStatus.PACKING,
        now=now,
        user=user,
        action="completion_reverted",
        description="Stock entry reversed; order back in packing",
        type_=EventType.ALERT,
        packing_details=None,
    )
