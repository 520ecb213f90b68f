"""
Subcontract split/return protocol.

A shipment (OSF) carries a sent grid and a cumulative received grid.
When a partner returns pieces:

1. The return is bounded cell by cell by the shipment's outstanding grid
   (sent minus received, floored at 0).
2. An exact return closes the shipment (done).
3. A short return settles the shipment as partial and opens a child
   shipment for the unconsumed remainder, with ``parent_id`` pointing
   back. The child has its own lifecycle and receives the next wave.

All-zero returns are allowed: the child then carries the same
outstanding grid as its parent did.
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from production.errors import EmptyConferente, IllegalTransitionError
from production.grid import Grid
from production.models import PaymentRecord, ReturnEvent, Shipment, ShipmentStatus
from production.validators import require, validate_grid

SEWING_STAGE = "sewing"


@dataclass(frozen=True)
class ReturnOutcome:
    shipment: Shipment
    child: Shipment | None
    event: ReturnEvent

    @property
    def received_total(self) -> int:
        return self.event.total_quantity


def outstanding_grid(shipment: Shipment) -> Grid:
    return shipment.sent_grid().minus(shipment.received_grid())


def register_return(
    shipment: Shipment,
    return_grid: Grid,
    conferente: str,
    *,
    now: datetime | None = None,
) -> ReturnOutcome:
    """Apply one return wave to an open shipment."""
    now = now or datetime.utcnow()
    checker = require(conferente, EmptyConferente)
    if shipment.status != ShipmentStatus.SENT:
        raise IllegalTransitionError(
            f"Shipment {shipment.id} is {shipment.status.value}; returns go to its open balance shipment"
        )

    outstanding = outstanding_grid(shipment)
    validate_grid(return_grid, outstanding)

    received_total = return_grid.grand_total()
    outstanding_total = outstanding.grand_total()
    event = ReturnEvent(
        id=uuid.uuid4(),
        date=now,
        total_quantity=received_total,
        conferente=checker,
        items=tuple(return_grid.to_items(skip_zero=True)),
    )

    child = None
    if received_total == outstanding_total:
        status = ShipmentStatus.DONE
    else:
        status = ShipmentStatus.PARTIAL
        remainder = outstanding.minus(return_grid)
        child = Shipment(
            id=uuid.uuid4(),
            op_id=shipment.op_id,
            subcontractor_name=shipment.subcontractor_name,
            sent_quantity=remainder.grand_total(),
            sent_date=now,
            items_sent=tuple(remainder.to_items()),
            parent_id=shipment.id,
            external_token=secrets.token_urlsafe(16),
            is_internal=shipment.is_internal,
            rate_per_piece=shipment.rate_per_piece,
        )

    received = shipment.received_grid().plus(return_grid)
    settled = replace(
        shipment,
        received_quantity=shipment.received_quantity + received_total,
        items_received=tuple(received.to_items(skip_zero=True)),
        status=status,
        return_date=now,
        conferente=checker,
        return_history=shipment.return_history + (event,),
    )
    return ReturnOutcome(shipment=settled, child=child, event=event)


def payment_for_return(shipment: Shipment, event: ReturnEvent) -> PaymentRecord | None:
    """Ledger row owed to the partner for one return wave; None when nothing is owed."""
    if shipment.is_internal or event.total_quantity == 0 or shipment.rate_per_piece <= 0:
        return None
    return PaymentRecord(
        id=uuid.uuid4(),
        op_id=shipment.op_id,
        partner_name=shipment.subcontractor_name,
        stage=SEWING_STAGE,
        total_amount=round(event.total_quantity * shipment.rate_per_piece, 2),
        quantity_delivered=event.total_quantity,
        rate_per_piece=shipment.rate_per_piece,
        date=event.date.date(),
    )


def open_shipments(shipments: Iterable[Shipment]) -> list[Shipment]:
    return [s for s in shipments if s.status == ShipmentStatus.SENT]


def cumulative_received(shipments: Iterable[Shipment]) -> int:
    return sum(s.received_quantity for s in shipments)
