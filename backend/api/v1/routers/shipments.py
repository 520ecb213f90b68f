"""
Shipment Router: subcontract shipments (OSF) and their returns.

A return is checked cell by cell against the shipment's outstanding
balance. A partial return closes the shipment and opens a balance
shipment for the remainder; the response carries both.
"""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_db, get_pipeline
from production.grid import Grid, OrderItem
from production.models import OrderStatus, PaymentStatus, ShipmentStatus
from production.service import ProductionPipeline

router = APIRouter(prefix="/api/v1/shipments", tags=["shipments"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class OrderItemSchema(BaseModel):
    color: str
    size: str
    quantity: int

    model_config = {"from_attributes": True}


def grid_from_schema(items: list[OrderItemSchema]) -> Grid:
    return Grid.from_items(OrderItem(color=i.color, size=i.size, quantity=i.quantity) for i in items)


class GridResponse(BaseModel):
    items: list[OrderItemSchema]
    total: int

    @classmethod
    def from_grid(cls, grid: Grid) -> "GridResponse":
        return cls(
            items=[OrderItemSchema.model_validate(i) for i in grid.to_items()],
            total=grid.grand_total(),
        )


class ReturnEventResponse(BaseModel):
    id: UUID
    date: datetime
    total_quantity: int
    conferente: str
    items: list[OrderItemSchema]

    model_config = {"from_attributes": True}


class ShipmentResponse(BaseModel):
    id: UUID
    op_id: UUID
    subcontractor_name: str
    sent_quantity: int
    sent_date: datetime
    items_sent: list[OrderItemSchema]
    received_quantity: int
    items_received: list[OrderItemSchema]
    status: ShipmentStatus
    return_date: datetime | None
    parent_id: UUID | None
    external_token: str | None
    is_internal: bool
    rate_per_piece: float
    conferente: str | None
    return_history: list[ReturnEventResponse]
    observations: str | None

    model_config = {"from_attributes": True}


class ReturnRequest(BaseModel):
    conferente: str
    items: list[OrderItemSchema]


class PaymentBrief(BaseModel):
    id: UUID
    partner_name: str
    total_amount: float
    quantity_delivered: int
    date: date
    status: PaymentStatus

    model_config = {"from_attributes": True}


class ReturnResponse(BaseModel):
    shipment: ShipmentResponse
    child: ShipmentResponse | None
    payment: PaymentBrief | None
    order_status: OrderStatus


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ShipmentResponse])
async def list_shipments(
    order_id: UUID | None = Query(None, description="Only shipments of this production order"),
    pipeline: ProductionPipeline = Depends(get_pipeline),
):
    return await pipeline.store.get_shipments(op_id=order_id)


@router.get("/{shipment_id}", response_model=ShipmentResponse)
async def get_shipment(shipment_id: UUID, pipeline: ProductionPipeline = Depends(get_pipeline)):
    return await pipeline.get_shipment(shipment_id)


@router.get("/{shipment_id}/outstanding", response_model=GridResponse)
async def get_outstanding(shipment_id: UUID, pipeline: ProductionPipeline = Depends(get_pipeline)):
    """Pieces still at the partner, per cell."""
    return GridResponse.from_grid(await pipeline.outstanding(shipment_id))


@router.post("/{shipment_id}/returns", response_model=ReturnResponse)
async def register_return(
    shipment_id: UUID,
    body: ReturnRequest,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    result = await pipeline.register_return(shipment_id, grid_from_schema(body.items), body.conferente, user=actor)
    await db.commit()
    return ReturnResponse(
        shipment=ShipmentResponse.model_validate(result.shipment),
        child=ShipmentResponse.model_validate(result.child) if result.child else None,
        payment=PaymentBrief.model_validate(result.payment) if result.payment else None,
        order_status=result.order.status,
    )


@router.delete("/{shipment_id}", response_model=dict)
async def cancel_shipment(
    shipment_id: UUID,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Cancel a shipment that has no returns; the order goes back to cutting."""
    order = await pipeline.cancel_shipment(shipment_id, user=actor)
    await db.commit()
    return {"shipment_id": str(shipment_id), "order_id": str(order.id), "order_status": order.status.value}
