"""
Production Order Router: the OP lifecycle.

  1. Create the order with its planned color × size grid → status='cutting'
  2. Ship to a partner → 'subcontracting' (internal production stays in 'cutting')
  3. Returns recorded on /shipments → 'quality_control' once nothing is at a partner
  4. Revision grid typed into the draft, then finalized → 'packing'
  5. Packing grid typed into the draft, then finalized → 'completed' + stock entry

Revert endpoints move the order back exactly one stage.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_db, get_pipeline
from api.v1.routers.shipments import GridResponse, OrderItemSchema, ShipmentResponse, grid_from_schema
from production.drafts import DraftStage
from production.grid import OrderItem
from production.models import EventType, OrderStatus, PackingType
from production.service import ProductionPipeline

router = APIRouter(prefix="/api/v1/production-orders", tags=["production-orders"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class OrderEventResponse(BaseModel):
    date: datetime
    user: str
    action: str
    description: str
    type: EventType

    model_config = {"from_attributes": True}


class RevisionDetailsResponse(BaseModel):
    inspector_name: str
    approved_qty: int
    rework_qty: int
    rejected_qty: int
    items_approved: list[OrderItemSchema]
    is_finalized: bool
    start_date: datetime | None
    end_date: datetime | None
    notes: str | None

    model_config = {"from_attributes": True}


class PackingDetailsResponse(BaseModel):
    packing_type: PackingType
    total_boxes: int
    items_per_box: int | None
    total_packed_qty: int
    warehouse: str
    packer_name: str
    items_packed: list[OrderItemSchema]
    is_finalized: bool
    packed_date: datetime | None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: UUID
    lot_number: str
    product_id: str
    quantity_total: int
    items: list[OrderItemSchema]
    status: OrderStatus
    subcontractor: str | None
    is_internal: bool
    created_at: datetime
    revision_details: RevisionDetailsResponse | None
    packing_details: PackingDetailsResponse | None
    events: list[OrderEventResponse]

    model_config = {"from_attributes": True}


class OrderCreate(BaseModel):
    lot_number: str
    product_id: str
    items: list[OrderItemSchema]
    subcontractor: str | None = None


class ShipRequest(BaseModel):
    partner_name: str
    is_internal: bool = False
    rate_per_piece: float | None = None  # Falls back to default_piece_rate


class ShipResponse(BaseModel):
    order: OrderResponse
    shipment: ShipmentResponse


class CellEdit(BaseModel):
    color: str
    size: str
    quantity: int


class RevisionFinalizeRequest(BaseModel):
    """Omit ``items`` to finalize the saved revision draft."""

    inspector_name: str
    rework_qty: int = 0
    rejected_qty: int = 0
    items: list[OrderItemSchema] | None = None
    notes: str | None = None


class PackingFinalizeRequest(BaseModel):
    """Omit ``items`` to finalize the saved packing draft."""

    warehouse: str
    packer_name: str
    items: list[OrderItemSchema] | None = None
    packing_type: PackingType = PackingType.STANDARD_BOX
    total_boxes: int = 1
    items_per_box: int | None = None


class PackingFinalizeResponse(BaseModel):
    order: OrderResponse
    warnings: list[str]


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/", response_model=OrderResponse, status_code=201)
async def create_order(
    body: OrderCreate,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    order = await pipeline.create_order(
        body.lot_number,
        body.product_id,
        [OrderItem(color=i.color, size=i.size, quantity=i.quantity) for i in body.items],
        subcontractor=body.subcontractor,
        user=actor,
    )
    await db.commit()
    return order


@router.get("/", response_model=list[OrderResponse])
async def list_orders(
    status: OrderStatus | None = Query(None),
    pipeline: ProductionPipeline = Depends(get_pipeline),
):
    return await pipeline.store.get_orders(status=status)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, pipeline: ProductionPipeline = Depends(get_pipeline)):
    return await pipeline.get_order(order_id)


@router.post("/{order_id}/ship", response_model=ShipResponse)
async def ship_order(
    order_id: UUID,
    body: ShipRequest,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    order, shipment = await pipeline.ship(
        order_id,
        body.partner_name,
        is_internal=body.is_internal,
        rate_per_piece=body.rate_per_piece,
        user=actor,
    )
    await db.commit()
    return ShipResponse(order=OrderResponse.model_validate(order), shipment=ShipmentResponse.model_validate(shipment))


# ─── Drafts ─────────────────────────────────────────────────────────────────


@router.get("/{order_id}/drafts/{stage}", response_model=GridResponse)
async def get_draft(order_id: UUID, stage: DraftStage, pipeline: ProductionPipeline = Depends(get_pipeline)):
    return GridResponse.from_grid(await pipeline.load_draft(stage, order_id))


@router.put("/{order_id}/drafts/{stage}/cells", response_model=GridResponse)
async def edit_draft_cell(
    order_id: UUID,
    stage: DraftStage,
    body: CellEdit,
    pipeline: ProductionPipeline = Depends(get_pipeline),
):
    """Save one cell of the scratch grid; refused when it exceeds the source cell."""
    grid = await pipeline.edit_draft_cell(stage, order_id, body.color, body.size, body.quantity)
    return GridResponse.from_grid(grid)


# ─── Revision ───────────────────────────────────────────────────────────────


@router.post("/{order_id}/revision/start", response_model=OrderResponse)
async def start_revision(
    order_id: UUID,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
):
    order = await pipeline.start_revision(order_id)
    await db.commit()
    return order


@router.post("/{order_id}/revision/finalize", response_model=OrderResponse)
async def finalize_revision(
    order_id: UUID,
    body: RevisionFinalizeRequest,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    order = await pipeline.finalize_revision(
        order_id,
        inspector_name=body.inspector_name,
        rework_qty=body.rework_qty,
        rejected_qty=body.rejected_qty,
        approved_grid=grid_from_schema(body.items) if body.items is not None else None,
        notes=body.notes,
        user=actor,
    )
    await db.commit()
    return order


@router.post("/{order_id}/revision/revert", response_model=OrderResponse)
async def revert_revision(
    order_id: UUID,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    order = await pipeline.revert_revision(order_id, user=actor)
    await db.commit()
    return order


@router.post("/{order_id}/revision/reopen", response_model=OrderResponse)
async def reopen_revision(
    order_id: UUID,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Send a reverted order back to quality control once no shipment is open."""
    order = await pipeline.reopen_revision(order_id, user=actor)
    await db.commit()
    return order


# ─── Packing / completion ───────────────────────────────────────────────────


@router.post("/{order_id}/packing/finalize", response_model=PackingFinalizeResponse)
async def finalize_packing(
    order_id: UUID,
    body: PackingFinalizeRequest,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    result = await pipeline.finalize_packing(
        order_id,
        warehouse=body.warehouse,
        packer_name=body.packer_name,
        packed_grid=grid_from_schema(body.items) if body.items is not None else None,
        packing_type=body.packing_type,
        total_boxes=body.total_boxes,
        items_per_box=body.items_per_box,
        user=actor,
    )
    await db.commit()
    return PackingFinalizeResponse(order=OrderResponse.model_validate(result.order), warnings=list(result.warnings))


@router.post("/{order_id}/packing/revert", response_model=OrderResponse)
async def revert_packing(
    order_id: UUID,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    order = await pipeline.revert_packing(order_id, user=actor)
    await db.commit()
    return order


@router.post("/{order_id}/completion/revert", response_model=OrderResponse)
async def revert_completion(
    order_id: UUID,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Reopen packing and retract the stock entry."""
    order = await pipeline.revert_completion(order_id, user=actor)
    await db.commit()
    return order
