"""
Reports Router: partner quality ranking and production funnel.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_pipeline
from production.reports import partner_quality_ranking, production_funnel, to_records
from production.service import ProductionPipeline

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


class PartnerQualityRow(BaseModel):
    partner: str
    orders: int
    total_qty: int
    approved: int
    rework: int
    rejected: int
    defect_rate: float
    avg_lead_time_days: float
    score: int


class FunnelStage(BaseModel):
    stage: str
    quantity: int
    pct_of_planned: float


@router.get("/partner-quality", response_model=list[PartnerQualityRow])
async def partner_quality(pipeline: ProductionPipeline = Depends(get_pipeline)):
    orders = await pipeline.store.get_orders()
    shipments = await pipeline.store.get_shipments()
    return to_records(partner_quality_ranking(orders, shipments))


@router.get("/production-funnel", response_model=list[FunnelStage])
async def funnel(pipeline: ProductionPipeline = Depends(get_pipeline)):
    orders = await pipeline.store.get_orders()
    shipments = await pipeline.store.get_shipments()
    return to_records(production_funnel(orders, shipments))
