"""
Payables Router: amounts owed to sewing partners.

Payment records are created by returns; this router projects them into
payables with due dates and overdue flags, and posts payments.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_pipeline
from production.models import PaymentStatus
from production.service import ProductionPipeline

router = APIRouter(prefix="/api/v1/payables", tags=["payables"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class PayableResponse(BaseModel):
    id: UUID
    op_id: UUID
    partner: str
    service_type: str
    execution_date: date
    due_date: date
    quantity: int
    unit_price: float
    total: float
    amount_paid: float
    remaining_amount: float
    status: PaymentStatus
    is_overdue: bool
    days_overdue: int
    bank_account_name: str | None

    model_config = {"from_attributes": True}


class PayablesSummaryResponse(BaseModel):
    overdue_count: int
    overdue_amount: float
    due_today_count: int
    due_today_amount: float
    open_count: int
    open_amount: float
    paid_count: int
    paid_amount: float

    model_config = {"from_attributes": True}


class PaymentRequest(BaseModel):
    amount: float = Field(..., description="Amount paid now; added to what was already paid")
    bank_account_name: str | None = None


class PaymentResponse(BaseModel):
    id: UUID
    partner_name: str
    total_amount: float
    amount_paid: float
    remaining_amount: float
    status: PaymentStatus
    bank_account_name: str | None

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[PayableResponse])
async def list_payables(
    today: date | None = Query(None, description="Evaluate due status as of this date"),
    pipeline: ProductionPipeline = Depends(get_pipeline),
):
    """Overdue first, then by due date."""
    return [PayableResponse.model_validate(p) for p in await pipeline.list_payables(today)]


@router.get("/summary", response_model=PayablesSummaryResponse)
async def payables_summary(
    today: date | None = Query(None),
    pipeline: ProductionPipeline = Depends(get_pipeline),
):
    return PayablesSummaryResponse.model_validate(await pipeline.payables_summary(today))


@router.post("/{payment_id}/payments", response_model=PaymentResponse)
async def post_payment(
    payment_id: UUID,
    body: PaymentRequest,
    pipeline: ProductionPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
):
    record = await pipeline.post_payment(payment_id, body.amount, bank_account_name=body.bank_account_name)
    await db.commit()
    return PaymentResponse.model_validate(record)
