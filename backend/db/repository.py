"""
SQL persistence for the production pipeline.

SqlProductionStore implements production.store.ProductionStore over an
AsyncSession. Writes are flushed, never committed: the caller (one HTTP
request, one script run) owns the transaction and commits once.
"""

import uuid
from dataclasses import replace
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import PaymentRecordRow, ProductionOrderRow, StockEntryRow, SubcontractOrderRow
from inventory.stock_entry import StockEntry, StockEntrySink
from production.errors import NotFoundError
from production.grid import OrderItem
from production.models import (
    OrderEvent,
    OrderStatus,
    PackingDetails,
    PaymentRecord,
    PaymentStatus,
    ProductionOrder,
    ReturnEvent,
    RevisionDetails,
    Shipment,
    ShipmentStatus,
)
from production.store import ProductionStore

logger = structlog.get_logger()


def _items(rows: list[dict[str, Any]] | None) -> tuple[OrderItem, ...]:
    return tuple(OrderItem.from_dict(r) for r in rows or [])


def _item_rows(items: tuple[OrderItem, ...]) -> list[dict[str, Any]]:
    return [item.to_dict() for item in items]


# ── Row <-> record mapping ─────────────────────────────────────────────────


def order_from_row(row: ProductionOrderRow) -> ProductionOrder:
    return ProductionOrder(
        id=row.id,
        lot_number=row.lot_number,
        product_id=row.product_id,
        quantity_total=row.quantity_total,
        items=_items(row.items),
        status=OrderStatus(row.status),
        subcontractor=row.subcontractor,
        is_internal=row.is_internal,
        created_at=row.created_at,
        revision_details=RevisionDetails.from_dict(row.revision_details),
        packing_details=PackingDetails.from_dict(row.packing_details),
        events=tuple(OrderEvent.from_dict(e) for e in row.events or []),
    )


def _write_order(row: ProductionOrderRow, order: ProductionOrder) -> None:
    row.lot_number = order.lot_number
    row.product_id = order.product_id
    row.quantity_total = order.quantity_total
    row.items = _item_rows(order.items)
    row.status = order.status.value
    row.subcontractor = order.subcontractor
    row.is_internal = order.is_internal
    row.created_at = order.created_at
    row.revision_details = order.revision_details.to_dict() if order.revision_details else None
    row.packing_details = order.packing_details.to_dict() if order.packing_details else None
    row.events = [e.to_dict() for e in order.events]


def shipment_from_row(row: SubcontractOrderRow) -> Shipment:
    return Shipment(
        id=row.id,
        op_id=row.op_id,
        subcontractor_name=row.subcontractor_name,
        sent_quantity=row.sent_quantity,
        sent_date=row.sent_date,
        items_sent=_items(row.items_sent),
        received_quantity=row.received_quantity,
        items_received=_items(row.items_received),
        status=ShipmentStatus(row.status),
        return_date=row.return_date,
        parent_id=row.parent_id,
        external_token=row.external_token,
        is_internal=row.is_internal,
        rate_per_piece=row.rate_per_piece,
        conferente=row.conferente,
        return_history=tuple(ReturnEvent.from_dict(e) for e in row.return_history or []),
        observations=row.observations,
    )


def _write_shipment(row: SubcontractOrderRow, shipment: Shipment) -> None:
    row.op_id = shipment.op_id
    row.parent_id = shipment.parent_id
    row.subcontractor_name = shipment.subcontractor_name
    row.sent_quantity = shipment.sent_quantity
    row.sent_date = shipment.sent_date
    row.items_sent = _item_rows(shipment.items_sent)
    row.received_quantity = shipment.received_quantity
    row.items_received = _item_rows(shipment.items_received)
    row.status = shipment.status.value
    row.return_date = shipment.return_date
    row.external_token = shipment.external_token
    row.is_internal = shipment.is_internal
    row.rate_per_piece = shipment.rate_per_piece
    row.conferente = shipment.conferente
    row.return_history = [e.to_dict() for e in shipment.return_history]
    row.observations = shipment.observations


def payment_from_row(row: PaymentRecordRow) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        op_id=row.op_id,
        partner_name=row.partner_name,
        stage=row.stage,
        total_amount=row.total_amount,
        quantity_delivered=row.quantity_delivered,
        rate_per_piece=row.rate_per_piece,
        date=row.date,
        amount_paid=row.amount_paid,
        quantity_defect=row.quantity_defect,
        status=PaymentStatus(row.status),
        partner_type=row.partner_type,
        bank_account_name=row.bank_account_name,
    )


def _write_payment(row: PaymentRecordRow, payment: PaymentRecord) -> None:
    row.op_id = payment.op_id
    row.partner_name = payment.partner_name
    row.partner_type = payment.partner_type
    row.stage = payment.stage
    row.total_amount = payment.total_amount
    row.amount_paid = payment.amount_paid
    row.quantity_delivered = payment.quantity_delivered
    row.quantity_defect = payment.quantity_defect
    row.rate_per_piece = payment.rate_per_piece
    row.date = payment.date
    row.status = payment.status.value
    row.bank_account_name = payment.bank_account_name


# ── Store ──────────────────────────────────────────────────────────────────


class SqlProductionStore(ProductionStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, model, ident: uuid.UUID, kind: str):
        row = await self.db.get(model, ident)
        if row is None:
            raise NotFoundError(kind, ident)
        return row

    # Orders

    async def get_orders(self, status=None):
        query = select(ProductionOrderRow).order_by(ProductionOrderRow.created_at.desc())
        if status is not None:
            query = query.where(ProductionOrderRow.status == OrderStatus(status).value)
        result = await self.db.execute(query)
        return [order_from_row(r) for r in result.scalars().all()]

    async def get_order(self, order_id):
        row = await self.db.get(ProductionOrderRow, order_id)
        return order_from_row(row) if row else None

    async def create_order(self, order):
        row = ProductionOrderRow(id=order.id)
        _write_order(row, order)
        self.db.add(row)
        await self.db.flush()
        return order

    async def update_order(self, order_id, patch):
        row = await self._row(ProductionOrderRow, order_id, "Production order")
        updated = replace(order_from_row(row), **patch)
        _write_order(row, updated)
        await self.db.flush()
        return updated

    # Shipments

    async def get_shipments(self, op_id=None):
        query = select(SubcontractOrderRow).order_by(SubcontractOrderRow.sent_date)
        if op_id is not None:
            query = query.where(SubcontractOrderRow.op_id == op_id)
        result = await self.db.execute(query)
        return [shipment_from_row(r) for r in result.scalars().all()]

    async def get_shipment(self, shipment_id):
        row = await self.db.get(SubcontractOrderRow, shipment_id)
        return shipment_from_row(row) if row else None

    async def create_shipment(self, shipment):
        row = SubcontractOrderRow(id=shipment.id)
        _write_shipment(row, shipment)
        self.db.add(row)
        await self.db.flush()
        return shipment

    async def update_shipment(self, shipment_id, patch):
        row = await self._row(SubcontractOrderRow, shipment_id, "Shipment")
        updated = replace(shipment_from_row(row), **patch)
        _write_shipment(row, updated)
        await self.db.flush()
        return updated

    async def delete_shipment(self, shipment_id):
        row = await self._row(SubcontractOrderRow, shipment_id, "Shipment")
        await self.db.delete(row)
        await self.db.flush()

    # Payments

    async def get_payments(self, op_id=None):
        query = select(PaymentRecordRow).order_by(PaymentRecordRow.date)
        if op_id is not None:
            query = query.where(PaymentRecordRow.op_id == op_id)
        result = await self.db.execute(query)
        return [payment_from_row(r) for r in result.scalars().all()]

    async def get_payment(self, payment_id):
        row = await self.db.get(PaymentRecordRow, payment_id)
        return payment_from_row(row) if row else None

    async def create_payment(self, payment):
        row = PaymentRecordRow(id=payment.id)
        _write_payment(row, payment)
        self.db.add(row)
        await self.db.flush()
        return payment

    async def update_payment(self, payment_id, patch):
        row = await self._row(PaymentRecordRow, payment_id, "Payment")
        updated = replace(payment_from_row(row), **patch)
        _write_payment(row, updated)
        await self.db.flush()
        return updated


class SqlStockEntrySink(StockEntrySink):
    """Stock entries as rows in ``stock_entries``, one per order."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def emit(self, entry):
        self.db.add(
            StockEntryRow(
                op_id=entry.op_id,
                product_id=entry.product_id,
                lot_number=entry.lot_number,
                warehouse=entry.warehouse,
                quantity=entry.quantity,
                items=_item_rows(entry.items),
                entry_date=entry.date,
            )
        )
        await self.db.flush()
        logger.info("stock_entry.emitted", op_id=str(entry.op_id), warehouse=entry.warehouse, quantity=entry.quantity)

    async def retract(self, op_id):
        result = await self.db.execute(delete(StockEntryRow).where(StockEntryRow.op_id == op_id))
        await self.db.flush()
        logger.info("stock_entry.retracted", op_id=str(op_id), rows=result.rowcount)

    async def get_entry(self, op_id: uuid.UUID) -> StockEntry | None:
        result = await self.db.execute(select(StockEntryRow).where(StockEntryRow.op_id == op_id))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return StockEntry(
            op_id=row.op_id,
            product_id=row.product_id,
            lot_number=row.lot_number,
            warehouse=row.warehouse,
            date=row.entry_date,
            items=_items(row.items),
        )
