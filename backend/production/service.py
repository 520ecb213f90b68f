"""
Production Pipeline Service: load, validate, write once.

Each operation loads the records it needs from the persistence
collaborator, runs the pure transition from ``production.state_machine``
or ``production.subcontract``, and only then issues its writes. When a
validation fails nothing has been written yet.

Scratch drafts are read when a finalize call does not pass an explicit
grid, and cleared after a successful finalize or revert.
"""

import uuid
from dataclasses import dataclass
from datetime import date

import structlog

from core.config import Settings, get_settings
from inventory.stock_entry import StockEntry, StockEntrySink
from production import state_machine as sm
from production.drafts import DraftStage, DraftStore
from production.errors import NotFoundError, ValidationError
from production.grid import Grid, OrderItem
from production.models import (
    OrderStatus,
    PackingType,
    PayableItem,
    PaymentRecord,
    ProductionOrder,
    Shipment,
)
from production.payables import PayablesSummary, apply_payment, derive_payables, summarize_payables
from production.store import ProductionStore, changed_fields
from production.subcontract import ReturnOutcome, outstanding_grid, payment_for_return, register_return
from production.validators import validate_cell

logger = structlog.get_logger()

# Order status in which each stage draft may be edited.
DRAFT_STAGE_STATUS = {
    DraftStage.REVISION: OrderStatus.QUALITY_CONTROL,
    DraftStage.PACKING: OrderStatus.PACKING,
}


@dataclass(frozen=True)
class ReturnResult:
    order: ProductionOrder
    shipment: Shipment
    child: Shipment | None
    payment: PaymentRecord | None


@dataclass(frozen=True)
class PackingResult:
    order: ProductionOrder
    stock_entry: StockEntry
    warnings: tuple[str, ...]


class ProductionPipeline:
    def __init__(
        self,
        store: ProductionStore,
        drafts: DraftStore,
        stock_sink: StockEntrySink,
        settings: Settings | None = None,
    ):
        self.store = store
        self.drafts = drafts
        self.stock_sink = stock_sink
        self.settings = settings or get_settings()

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_order(self, order_id: uuid.UUID) -> ProductionOrder:
        order = await self.store.get_order(order_id)
        if order is None:
            raise NotFoundError("Production order", order_id)
        return order

    async def get_shipment(self, shipment_id: uuid.UUID) -> Shipment:
        shipment = await self.store.get_shipment(shipment_id)
        if shipment is None:
            raise NotFoundError("Shipment", shipment_id)
        return shipment

    async def _save_order(self, before: ProductionOrder, after: ProductionOrder) -> ProductionOrder:
        patch = changed_fields(before, after)
        if not patch:
            return before
        return await self.store.update_order(before.id, patch)

    # ── Cutting / shipping ────────────────────────────────────────────────

    async def create_order(
        self,
        lot_number: str,
        product_id: str,
        items: list[OrderItem],
        *,
        subcontractor: str | None = None,
        user: str = sm.SYSTEM_USER,
    ) -> ProductionOrder:
        order = sm.create_order(lot_number, product_id, items, subcontractor=subcontractor, user=user)
        order = await self.store.create_order(order)
        logger.info("order.created", order_id=str(order.id), lot=order.lot_number, quantity=order.quantity_total)
        return order

    async def ship(
        self,
        order_id: uuid.UUID,
        partner_name: str,
        *,
        is_internal: bool = False,
        rate_per_piece: float | None = None,
        user: str = sm.SYSTEM_USER,
    ) -> tuple[ProductionOrder, Shipment]:
        order = await self.get_order(order_id)
        existing = await self.store.get_shipments(op_id=order_id)
        rate = self.settings.default_piece_rate if rate_per_piece is None else rate_per_piece
        updated, shipment = sm.ship(
            order,
            partner_name,
            existing_shipments=existing,
            is_internal=is_internal,
            rate_per_piece=rate,
            user=user,
        )
        shipment = await self.store.create_shipment(shipment)
        updated = await self._save_order(order, updated)
        logger.info(
            "shipment.sent",
            order_id=str(order_id),
            shipment_id=str(shipment.id),
            partner=shipment.subcontractor_name,
            quantity=shipment.sent_quantity,
            internal=is_internal,
        )
        return updated, shipment

    async def cancel_shipment(self, shipment_id: uuid.UUID, *, user: str = sm.SYSTEM_USER) -> ProductionOrder:
        shipment = await self.get_shipment(shipment_id)
        order = await self.get_order(shipment.op_id)
        siblings = await self.store.get_shipments(op_id=order.id)
        updated = sm.cancel_shipment(order, shipment, siblings, user=user)

        await self.store.delete_shipment(shipment_id)
        updated = await self._save_order(order, updated)
        logger.info("shipment.cancelled", order_id=str(order.id), shipment_id=str(shipment_id))
        return updated

    async def outstanding(self, shipment_id: uuid.UUID) -> Grid:
        return outstanding_grid(await self.get_shipment(shipment_id))

    async def register_return(
        self,
        shipment_id: uuid.UUID,
        return_grid: Grid,
        conferente: str,
        *,
        user: str = sm.SYSTEM_USER,
    ) -> ReturnResult:
        shipment = await self.get_shipment(shipment_id)
        order = await self.get_order(shipment.op_id)
        try:
            outcome: ReturnOutcome = register_return(shipment, return_grid, conferente)
        except ValidationError as exc:
            logger.warning("shipment.return_rejected", shipment_id=str(shipment_id), error=str(exc))
            raise

        others = [s for s in await self.store.get_shipments(op_id=order.id) if s.id != shipment.id]
        resolved = others + [outcome.shipment] + ([outcome.child] if outcome.child else [])
        updated = sm.advance_after_returns(order, resolved, user=user)
        payment = payment_for_return(outcome.shipment, outcome.event)

        saved = await self.store.update_shipment(shipment.id, changed_fields(shipment, outcome.shipment))
        child = await self.store.create_shipment(outcome.child) if outcome.child else None
        if payment is not None:
            payment = await self.store.create_payment(payment)
        updated = await self._save_order(order, updated)

        logger.info(
            "shipment.return_registered",
            shipment_id=str(shipment_id),
            received=outcome.received_total,
            status=saved.status.value,
            conferente=outcome.event.conferente,
        )
        if child is not None:
            logger.info(
                "shipment.split",
                parent_id=str(shipment_id),
                child_id=str(child.id),
                remainder=child.sent_quantity,
            )
        if updated.status != order.status:
            logger.info("order.advanced", order_id=str(order.id), status=updated.status.value)
        return ReturnResult(order=updated, shipment=saved, child=child, payment=payment)

    # ── Drafts ────────────────────────────────────────────────────────────

    def _source_grid(self, stage: DraftStage, order: ProductionOrder) -> Grid:
        if DraftStage(stage) == DraftStage.REVISION:
            return sm.revision_source_grid(order)
        return sm.packing_source_grid(order)

    async def load_draft(self, stage: DraftStage, order_id: uuid.UUID) -> Grid:
        """Saved scratch grid, or zeros over the stage's source axes."""
        order = await self.get_order(order_id)
        draft = await self.drafts.get(stage, order_id)
        if draft is not None:
            return draft
        return Grid.zeros(self._source_grid(stage, order).axes())

    async def edit_draft_cell(
        self,
        stage: DraftStage,
        order_id: uuid.UUID,
        color: str,
        size: str,
        quantity: int,
    ) -> Grid:
        """Accept one cell edit after checking it against the source cell."""
        stage = DraftStage(stage)
        order = await self.get_order(order_id)
        sm.require_status(order, DRAFT_STAGE_STATUS[stage], action=f"edit the {stage.value} draft of")
        source = self._source_grid(stage, order)
        draft = await self.drafts.get(stage, order_id)
        base = draft if draft is not None else Grid.zeros(source.axes())
        try:
            validate_cell(quantity, source.cell(color, size), color=color, size=size)
            updated = base.set_cell(color, size, quantity)
        except ValidationError as exc:
            logger.warning("draft.edit_rejected", order_id=str(order_id), stage=stage.value, error=str(exc))
            raise

        await self.drafts.put(stage, order_id, updated)
        logger.info("draft.saved", order_id=str(order_id), stage=stage.value, total=updated.grand_total())
        return updated

    async def _clear_draft(self, stage: DraftStage, order_id: uuid.UUID) -> None:
        await self.drafts.clear(stage, order_id)
        logger.info("draft.cleared", order_id=str(order_id), stage=stage.value)

    # ── Revision ──────────────────────────────────────────────────────────

    async def start_revision(self, order_id: uuid.UUID) -> ProductionOrder:
        order = await self.get_order(order_id)
        return await self._save_order(order, sm.start_revision(order))

    async def finalize_revision(
        self,
        order_id: uuid.UUID,
        *,
        inspector_name: str,
        rework_qty: int = 0,
        rejected_qty: int = 0,
        approved_grid: Grid | None = None,
        notes: str | None = None,
        user: str = sm.SYSTEM_USER,
    ) -> ProductionOrder:
        order = await self.get_order(order_id)
        if approved_grid is None:
            approved_grid = await self.load_draft(DraftStage.REVISION, order_id)
        try:
            updated = sm.finalize_revision(
                order, approved_grid, rework_qty, rejected_qty, inspector_name, notes=notes, user=user
            )
        except ValidationError as exc:
            logger.warning("revision.rejected", order_id=str(order_id), error=str(exc))
            raise

        updated = await self._save_order(order, updated)
        await self._clear_draft(DraftStage.REVISION, order_id)
        logger.info(
            "revision.finalized",
            order_id=str(order_id),
            approved=updated.revision_details.approved_qty,
            rework=rework_qty,
            rejected=rejected_qty,
        )
        return updated

    async def revert_revision(self, order_id: uuid.UUID, *, user: str = sm.SYSTEM_USER) -> ProductionOrder:
        order = await self.get_order(order_id)
        updated = await self._save_order(order, sm.revert_revision_to_subcontracting(order, user=user))
        await self._clear_draft(DraftStage.REVISION, order_id)
        logger.info("revision.reverted", order_id=str(order_id), status=updated.status.value)
        return updated

    async def reopen_revision(self, order_id: uuid.UUID, *, user: str = sm.SYSTEM_USER) -> ProductionOrder:
        order = await self.get_order(order_id)
        shipments = await self.store.get_shipments(op_id=order_id)
        updated = await self._save_order(order, sm.reopen_revision(order, shipments, user=user))
        logger.info("order.advanced", order_id=str(order_id), status=updated.status.value)
        return updated

    # ── Packing ───────────────────────────────────────────────────────────

    async def finalize_packing(
        self,
        order_id: uuid.UUID,
        *,
        warehouse: str,
        packer_name: str,
        packed_grid: Grid | None = None,
        packing_type: PackingType = PackingType.STANDARD_BOX,
        total_boxes: int = 1,
        items_per_box: int | None = None,
        user: str = sm.SYSTEM_USER,
    ) -> PackingResult:
        order = await self.get_order(order_id)
        if packed_grid is None:
            packed_grid = await self.load_draft(DraftStage.PACKING, order_id)
        try:
            outcome = sm.finalize_packing(
                order,
                packed_grid,
                warehouse,
                packer_name,
                packing_type=packing_type,
                total_boxes=total_boxes,
                items_per_box=items_per_box,
                user=user,
            )
        except ValidationError as exc:
            logger.warning("packing.rejected", order_id=str(order_id), error=str(exc))
            raise

        updated = await self._save_order(order, outcome.order)
        await self._clear_draft(DraftStage.PACKING, order_id)

        details = updated.packing_details
        entry = StockEntry(
            op_id=updated.id,
            product_id=updated.product_id,
            lot_number=updated.lot_number,
            warehouse=details.warehouse,
            date=details.packed_date,
            items=details.items_packed,
        )
        await self.stock_sink.emit(entry)
        logger.info(
            "packing.finalized",
            order_id=str(order_id),
            packed=details.total_packed_qty,
            warehouse=details.warehouse,
            warnings=list(outcome.warnings),
        )
        return PackingResult(order=updated, stock_entry=entry, warnings=outcome.warnings)

    async def revert_packing(self, order_id: uuid.UUID, *, user: str = sm.SYSTEM_USER) -> ProductionOrder:
        """Reopen revision; the approved grid is staged as the revision draft."""
        order = await self.get_order(order_id)
        updated = await self._save_order(order, sm.revert_packing_to_revision(order, user=user))
        await self._clear_draft(DraftStage.PACKING, order_id)
        if order.status == OrderStatus.PACKING and order.revision_details is not None:
            approved = order.revision_details.approved_grid().over(order.axes)
            await self.drafts.put(DraftStage.REVISION, order_id, approved)
        logger.info("packing.reverted", order_id=str(order_id))
        return updated

    async def revert_completion(self, order_id: uuid.UUID, *, user: str = sm.SYSTEM_USER) -> ProductionOrder:
        """Reopen packing; the previously packed grid is staged as the packing draft."""
        order = await self.get_order(order_id)
        previous = order.packing_details
        updated = await self._save_order(order, sm.revert_completion_to_packing(order, user=user))
        await self.stock_sink.retract(order_id)
        if previous is not None:
            await self.drafts.put(DraftStage.PACKING, order_id, previous.packed_grid())
        logger.info("completion.reverted", order_id=str(order_id))
        return updated

    # ── Payables ──────────────────────────────────────────────────────────

    async def list_payables(self, today: date | None = None) -> list[PayableItem]:
        records = await self.store.get_payments()
        return derive_payables(records, today, due_days=self.settings.payable_due_days)

    async def payables_summary(self, today: date | None = None) -> PayablesSummary:
        return summarize_payables(await self.list_payables(today), today)

    async def post_payment(
        self,
        payment_id: uuid.UUID,
        amount: float,
        *,
        bank_account_name: str | None = None,
    ) -> PaymentRecord:
        record = await self.store.get_payment(payment_id)
        if record is None:
            raise NotFoundError("Payment", payment_id)
        updated = apply_payment(
            record,
            amount,
            bank_account_name=bank_account_name,
            epsilon=self.settings.payment_settle_epsilon,
        )
        saved = await self.store.update_payment(payment_id, changed_fields(record, updated))
        logger.info(
            "payment.posted",
            payment_id=str(payment_id),
            amount=amount,
            paid=saved.amount_paid,
            status=saved.status.value,
        )
        return saved
