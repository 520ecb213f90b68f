#!/usr/bin/env python3
"""Walk one production order through the whole pipeline and print a JSON summary.

Runs entirely in memory (no database, no Redis):
  A) Ship 15 pieces to a partner, partial return of 11 → balance shipment of 4
  B) Return the balance → shipment done, order moves to quality control
  C) Revision: 12 approved, 2 rework, 1 rejected → packing
  D) Packing a cell above the approved grid is refused; a valid grid completes the order
  E) Sewing payable from the first return, due the next day, overdue two days later

Usage:
  PYTHONPATH=backend python3 backend/scripts/run_pipeline_demo.py
  PYTHONPATH=backend python3 backend/scripts/run_pipeline_demo.py --rate 1.5 --output demo.json
"""

import argparse
import asyncio
import json
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import structlog

from core.config import Settings
from inventory.stock_entry import InMemoryStockEntrySink
from production.drafts import DraftStage, InMemoryDraftStore
from production.errors import GridExceedsSource
from production.grid import Grid, OrderItem
from production.payables import derive_payables
from production.reports import partner_quality_ranking, production_funnel, to_records
from production.service import ProductionPipeline
from production.store import InMemoryProductionStore

logger = structlog.get_logger()


async def run_demo(partner: str, rate: float) -> dict[str, Any]:
    store = InMemoryProductionStore()
    sink = InMemoryStockEntrySink()
    pipeline = ProductionPipeline(store, InMemoryDraftStore(), sink, settings=Settings(default_piece_rate=rate))
    summary: dict[str, Any] = {}

    order = await pipeline.create_order(
        "LOT-0001",
        "TSHIRT-BASIC",
        [OrderItem("Blue", "M", 10), OrderItem("Blue", "L", 5)],
        subcontractor=partner,
    )

    # A: partial return
    order, shipment = await pipeline.ship(order.id, partner)
    first = await pipeline.register_return(shipment.id, Grid.from_matrix({"Blue": {"M": 6, "L": 5}}), "Ana")
    summary["A"] = {
        "parent_status": first.shipment.status.value,
        "child_sent_quantity": first.child.sent_quantity,
        "child_grid": first.child.sent_grid().to_matrix(),
        "order_status": first.order.status.value,
    }

    # B: balance returned
    second = await pipeline.register_return(first.child.id, Grid.from_matrix({"Blue": {"M": 4}}), "Ana")
    shipments = await store.get_shipments(op_id=order.id)
    summary["B"] = {
        "child_status": second.shipment.status.value,
        "cumulative_received": sum(s.received_quantity for s in shipments),
        "order_status": second.order.status.value,
    }

    # C: revision through the draft
    await pipeline.start_revision(order.id)
    await pipeline.edit_draft_cell(DraftStage.REVISION, order.id, "Blue", "M", 8)
    await pipeline.edit_draft_cell(DraftStage.REVISION, order.id, "Blue", "L", 4)
    order = await pipeline.finalize_revision(order.id, inspector_name="Ana", rework_qty=2, rejected_qty=1)
    summary["C"] = {"approved_qty": order.revision_details.approved_qty, "order_status": order.status.value}

    # D: packing above the approved cell is refused
    refused = None
    try:
        await pipeline.finalize_packing(
            order.id,
            warehouse="Main",
            packer_name="Bruno",
            packed_grid=Grid.from_matrix({"Blue": {"M": 9, "L": 4}}),
        )
    except GridExceedsSource as exc:
        refused = exc.to_dict()
    packing = await pipeline.finalize_packing(
        order.id,
        warehouse="Main",
        packer_name="Bruno",
        packed_grid=Grid.from_matrix({"Blue": {"M": 8, "L": 4}}),
    )
    summary["D"] = {
        "refused": refused,
        "order_status": packing.order.status.value,
        "stock_entry_quantity": packing.stock_entry.quantity,
    }

    # E: payable from the first return
    payments = await store.get_payments(op_id=order.id)
    if payments:
        executed = payments[0].date
        payables = derive_payables(payments, today=executed + timedelta(days=2))
        summary["E"] = [
            {
                "execution_date": p.execution_date.isoformat(),
                "due_date": p.due_date.isoformat(),
                "total": p.total,
                "is_overdue": p.is_overdue,
                "days_overdue": p.days_overdue,
            }
            for p in payables
        ]
    else:
        summary["E"] = []

    orders = await store.get_orders()
    all_shipments = await store.get_shipments()
    summary["reports"] = {
        "partner_quality": to_records(partner_quality_ranking(orders, all_shipments)),
        "production_funnel": to_records(production_funnel(orders, all_shipments)),
    }
    summary["events"] = [e.action for e in packing.order.events]
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the production pipeline demo in memory")
    parser.add_argument("--partner", default="Confecção X", help="Sewing partner name")
    parser.add_argument("--rate", type=float, default=1.5, help="Piece rate paid to the partner")
    parser.add_argument("--output", type=Path, default=None, help="Also write the summary to this file")
    args = parser.parse_args()

    summary = asyncio.run(run_demo(args.partner, args.rate))
    summary["generated_on"] = date.today().isoformat()
    payload = json.dumps(summary, indent=2, ensure_ascii=False, default=str)
    if args.output:
        args.output.write_text(payload, encoding="utf-8")
        logger.info("demo.summary_written", path=str(args.output))
    print(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
