"""
Tests for the SQL persistence collaborator and stock entry sink (SQLite).
"""

import uuid

import pytest

from db.repository import SqlProductionStore, SqlStockEntrySink
from production.errors import NotFoundError
from production.grid import Grid
from production.models import OrderStatus, ShipmentStatus


@pytest.mark.asyncio
class TestSqlProductionStore:
    async def test_order_round_trip(self, test_db, seeded_order):
        store = SqlProductionStore(test_db)
        loaded = await store.get_order(seeded_order.id)
        assert loaded.lot_number == "LOT-0001"
        assert loaded.planned_grid == seeded_order.planned_grid
        assert loaded.events[0].action == "created"
        assert loaded.status == OrderStatus.CUTTING

    async def test_filter_by_status(self, test_db, seeded_order):
        store = SqlProductionStore(test_db)
        assert [o.id for o in await store.get_orders(OrderStatus.CUTTING)] == [seeded_order.id]
        assert await store.get_orders(OrderStatus.PACKING) == []

    async def test_update_unknown_order(self, test_db):
        with pytest.raises(NotFoundError):
            await SqlProductionStore(test_db).update_order(uuid.uuid4(), {"status": OrderStatus.PACKING})

    async def test_full_flow_persists_nested_details(self, test_db, seeded_order, sql_pipeline):
        _, shipment = await sql_pipeline.ship(seeded_order.id, "Confecção X", rate_per_piece=1.5)
        first = await sql_pipeline.register_return(shipment.id, Grid.from_matrix({"Blue": {"M": 6, "L": 5}}), "Ana")
        await sql_pipeline.register_return(first.child.id, Grid.from_matrix({"Blue": {"M": 4}}), "Ana")
        await sql_pipeline.finalize_revision(
            seeded_order.id,
            inspector_name="Ana",
            rework_qty=2,
            rejected_qty=1,
            approved_grid=Grid.from_matrix({"Blue": {"M": 8, "L": 4}}),
        )
        await sql_pipeline.finalize_packing(
            seeded_order.id,
            warehouse="Main",
            packer_name="Bruno",
            packed_grid=Grid.from_matrix({"Blue": {"M": 8, "L": 4}}),
        )
        await test_db.commit()

        store = SqlProductionStore(test_db)
        order = await store.get_order(seeded_order.id)
        assert order.status == OrderStatus.COMPLETED
        assert order.revision_details.approved_grid() == Grid.from_matrix({"Blue": {"M": 8, "L": 4}})
        assert order.packing_details.total_packed_qty == 12

        parent = await store.get_shipment(shipment.id)
        assert parent.status == ShipmentStatus.PARTIAL
        assert parent.return_history[0].total_quantity == 11
        child = await store.get_shipment(first.child.id)
        assert child.parent_id == shipment.id
        assert child.status == ShipmentStatus.DONE

        payments = await store.get_payments(op_id=seeded_order.id)
        assert sorted(p.quantity_delivered for p in payments) == [4, 11]

        entry = await SqlStockEntrySink(test_db).get_entry(seeded_order.id)
        assert entry.quantity == 12
        assert entry.warehouse == "Main"

    async def test_cancel_deletes_row(self, test_db, seeded_order, sql_pipeline):
        _, shipment = await sql_pipeline.ship(seeded_order.id, "Confecção X")
        await sql_pipeline.cancel_shipment(shipment.id)
        await test_db.commit()
        store = SqlProductionStore(test_db)
        assert await store.get_shipment(shipment.id) is None
        assert (await store.get_order(seeded_order.id)).status == OrderStatus.CUTTING


@pytest.mark.asyncio
class TestSqlStockEntrySink:
    async def test_retract_removes_entry(self, test_db, seeded_order, sql_pipeline):
        _, shipment = await sql_pipeline.ship(seeded_order.id, "Oficina", is_internal=True)
        result = await sql_pipeline.register_return(shipment.id, shipment.sent_grid(), "Ana")
        assert result.payment is None
        await sql_pipeline.finalize_revision(seeded_order.id, inspector_name="Ana", approved_grid=shipment.sent_grid())
        await sql_pipeline.finalize_packing(seeded_order.id, warehouse="Main", packer_name="Bruno")
        sink = SqlStockEntrySink(test_db)
        assert await sink.get_entry(seeded_order.id) is not None

        await sql_pipeline.revert_completion(seeded_order.id)
        await test_db.commit()
        assert await sink.get_entry(seeded_order.id) is None
