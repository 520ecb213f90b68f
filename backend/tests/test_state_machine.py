"""
Tests for the order state machine reducers.

cutting → subcontracting → quality_control → packing → completed, with
single-step revert edges.
"""

from dataclasses import replace
from datetime import datetime

import pytest

from production import state_machine as sm
from production.errors import (
    GridExceedsSource,
    IllegalTransitionError,
    InspectorRequired,
    InvalidPartner,
    PackerRequired,
    ReturnsAlreadyRegistered,
    TotalExceeded,
    ValidationError,
    WarehouseRequired,
)
from production.grid import Grid, OrderItem
from production.models import EventType, OrderStatus, ShipmentStatus
from production.subcontract import register_return

NOW = datetime(2024, 3, 10, 9, 0)
PLANNED = [OrderItem("Blue", "M", 10), OrderItem("Blue", "L", 5)]


def _order(**changes):
    order = sm.create_order("LOT-0001", "TSHIRT-BASIC", PLANNED, now=NOW)
    return replace(order, **changes) if changes else order


def _in_qc(is_internal=False):
    order, shipment = sm.ship(_order(), "Confecção X", is_internal=is_internal, now=NOW)
    outcome = register_return(shipment, shipment.sent_grid(), "Ana", now=NOW)
    return sm.advance_after_returns(order, [outcome.shipment], now=NOW)


def _in_packing():
    return sm.finalize_revision(_in_qc(), Grid.from_matrix({"Blue": {"M": 8, "L": 4}}), 2, 1, "Ana", now=NOW)


class TestCreateOrder:
    def test_total_is_sum_of_items(self):
        order = _order()
        assert order.quantity_total == 15
        assert order.status == OrderStatus.CUTTING
        assert order.events[0].action == "created"

    def test_empty_grid_rejected(self):
        with pytest.raises(ValidationError):
            sm.create_order("LOT-1", "P", [OrderItem("Blue", "M", 0)])

    def test_lot_required(self):
        with pytest.raises(ValidationError, match="lot_number"):
            sm.create_order("  ", "P", PLANNED)

    def test_planned_axes_are_cached_projection(self):
        order = _order()
        assert order.axes.colors == ("Blue",)
        assert order.axes.sizes == ("L", "M")
        assert order.planned_grid.cell("Blue", "M") == 10


class TestShip:
    def test_external_shipment_moves_to_subcontracting(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        assert order.status == OrderStatus.SUBCONTRACTING
        assert order.subcontractor == "Confecção X"
        assert shipment.sent_quantity == 15
        assert shipment.status == ShipmentStatus.SENT
        assert shipment.sent_grid() == order.planned_grid
        assert shipment.external_token

    def test_internal_shipment_stays_in_cutting(self):
        order, shipment = sm.ship(_order(), "Oficina interna", is_internal=True, now=NOW)
        assert order.status == OrderStatus.CUTTING
        assert order.is_internal is True
        assert shipment.is_internal is True

    def test_partner_name_containing_interno_is_not_internal(self):
        order, shipment = sm.ship(_order(), "Atelier Interno Ltda", now=NOW)
        assert order.status == OrderStatus.SUBCONTRACTING
        assert shipment.is_internal is False

    def test_blank_partner_rejected(self):
        with pytest.raises(InvalidPartner):
            sm.ship(_order(), "  ")

    def test_second_shipment_rejected(self):
        order = _order()
        _, shipment = sm.ship(order, "Confecção X", now=NOW)
        with pytest.raises(IllegalTransitionError):
            sm.ship(order, "Other", existing_shipments=[shipment])

    def test_ship_requires_cutting(self):
        with pytest.raises(IllegalTransitionError):
            sm.ship(_in_qc(), "Confecção X")


class TestCancelShipment:
    def test_cancel_without_returns_goes_back_to_cutting(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        order = sm.cancel_shipment(order, shipment, [shipment], now=NOW)
        assert order.status == OrderStatus.CUTTING
        assert order.subcontractor is None
        assert order.events[-1].type == EventType.ALERT

    def test_cancel_after_return_refused(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        outcome = register_return(shipment, Grid.from_matrix({"Blue": {"M": 1}}), "Ana", now=NOW)
        with pytest.raises(ReturnsAlreadyRegistered):
            sm.cancel_shipment(order, outcome.shipment, [outcome.shipment, outcome.child])

    def test_cancel_balance_shipment_refused(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        outcome = register_return(shipment, Grid.from_matrix({"Blue": {"M": 1}}), "Ana", now=NOW)
        # The child itself has no returns, but its parent does
        with pytest.raises(ReturnsAlreadyRegistered):
            sm.cancel_shipment(order, outcome.child, [outcome.shipment, outcome.child])


class TestAdvanceAfterReturns:
    def test_open_shipment_keeps_status(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        assert sm.advance_after_returns(order, [shipment]).status == OrderStatus.SUBCONTRACTING

    def test_all_resolved_moves_to_quality_control(self):
        assert _in_qc().status == OrderStatus.QUALITY_CONTROL

    def test_internal_order_moves_from_cutting_to_quality_control(self):
        assert _in_qc(is_internal=True).status == OrderStatus.QUALITY_CONTROL


class TestRevision:
    def test_start_revision_sets_start_date_once(self):
        order = sm.start_revision(_in_qc(), now=NOW)
        assert order.revision_details.start_date == NOW
        assert sm.start_revision(order, now=datetime(2025, 1, 1)) is order

    def test_scenario_c_finalize_moves_to_packing(self):
        order = _in_packing()
        assert order.status == OrderStatus.PACKING
        details = order.revision_details
        assert details.is_finalized
        assert (details.approved_qty, details.rework_qty, details.rejected_qty) == (12, 2, 1)
        assert details.inspector_name == "Ana"

    def test_boundary_total_equal_to_quantity_succeeds(self):
        order = sm.finalize_revision(_in_qc(), Grid.from_matrix({"Blue": {"M": 10, "L": 5}}), 0, 0, "Ana")
        assert order.status == OrderStatus.PACKING

    def test_boundary_total_above_quantity_fails(self):
        with pytest.raises(TotalExceeded) as exc_info:
            sm.finalize_revision(_in_qc(), Grid.from_matrix({"Blue": {"M": 10, "L": 5}}), 1, 0, "Ana")
        assert exc_info.value.total == 16

    def test_approved_cell_above_planned_fails(self):
        with pytest.raises(GridExceedsSource):
            sm.finalize_revision(_in_qc(), Grid.from_matrix({"Blue": {"M": 11}}), 0, 0, "Ana")

    def test_inspector_required(self):
        with pytest.raises(InspectorRequired):
            sm.finalize_revision(_in_qc(), Grid.from_matrix({"Blue": {"M": 1}}), 0, 0, "")

    def test_finalize_requires_quality_control(self):
        with pytest.raises(IllegalTransitionError):
            sm.finalize_revision(_order(), Grid.from_matrix({"Blue": {"M": 1}}), 0, 0, "Ana")

    def test_revert_clears_details_and_returns_to_subcontracting(self):
        order = sm.start_revision(_in_qc(), now=NOW)
        reverted = sm.revert_revision_to_subcontracting(order, now=NOW)
        assert reverted.status == OrderStatus.SUBCONTRACTING
        assert reverted.revision_details is None

    def test_revert_internal_returns_to_cutting(self):
        reverted = sm.revert_revision_to_subcontracting(_in_qc(is_internal=True))
        assert reverted.status == OrderStatus.CUTTING

    def test_revert_is_idempotent(self):
        once = sm.revert_revision_to_subcontracting(_in_qc())
        assert sm.revert_revision_to_subcontracting(once) is once

    def test_revert_from_packing_refused(self):
        with pytest.raises(IllegalTransitionError):
            sm.revert_revision_to_subcontracting(_in_packing())

    def test_reopen_after_revert(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        outcome = register_return(shipment, shipment.sent_grid(), "Ana", now=NOW)
        order = sm.advance_after_returns(order, [outcome.shipment])
        reverted = sm.revert_revision_to_subcontracting(order)
        reopened = sm.reopen_revision(reverted, [outcome.shipment])
        assert reopened.status == OrderStatus.QUALITY_CONTROL

    def test_reopen_with_open_shipment_refused(self):
        order, shipment = sm.ship(_order(), "Confecção X", now=NOW)
        with pytest.raises(IllegalTransitionError):
            sm.reopen_revision(order, [shipment])


class TestPacking:
    def test_source_is_approved_grid(self):
        assert sm.packing_source_grid(_in_packing()) == Grid.from_matrix({"Blue": {"M": 8, "L": 4}})

    def test_source_falls_back_to_planned(self):
        order = _order(status=OrderStatus.PACKING)
        assert sm.packing_source_grid(order) == order.planned_grid

    def test_all_zero_approval_leaves_nothing_to_pack(self):
        packing = sm.finalize_revision(_in_qc(), Grid(), 10, 5, "Ana", now=NOW)
        assert packing.revision_details.items_approved == ()
        assert sm.packing_source_grid(packing).grand_total() == 0

        with pytest.raises(GridExceedsSource):
            sm.finalize_packing(packing, Grid.from_matrix({"Blue": {"M": 1}}), "Main", "Bruno")
        outcome = sm.finalize_packing(packing, Grid(), "Main", "Bruno")
        assert outcome.warnings == (sm.EMPTY_PACKING_WARNING,)

    def test_finalize_completes_order(self):
        outcome = sm.finalize_packing(
            _in_packing(), Grid.from_matrix({"Blue": {"M": 8, "L": 4}}), "Main", "Bruno", now=NOW
        )
        order = outcome.order
        assert order.status == OrderStatus.COMPLETED
        assert order.packing_details.total_packed_qty == 12
        assert order.packing_details.packed_date == NOW
        assert outcome.warnings == ()

    def test_scenario_d_cell_above_approved_rejected(self):
        with pytest.raises(GridExceedsSource) as exc_info:
            sm.finalize_packing(_in_packing(), Grid.from_matrix({"Blue": {"M": 9, "L": 4}}), "Main", "Bruno")
        assert [(v.color, v.size) for v in exc_info.value.violations] == [("Blue", "M")]

    def test_zero_packing_is_a_warning(self):
        outcome = sm.finalize_packing(_in_packing(), Grid(), "Main", "Bruno")
        assert outcome.order.status == OrderStatus.COMPLETED
        assert outcome.warnings == (sm.EMPTY_PACKING_WARNING,)

    def test_warehouse_and_packer_required(self):
        with pytest.raises(WarehouseRequired):
            sm.finalize_packing(_in_packing(), Grid(), "", "Bruno")
        with pytest.raises(PackerRequired):
            sm.finalize_packing(_in_packing(), Grid(), "Main", " ")


class TestRoundTrips:
    def test_revert_packing_restores_quality_control(self):
        packing = _in_packing()
        reverted = sm.revert_packing_to_revision(packing)
        assert reverted.status == OrderStatus.QUALITY_CONTROL
        assert reverted.packing_details is None
        assert reverted.revision_details == packing.revision_details

    def test_refinalize_revision_after_packing_revert(self):
        reverted = sm.revert_packing_to_revision(_in_packing())
        again = sm.finalize_revision(reverted, Grid.from_matrix({"Blue": {"M": 7, "L": 4}}), 3, 1, "Bia", now=NOW)
        assert again.status == OrderStatus.PACKING
        assert again.revision_details.inspector_name == "Bia"
        assert sm.packing_source_grid(again) == Grid.from_matrix({"Blue": {"M": 7, "L": 4}})

    def test_revert_completion_keeps_revision(self):
        packing = _in_packing()
        completed = sm.finalize_packing(packing, Grid.from_matrix({"Blue": {"M": 8}}), "Main", "Bruno").order
        reverted = sm.revert_completion_to_packing(completed)
        assert reverted.status == OrderStatus.PACKING
        assert reverted.packing_details is None
        assert reverted.revision_details == packing.revision_details

    def test_revert_packing_idempotent_in_quality_control(self):
        order = _in_qc()
        assert sm.revert_packing_to_revision(order) is order

    def test_no_skip_back_edges(self):
        with pytest.raises(IllegalTransitionError):
            sm.revert_completion_to_packing(_in_packing())

    def test_every_transition_appends_an_event(self):
        order = _in_packing()
        assert [e.action for e in order.events] == ["created", "shipped", "returned", "revision_finalized"]
