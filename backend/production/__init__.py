"""
Production pipeline package.

Tracks a production order (OP) from cutting to stock entry:

    cutting → subcontracting → quality_control → packing → completed

Modules:
  - grid            color × size quantity grid shared by every stage
  - validators      per-cell and grid-level checks against a source grid
  - state_machine   order transitions as pure reducers
  - subcontract     shipment returns, partial splits, sewing payables
  - payables        due dates, overdue flags and settlement
  - drafts          scratch grids for stages still being typed in
  - service         ProductionPipeline, the async orchestrator
  - reports         partner quality ranking and production funnel

Usage:
    from production.service import ProductionPipeline

    pipeline = ProductionPipeline(store, drafts, stock_sink)
    order, shipment = await pipeline.ship(order.id, "Atelier Sul")
    result = await pipeline.register_return(shipment.id, grid, "Ana")
"""

from production.errors import (
    IllegalTransitionError,
    NotFoundError,
    ProductionError,
    RequiredFieldError,
    ValidationError,
)
from production.grid import Grid, GridAxes, OrderItem

__all__ = [
    "Grid",
    "GridAxes",
    "OrderItem",
    "ProductionError",
    "ValidationError",
    "RequiredFieldError",
    "IllegalTransitionError",
    "NotFoundError",
]
