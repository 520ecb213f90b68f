"""
Grid Model: color × size quantity breakdown shared by every stage.

A grid is keyed by a (color, size) composite. Colors keep the order in
which they first appear in the source item list; sizes are ordered
lexicographically so every stage renders and serializes the same way.

Grids are immutable: ``set_cell`` returns a new grid and never touches
the receiver, so callers must persist the returned value.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from production.errors import NegativeQuantity, ValidationError

CellKey = tuple[str, str]


@dataclass(frozen=True)
class OrderItem:
    """One planned/reported cell: ``{color, size, quantity}``."""

    color: str
    size: str
    quantity: int

    def to_dict(self) -> dict[str, Any]:
        return {"color": self.color, "size": self.size, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrderItem:
        return cls(color=str(data["color"]), size=str(data["size"]), quantity=int(data["quantity"]))


@dataclass(frozen=True)
class GridAxes:
    """Distinct colors and sizes observed in a grid's source items."""

    colors: tuple[str, ...]
    sizes: tuple[str, ...]

    @classmethod
    def from_keys(cls, keys: Iterable[CellKey]) -> GridAxes:
        colors: dict[str, None] = {}
        sizes: set[str] = set()
        for color, size in keys:
            colors.setdefault(color, None)
            sizes.add(size)
        return cls(colors=tuple(colors), sizes=tuple(sorted(sizes)))

    @classmethod
    def from_items(cls, items: Iterable[OrderItem]) -> GridAxes:
        return cls.from_keys((item.color, item.size) for item in items)

    def cells(self) -> Iterator[CellKey]:
        for color in self.colors:
            for size in self.sizes:
                yield color, size


def _coerce_qty(color: str, size: str, quantity: Any) -> int:
    qty = int(quantity)
    if qty < 0:
        raise NegativeQuantity(color, size, qty)
    return qty


class Grid:
    """Immutable mapping of (color, size) → non-negative quantity."""

    __slots__ = ("_cells",)

    def __init__(self, cells: Mapping[CellKey, int] | None = None):
        self._cells: dict[CellKey, int] = {}
        for (color, size), qty in (cells or {}).items():
            self._cells[(str(color), str(size))] = _coerce_qty(color, size, qty)

    # ── Construction ──────────────────────────────────────────────────────

    @classmethod
    def from_items(cls, items: Iterable[OrderItem | Mapping[str, Any]]) -> Grid:
        """Build a grid from an item list. Cells must be unique by (color, size)."""
        cells: dict[CellKey, int] = {}
        for raw in items:
            item = raw if isinstance(raw, OrderItem) else OrderItem.from_dict(raw)
            key = (item.color, item.size)
            if key in cells:
                raise ValidationError(f"Duplicate grid cell {item.color}/{item.size}")
            cells[key] = item.quantity
        return cls(cells)

    @classmethod
    def from_matrix(cls, matrix: Mapping[str, Mapping[str, int]]) -> Grid:
        """Build a grid from the nested ``{color: {size: qty}}`` form."""
        return cls({(color, size): qty for color, sizes in matrix.items() for size, qty in sizes.items()})

    @classmethod
    def zeros(cls, axes: GridAxes) -> Grid:
        return cls({key: 0 for key in axes.cells()})

    # ── Reads ─────────────────────────────────────────────────────────────

    def cell(self, color: str, size: str) -> int:
        """Quantity at (color, size); 0 when the cell is absent."""
        return self._cells.get((color, size), 0)

    def row_total(self, color: str) -> int:
        return sum(qty for (c, _), qty in self._cells.items() if c == color)

    def grand_total(self) -> int:
        return sum(self._cells.values())

    def axes(self) -> GridAxes:
        return GridAxes.from_keys(self._cells)

    def keys(self) -> list[CellKey]:
        return list(self._cells)

    def is_empty(self) -> bool:
        return self.grand_total() == 0

    # ── Pure updates ──────────────────────────────────────────────────────

    def set_cell(self, color: str, size: str, quantity: int) -> Grid:
        """Return a new grid with (color, size) set to ``quantity``."""
        cells = dict(self._cells)
        cells[(color, size)] = _coerce_qty(color, size, quantity)
        return Grid(cells)

    def plus(self, other: Grid) -> Grid:
        cells = dict(self._cells)
        for key, qty in other._cells.items():
            cells[key] = cells.get(key, 0) + qty
        return Grid(cells)

    def minus(self, other: Grid) -> Grid:
        """Cell-wise subtraction floored at 0, over this grid's cells."""
        return Grid({key: max(0, qty - other._cells.get(key, 0)) for key, qty in self._cells.items()})

    def over(self, axes: GridAxes) -> Grid:
        """Project onto ``axes``: missing cells become 0, cells outside are kept."""
        cells = {key: self.cell(*key) for key in axes.cells()}
        for key, qty in self._cells.items():
            cells.setdefault(key, qty)
        return Grid(cells)

    # ── Serialization ─────────────────────────────────────────────────────

    def to_items(self, skip_zero: bool = False) -> list[OrderItem]:
        axes = self.axes()
        return [
            OrderItem(color=color, size=size, quantity=self._cells[(color, size)])
            for color, size in axes.cells()
            if (color, size) in self._cells and not (skip_zero and self._cells[(color, size)] == 0)
        ]

    def to_matrix(self) -> dict[str, dict[str, int]]:
        axes = self.axes()
        return {color: {size: self.cell(color, size) for size in axes.sizes} for color in axes.colors}

    def __iter__(self) -> Iterator[tuple[str, str, int]]:
        for (color, size), qty in self._cells.items():
            yield color, size, qty

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        mine = {k: v for k, v in self._cells.items() if v}
        theirs = {k: v for k, v in other._cells.items() if v}
        return mine == theirs

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Grid({self.to_matrix()!r})"
