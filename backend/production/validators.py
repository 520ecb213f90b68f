"""
Stage validators.

Pure bound checks used by every stage. The per-cell bound is applied
before an edit is accepted; the stage-total bound only at finalization,
since a grid that is still being typed in may pass through totals that
the operator corrects in another cell.
"""

from collections.abc import Iterable

from production.errors import (
    CellViolation,
    GridExceedsSource,
    QuantityExceeded,
    RequiredFieldError,
    TotalExceeded,
)
from production.grid import Grid


def validate_cell(new_qty: int, source_qty: int, *, color: str = "", size: str = "") -> None:
    """Raise QuantityExceeded when ``new_qty > source_qty``."""
    if new_qty > source_qty:
        raise QuantityExceeded(CellViolation(color=color, size=size, reported=new_qty, allowed=source_qty))


def cell_violations(grid: Grid, source: Grid) -> list[CellViolation]:
    violations = []
    for color, size, qty in grid:
        allowed = source.cell(color, size)
        if qty > allowed:
            violations.append(CellViolation(color=color, size=size, reported=qty, allowed=allowed))
    return violations


def validate_grid(grid: Grid, source: Grid) -> None:
    """Raise GridExceedsSource listing every cell of ``grid`` above ``source``."""
    violations = cell_violations(grid, source)
    if violations:
        raise GridExceedsSource(violations)


def validate_stage_total(grid: Grid, exceptions: Iterable[int], cap: int) -> None:
    """Raise TotalExceeded when ``sum(grid) + sum(exceptions) > cap``."""
    total = grid.grand_total() + sum(int(x) for x in exceptions)
    if total > cap:
        raise TotalExceeded(total=total, cap=cap)


def require(value: str | None, error_cls: type[RequiredFieldError]) -> str:
    """Return the stripped value, or raise ``error_cls`` when blank."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise error_cls()
    return cleaned
