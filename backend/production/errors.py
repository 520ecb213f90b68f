"""
Production pipeline errors.

Every failure here is recoverable: the operation is refused and the
durable order/shipment state is left exactly as it was.

  ProductionError
  ├── ValidationError          : a per-cell or per-total bound was violated
  │   ├── QuantityExceeded
  │   ├── GridExceedsSource
  │   ├── TotalExceeded
  │   └── NegativeQuantity
  ├── RequiredFieldError       : a mandatory identity field is blank
  │   ├── InvalidPartner
  │   ├── EmptyConferente
  │   ├── InspectorRequired
  │   ├── WarehouseRequired
  │   └── PackerRequired
  ├── IllegalTransitionError   : the operation is not allowed in this state
  │   └── ReturnsAlreadyRegistered
  └── NotFoundError
"""

from dataclasses import dataclass
from typing import Any


class ProductionError(Exception):
    """Base class for all pipeline errors."""

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "detail": str(self)}


# ── Validation ─────────────────────────────────────────────────────────────


class ValidationError(ProductionError):
    pass


@dataclass(frozen=True)
class CellViolation:
    color: str
    size: str
    reported: int
    allowed: int

    def __str__(self) -> str:
        return f"{self.color}/{self.size}: reported {self.reported} (max {self.allowed})"


class QuantityExceeded(ValidationError):
    def __init__(self, violation: CellViolation):
        self.violation = violation
        super().__init__(f"Quantity exceeds source cell: {violation}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "violations": [vars(self.violation)]}


class GridExceedsSource(ValidationError):
    def __init__(self, violations: list[CellViolation]):
        self.violations = list(violations)
        listed = "; ".join(str(v) for v in self.violations)
        super().__init__(f"Grid exceeds source grid in {len(self.violations)} cell(s): {listed}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "violations": [vars(v) for v in self.violations]}


class TotalExceeded(ValidationError):
    def __init__(self, total: int, cap: int):
        self.total = total
        self.cap = cap
        super().__init__(f"Stage total {total} exceeds cap {cap}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "total": self.total, "cap": self.cap}


class NegativeQuantity(ValidationError):
    def __init__(self, color: str, size: str, quantity: int):
        self.color = color
        self.size = size
        self.quantity = quantity
        super().__init__(f"Negative quantity {quantity} for {color}/{size}")


# ── Required fields ────────────────────────────────────────────────────────


class RequiredFieldError(ProductionError):
    field = ""

    def __init__(self, message: str | None = None):
        super().__init__(message or f"'{self.field}' is required")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field}


class InvalidPartner(RequiredFieldError):
    field = "partner_name"


class EmptyConferente(RequiredFieldError):
    field = "conferente"


class InspectorRequired(RequiredFieldError):
    field = "inspector_name"


class WarehouseRequired(RequiredFieldError):
    field = "warehouse"


class PackerRequired(RequiredFieldError):
    field = "packer_name"


# ── Transitions / lookups ──────────────────────────────────────────────────


class IllegalTransitionError(ProductionError):
    pass


class ReturnsAlreadyRegistered(IllegalTransitionError):
    def __init__(self, shipment_id: Any):
        self.shipment_id = shipment_id
        super().__init__(f"Shipment {shipment_id} already has registered returns and cannot be cancelled")


class NotFoundError(ProductionError):
    def __init__(self, kind: str, ident: Any):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} {ident} not found")
