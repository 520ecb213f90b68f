"""
Persistence collaborator contract.

The pipeline reaches storage only through this interface. ``update_*``
methods take a patch of changed fields and perform one merge-write;
implementations raise NotFoundError for unknown ids.
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import fields, replace
from typing import Any

from production.errors import NotFoundError
from production.models import OrderStatus, PaymentRecord, ProductionOrder, Shipment


def changed_fields(before: Any, after: Any) -> dict[str, Any]:
    """Patch holding the dataclass fields that differ between two records."""
    return {f.name: getattr(after, f.name) for f in fields(after) if getattr(before, f.name) != getattr(after, f.name)}


class ProductionStore(ABC):
    # Orders
    @abstractmethod
    async def get_orders(self, status: OrderStatus | None = None) -> list[ProductionOrder]: ...

    @abstractmethod
    async def get_order(self, order_id: uuid.UUID) -> ProductionOrder | None: ...

    @abstractmethod
    async def create_order(self, order: ProductionOrder) -> ProductionOrder: ...

    @abstractmethod
    async def update_order(self, order_id: uuid.UUID, patch: Mapping[str, Any]) -> ProductionOrder: ...

    # Shipments
    @abstractmethod
    async def get_shipments(self, op_id: uuid.UUID | None = None) -> list[Shipment]: ...

    @abstractmethod
    async def get_shipment(self, shipment_id: uuid.UUID) -> Shipment | None: ...

    @abstractmethod
    async def create_shipment(self, shipment: Shipment) -> Shipment: ...

    @abstractmethod
    async def update_shipment(self, shipment_id: uuid.UUID, patch: Mapping[str, Any]) -> Shipment: ...

    @abstractmethod
    async def delete_shipment(self, shipment_id: uuid.UUID) -> None: ...

    # Payments
    @abstractmethod
    async def get_payments(self, op_id: uuid.UUID | None = None) -> list[PaymentRecord]: ...

    @abstractmethod
    async def get_payment(self, payment_id: uuid.UUID) -> PaymentRecord | None: ...

    @abstractmethod
    async def create_payment(self, payment: PaymentRecord) -> PaymentRecord: ...

    @abstractmethod
    async def update_payment(self, payment_id: uuid.UUID, patch: Mapping[str, Any]) -> PaymentRecord: ...


class InMemoryProductionStore(ProductionStore):
    """Dict-backed store for scripts and tests."""

    def __init__(self):
        self.orders: dict[uuid.UUID, ProductionOrder] = {}
        self.shipments: dict[uuid.UUID, Shipment] = {}
        self.payments: dict[uuid.UUID, PaymentRecord] = {}

    async def get_orders(self, status=None):
        return [o for o in self.orders.values() if status is None or o.status == status]

    async def get_order(self, order_id):
        return self.orders.get(order_id)

    async def create_order(self, order):
        self.orders[order.id] = order
        return order

    async def update_order(self, order_id, patch):
        if order_id not in self.orders:
            raise NotFoundError("Production order", order_id)
        self.orders[order_id] = replace(self.orders[order_id], **patch)
        return self.orders[order_id]

    async def get_shipments(self, op_id=None):
        return [s for s in self.shipments.values() if op_id is None or s.op_id == op_id]

    async def get_shipment(self, shipment_id):
        return self.shipments.get(shipment_id)

    async def create_shipment(self, shipment):
        self.shipments[shipment.id] = shipment
        return shipment

    async def update_shipment(self, shipment_id, patch):
        if shipment_id not in self.shipments:
            raise NotFoundError("Shipment", shipment_id)
        self.shipments[shipment_id] = replace(self.shipments[shipment_id], **patch)
        return self.shipments[shipment_id]

    async def delete_shipment(self, shipment_id):
        if self.shipments.pop(shipment_id, None) is None:
            raise NotFoundError("Shipment", shipment_id)

    async def get_payments(self, op_id=None):
        return [p for p in self.payments.values() if op_id is None or p.op_id == op_id]

    async def get_payment(self, payment_id):
        return self.payments.get(payment_id)

    async def create_payment(self, payment):
        self.payments[payment.id] = payment
        return payment

    async def update_payment(self, payment_id, patch):
        if payment_id not in self.payments:
            raise NotFoundError("Payment", payment_id)
        self.payments[payment_id] = replace(self.payments[payment_id], **patch)
        return self.payments[payment_id]
