"""
Stock Entry Events: hand-off from packing to the inventory subsystem.

When packing is finalized the pipeline emits one StockEntry carrying
the packed grid and the destination warehouse. Reverting a completed
order retracts the entry for that order.

Sinks:
  - InMemoryStockEntrySink      local runs and tests
  - RedisStockEntryPublisher    Redis pub/sub for live consumers
  - db.repository.SqlStockEntrySink  rows in stock_entries
"""

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import redis.asyncio as aioredis
import structlog

from production.grid import Grid, OrderItem

logger = structlog.get_logger()


@dataclass(frozen=True)
class StockEntry:
    op_id: uuid.UUID
    product_id: str
    lot_number: str
    warehouse: str
    date: datetime
    items: tuple[OrderItem, ...]

    def grid(self) -> Grid:
        return Grid.from_items(self.items)

    @property
    def quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op_id": str(self.op_id),
            "product_id": self.product_id,
            "lot_number": self.lot_number,
            "warehouse": self.warehouse,
            "date": self.date.isoformat(),
            "quantity": self.quantity,
            "items": [item.to_dict() for item in self.items],
        }


class StockEntrySink(ABC):
    @abstractmethod
    async def emit(self, entry: StockEntry) -> None: ...

    @abstractmethod
    async def retract(self, op_id: uuid.UUID) -> None: ...


class InMemoryStockEntrySink(StockEntrySink):
    def __init__(self):
        self.entries: list[StockEntry] = []

    async def emit(self, entry):
        self.entries.append(entry)
        logger.info("stock_entry.emitted", op_id=str(entry.op_id), warehouse=entry.warehouse, quantity=entry.quantity)

    async def retract(self, op_id):
        self.entries = [e for e in self.entries if e.op_id != op_id]
        logger.info("stock_entry.retracted", op_id=str(op_id))


class RedisStockEntryPublisher(StockEntrySink):
    """Publish entries as JSON messages on a Redis channel."""

    def __init__(self, redis_url: str, channel: str = "stock_entries"):
        self.redis_url = redis_url
        self.channel = channel

    async def _publish(self, message: dict[str, Any]) -> int:
        redis = aioredis.from_url(self.redis_url)
        try:
            return await redis.publish(self.channel, json.dumps(message))
        finally:
            await redis.aclose()

    async def emit(self, entry):
        subs = await self._publish({"type": "stock_entry", "payload": entry.to_dict()})
        logger.info("stock_entry.emitted", op_id=str(entry.op_id), channel=self.channel, subscribers=subs)

    async def retract(self, op_id):
        subs = await self._publish({"type": "stock_entry_retracted", "payload": {"op_id": str(op_id)}})
        logger.info("stock_entry.retracted", op_id=str(op_id), channel=self.channel, subscribers=subs)
