"""
Draft staging store.

Scratch space for grids that are still being typed in, keyed by
``(stage, order_id)``. Entries are written on every accepted cell edit
and cleared once, at finalization or revert.

The scratch store is never the source of truth: a lost entry only means
the operator re-enters the values, so store failures are logged and
treated as a missing draft.
"""

import json
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from core.config import get_settings
from production.grid import Grid, OrderItem

logger = structlog.get_logger()


class DraftStage(str, Enum):
    REVISION = "revision"
    PACKING = "packing"


class DraftStore(ABC):
    @abstractmethod
    async def get(self, stage: DraftStage, order_id: uuid.UUID) -> Grid | None: ...

    @abstractmethod
    async def put(self, stage: DraftStage, order_id: uuid.UUID, grid: Grid) -> None: ...

    @abstractmethod
    async def clear(self, stage: DraftStage, order_id: uuid.UUID) -> None: ...


class InMemoryDraftStore(DraftStore):
    def __init__(self):
        self._entries: dict[tuple[str, str], Grid] = {}

    async def get(self, stage, order_id):
        return self._entries.get((DraftStage(stage).value, str(order_id)))

    async def put(self, stage, order_id, grid):
        self._entries[(DraftStage(stage).value, str(order_id))] = grid

    async def clear(self, stage, order_id):
        self._entries.pop((DraftStage(stage).value, str(order_id)), None)


class RedisDraftStore(DraftStore):
    """Drafts as JSON item lists under ``draft:<stage>:<order_id>`` with a TTL."""

    def __init__(self, client: aioredis.Redis, ttl_seconds: int | None = None):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int | None = None) -> "RedisDraftStore":
        return cls(aioredis.from_url(url, decode_responses=True), ttl_seconds=ttl_seconds)

    @staticmethod
    def key(stage: DraftStage, order_id: uuid.UUID) -> str:
        return f"draft:{DraftStage(stage).value}:{order_id}"

    async def get(self, stage, order_id):
        key = self.key(stage, order_id)
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            logger.warning("draft.store_unavailable", op="get", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        return Grid.from_items(OrderItem.from_dict(row) for row in json.loads(raw))

    async def put(self, stage, order_id, grid):
        key = self.key(stage, order_id)
        payload = json.dumps([item.to_dict() for item in grid.to_items()])
        try:
            await self.client.set(key, payload, ex=self.ttl_seconds)
        except RedisError as exc:
            logger.warning("draft.store_unavailable", op="put", key=key, error=str(exc))

    async def clear(self, stage, order_id):
        key = self.key(stage, order_id)
        try:
            await self.client.delete(key)
        except RedisError as exc:
            logger.warning("draft.store_unavailable", op="clear", key=key, error=str(exc))


@lru_cache
def get_draft_store() -> DraftStore:
    """Process-wide draft store selected by ``draft_store_backend``."""
    settings = get_settings()
    if settings.draft_store_backend == "redis":
        return RedisDraftStore.from_url(settings.redis_url, ttl_seconds=settings.draft_ttl_seconds)
    return InMemoryDraftStore()
