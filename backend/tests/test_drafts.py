"""
Tests for the draft staging store (in-memory and Redis-backed).
"""

import json
import uuid

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from production.drafts import DraftStage, InMemoryDraftStore, RedisDraftStore
from production.grid import Grid

GRID = Grid.from_matrix({"Blue": {"M": 3, "L": 0}})


class FakeRedis:
    """Minimal async stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self, fail: bool = False):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.ttls[key] = ex

    async def delete(self, key):
        self._check()
        self.data.pop(key, None)


@pytest.mark.asyncio
class TestInMemoryDraftStore:
    async def test_put_get_clear(self):
        store = InMemoryDraftStore()
        order_id = uuid.uuid4()
        assert await store.get(DraftStage.REVISION, order_id) is None

        await store.put(DraftStage.REVISION, order_id, GRID)
        assert await store.get(DraftStage.REVISION, order_id) == GRID
        assert await store.get(DraftStage.PACKING, order_id) is None

        await store.clear(DraftStage.REVISION, order_id)
        assert await store.get(DraftStage.REVISION, order_id) is None

    async def test_clear_missing_is_noop(self):
        await InMemoryDraftStore().clear(DraftStage.PACKING, uuid.uuid4())


@pytest.mark.asyncio
class TestRedisDraftStore:
    async def test_round_trip_with_ttl(self):
        client = FakeRedis()
        store = RedisDraftStore(client, ttl_seconds=3600)
        order_id = uuid.uuid4()

        await store.put(DraftStage.PACKING, order_id, GRID)
        key = f"draft:packing:{order_id}"
        assert key in client.data
        assert client.ttls[key] == 3600
        assert {"color": "Blue", "size": "L", "quantity": 0} in json.loads(client.data[key])

        loaded = await store.get(DraftStage.PACKING, order_id)
        assert loaded == GRID
        assert ("Blue", "L") in loaded.keys()

        await store.clear(DraftStage.PACKING, order_id)
        assert await store.get(DraftStage.PACKING, order_id) is None

    async def test_unavailable_store_reads_as_missing(self):
        store = RedisDraftStore(FakeRedis(fail=True))
        order_id = uuid.uuid4()
        await store.put(DraftStage.REVISION, order_id, GRID)
        assert await store.get(DraftStage.REVISION, order_id) is None
        await store.clear(DraftStage.REVISION, order_id)
