"""
StitchOps API Dependencies

Dependency injection for DB sessions, the acting operator, and the
production pipeline with its collaborators.
"""

from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.repository import SqlProductionStore, SqlStockEntrySink
from db.session import AsyncSessionLocal
from inventory.stock_entry import InMemoryStockEntrySink, RedisStockEntryPublisher, StockEntrySink
from production.drafts import DraftStore, get_draft_store
from production.service import ProductionPipeline
from production.state_machine import SYSTEM_USER

settings = get_settings()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_actor(x_user: str | None = Header(default=None)) -> str:
    """Operator name recorded on audit events; ``system`` when the header is absent."""
    return (x_user or "").strip() or SYSTEM_USER


def get_drafts() -> DraftStore:
    return get_draft_store()


@lru_cache
def _process_stock_sink() -> StockEntrySink:
    if settings.stock_entry_backend == "redis":
        return RedisStockEntryPublisher(settings.redis_url, channel=settings.stock_entry_channel)
    return InMemoryStockEntrySink()


def get_stock_sink(db: AsyncSession = Depends(get_db)) -> StockEntrySink:
    if settings.stock_entry_backend == "database":
        return SqlStockEntrySink(db)
    return _process_stock_sink()


def get_pipeline(
    db: AsyncSession = Depends(get_db),
    drafts: DraftStore = Depends(get_drafts),
    stock_sink: StockEntrySink = Depends(get_stock_sink),
) -> ProductionPipeline:
    return ProductionPipeline(SqlProductionStore(db), drafts, stock_sink, settings=settings)
