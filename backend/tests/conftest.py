"""
Test Configuration: fixtures for async DB, test client, pipelines and seed data.

Each test gets its own in-memory SQLite database (StaticPool keeps the
single connection alive for the engine's lifetime), so routers are free
to commit.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_db, get_drafts
from api.main import app
from core.config import Settings
from db.repository import SqlProductionStore, SqlStockEntrySink
from db.session import Base
from inventory.stock_entry import InMemoryStockEntrySink
from production.drafts import InMemoryDraftStore
from production.grid import OrderItem
from production.service import ProductionPipeline
from production.store import InMemoryProductionStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PLANNED_ITEMS = [OrderItem("Blue", "M", 10), OrderItem("Blue", "L", 5)]


@pytest.fixture
def test_settings():
    return Settings(app_env="test", default_piece_rate=2.0, payable_due_days=1)


@pytest.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    session = AsyncSession(bind=test_engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
def drafts():
    return InMemoryDraftStore()


@pytest.fixture
def memory_pipeline(drafts, test_settings):
    """Pipeline over in-memory collaborators, for service-level tests."""
    return ProductionPipeline(InMemoryProductionStore(), drafts, InMemoryStockEntrySink(), settings=test_settings)


@pytest.fixture
def sql_pipeline(test_db, drafts, test_settings):
    return ProductionPipeline(SqlProductionStore(test_db), drafts, SqlStockEntrySink(test_db), settings=test_settings)


@pytest.fixture
async def client(test_db, drafts):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_drafts] = lambda: drafts

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_order(test_db, sql_pipeline):
    """One order in cutting: Blue M=10, L=5 (15 pieces)."""
    order = await sql_pipeline.create_order("LOT-0001", "TSHIRT-BASIC", PLANNED_ITEMS)
    await test_db.commit()
    return order
