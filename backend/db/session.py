"""
StitchOps Database Session Management

Async SQLAlchemy engine and session factory. PostgreSQL (asyncpg) in
deployed environments; SQLite (aiosqlite) works for local runs and tests.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import get_settings

settings = get_settings()


def engine_options(database_url: str) -> dict:
    # SQLite pools reject size/overflow arguments
    if database_url.startswith("sqlite"):
        return {"echo": settings.database_echo}
    return {
        "echo": settings.database_echo,
        "pool_size": 20,
        "max_overflow": 10,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all production pipeline tables."""

    pass
