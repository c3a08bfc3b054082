"""
Async SQLAlchemy engine + session handling for Postgres (asyncpg driver).

One engine per process. Two ways in:
  get_session_factory — for the feed stores, which open a session per query
                        so bucket queries can run concurrently
  get_db              — one request-scoped unit of work for the routers,
                        opened from that same factory
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=20,
    max_overflow=10,
    echo=False,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create missing tables. Schema changes beyond that need a migration."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready on %s", bind.url.render_as_string(hide_password=True))


async def dispose_db(bind: AsyncEngine = engine) -> None:
    await bind.dispose()
    logger.info("Database pool closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency for components that open their own sessions."""
    return AsyncSessionLocal


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Commit when the block succeeds, roll back and re-raise when it fails."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Request-scoped session; overriding get_session_factory swaps both."""
    async with session_scope(factory) as session:
        yield session
