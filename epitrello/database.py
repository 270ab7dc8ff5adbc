"""Async database connection and session management."""

import asyncio
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import settings

logger = logging.getLogger(__name__)


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """
    Make SQLite behave like the production store for our purposes.

    The sqlite3 driver manages BEGIN on its own, which breaks SAVEPOINT
    semantics; the per-write savepoints of the reindexer rely on them.
    Driver-level transaction handling is disabled and SQLAlchemy emits
    BEGIN itself. Foreign keys are off by default in SQLite.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine, applying pool sizing only where it applies."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo)
        configure_sqlite_engine(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=15,  # Fail fast - let clients retry rather than hang
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url, echo=settings.sql_echo)

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for ORM models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Async dependency injection for FastAPI.

    Auto-commits on success, rollbacks on exception.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_all_tables() -> None:
    """Create tables directly from metadata (SQLite dev runs only)."""
    # Import models so every table is registered on Base.metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def warmup_connection_pool(pool_size: Optional[int] = None) -> None:
    """
    Pre-warm the database connection pool at startup.

    Args:
        pool_size: Number of connections to warm up. Defaults to settings.db_pool_size.
    """
    if settings.is_sqlite:
        return

    target_size = pool_size or settings.db_pool_size
    logger.info(f"Warming up connection pool with {target_size} connections...")

    async def create_connection(i: int):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.debug(f"  Connection {i + 1}/{target_size} warmed")
        except Exception as e:
            logger.warning(f"  Connection {i + 1} warmup failed: {e}")

    # Not all at once to avoid overwhelming the DB
    batch_size = 10
    for batch_start in range(0, target_size, batch_size):
        batch_end = min(batch_start + batch_size, target_size)
        await asyncio.gather(*(create_connection(i) for i in range(batch_start, batch_end)))

    logger.info(f"Connection pool warmup complete ({target_size} connections)")
