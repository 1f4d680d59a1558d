# inventory_pulse/database.py
"""
Database connection for Inventory Pulse.

Uses SQLAlchemy 2.0 async with the asyncpg driver.
"""
from __future__ import annotations
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from inventory_pulse.settings import settings

# ============================================================================
# Base class for all ORM models
# ============================================================================

class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# ============================================================================
# Engine and Session Factory
# ============================================================================

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_database_url() -> str:
    """Build async database URL from settings."""
    if settings.DATABASE_URL:
        url = settings.DATABASE_URL
        # Normalize plain postgres DSNs to the asyncpg driver
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url
    return (
        f"postgresql+asyncpg://"
        f"{settings.DB_USER}:{settings.DB_PASSWORD}@"
        f"{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


async def init_db(url: Optional[str] = None, *, create_tables: bool = False) -> None:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    if _engine is not None:
        return  # Already initialized

    url = url or get_database_url()
    if url.startswith("sqlite"):
        _engine = create_async_engine(url, echo=settings.DB_ECHO)
    else:
        _engine = create_async_engine(
            url,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,  # Verify connections before use
        )

    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    if create_tables:
        await create_all(_engine)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables (dev / tests; production schema is managed separately)."""
    import inventory_pulse.db_models  # noqa: F401  (registers mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for a database session.

    Usage:
        async with get_session_context() as db:
            summary = await sync_shop(db, "demo.myshopify.com", client)

    Sync code commits row by row; anything left pending is committed on exit.
    """
    if _async_session_factory is None:
        await init_db()

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
