# tests/conftest.py
from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from inventory_pulse.clients.platform import PlatformClient
from inventory_pulse.database import create_all
from inventory_pulse.db_models import Shop

from fake_platform import SHOP_DOMAIN, FakePlatform


# ==========================
# In-memory database (one per test)
# ==========================
@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


@pytest_asyncio.fixture
async def shop(session: AsyncSession) -> Shop:
    s = Shop(domain=SHOP_DOMAIN, low_stock_threshold=10)
    session.add(s)
    await session.commit()
    return s


# ==========================
# Fake platform + client
# ==========================
@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest_asyncio.fixture
async def client(platform: FakePlatform) -> AsyncGenerator[PlatformClient, None]:
    c = PlatformClient(
        SHOP_DOMAIN,
        "test-token",
        transport=httpx.MockTransport(platform.handler),
        max_retries=0,
        retry_base_delay=0,
    )
    try:
        yield c
    finally:
        await c.aclose()
