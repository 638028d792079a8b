"""Shared test fixtures.

Tests run against in-memory SQLite (aiosqlite, tables from the ORM metadata)
and fakeredis. Contract addresses stay at the zero address so settlement runs
in mock mode unless a test injects its own chain client.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import fakeredis.aioredis
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ["SMP_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SMP_ENVIRONMENT"] = "test"

from smp.chain.client import reset_chain_client  # noqa: E402
from smp.config import get_settings  # noqa: E402
from smp.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from smp.db import models  # noqa: E402, F401
from smp.db.base import Base  # noqa: E402
from smp.main import create_app  # noqa: E402
from smp.parties.events import party_events  # noqa: E402
from smp.redis_client import close_redis, use_redis  # noqa: E402


async def _setup() -> None:
    get_settings.cache_clear()
    reset_chain_client()
    settings = get_settings()
    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    use_redis(fakeredis.aioredis.FakeRedis(decode_responses=True))


async def _teardown() -> None:
    for party_id in party_events.active_party_ids:
        party_events.close_stream(party_id)
    await close_db()
    await close_redis()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over a fresh database and Redis."""
    await _setup()
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await _teardown()


@pytest_asyncio.fixture
async def db_session(client: AsyncClient) -> AsyncGenerator[AsyncSession, None]:
    """Direct session on the same database the client uses."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Session over a fresh database, for service-level tests without HTTP."""
    await _setup()
    async with get_session_factory()() as session:
        yield session
    await _teardown()
