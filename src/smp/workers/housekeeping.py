"""arq worker for periodic housekeeping.

Closes parties that sat in ``waiting`` past their TTL and drops inventory
entries that repeatedly failed to sync.
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from smp.config import get_settings
from smp.database import close_db, get_session_factory, init_db
from smp.inventory.service import cleanup_sync_attempts
from smp.parties.service import cleanup_stale_parties

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database pool on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["session_factory"] = get_session_factory()
    logger.info("Housekeeping worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Housekeeping worker shut down")


async def expire_stale_parties(ctx: dict) -> int:  # type: ignore[type-arg]
    """Close waiting parties older than the configured TTL."""
    async with ctx["session_factory"]() as session:
        closed = await cleanup_stale_parties(session)
    if closed:
        logger.info("Expired %d stale parties", closed)
    return closed


async def prune_unsynced_relics(ctx: dict) -> int:  # type: ignore[type-arg]
    async with ctx["session_factory"]() as session:
        removed = await cleanup_sync_attempts(session)
        await session.commit()
    return removed


class WorkerSettings:
    """arq worker settings for housekeeping jobs."""

    functions = [expire_stale_parties, prune_unsynced_relics]
    cron_jobs = [
        cron(expire_stale_parties, minute={0, 10, 20, 30, 40, 50}),
        cron(prune_unsynced_relics, hour=3, minute=0),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 4
