"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from smp.auth.router import router as auth_router
from smp.chain.router import router as chain_router
from smp.config import get_settings
from smp.database import close_db, get_session_factory, init_db
from smp.dev.router import router as dev_router
from smp.game.router import router as game_router
from smp.gates.router import router as gates_router
from smp.gates.seed import seed_gates
from smp.health.router import router as health_router
from smp.inventory.router import router as inventory_router
from smp.leaderboards.router import router as leaderboards_router
from smp.media.router import router as media_router
from smp.middleware import setup_middleware
from smp.parties.events import party_events
from smp.parties.router import router as parties_router
from smp.profiles.router import router as profiles_router
from smp.redis_client import close_redis, init_redis
from smp.runs.router import router as runs_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed gate definitions (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_gates(db)
    except SQLAlchemyError:
        logger.warning("Gate seeding failed (tables may not exist yet)", exc_info=True)

    yield

    for party_id in party_events.active_party_ids:
        party_events.close_stream(party_id)
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Shadow Monarch's Path API",
        description="Backend API for Shadow Monarch's Path: parties, runs, relics and on-chain settlement",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(profiles_router)
    app.include_router(gates_router)
    app.include_router(parties_router)
    app.include_router(runs_router)
    app.include_router(inventory_router)
    app.include_router(leaderboards_router)
    app.include_router(media_router)
    app.include_router(chain_router)
    app.include_router(game_router)
    app.include_router(dev_router)

    return app


app = create_app()
