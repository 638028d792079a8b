"""Dev tools router: /api/v1/dev/*, restricted to the configured test account."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import require_dev_account
from smp.database import get_session
from smp.db.models import Player
from smp.dev.schemas import (
    ClearInventoryResponse,
    MintSbtResponse,
    MintTestRelicRequest,
    MintTestRelicResponse,
    SimulateBossKillRequest,
    SimulateBossKillResponse,
    SystemStatsResponse,
    UpdateRankRequest,
    UpdateXpRequest,
)
from smp.dev.service import (
    add_xp,
    get_system_stats,
    mint_or_update_sbt,
    mint_test_relic,
    reset_profile,
    simulate_boss_kill,
)
from smp.gates.schemas import SeedResponse
from smp.gates.seed import seed_gates
from smp.inventory.service import clear_inventory
from smp.profiles.router import profile_response
from smp.profiles.schemas import ProfileResponse
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/dev", tags=["Dev"])


@router.post("/seed-gates", response_model=Envelope[SeedResponse])
async def seed(
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    count = await seed_gates(db)
    logger.info("dev_seed_gates", wallet=player.wallet, count=count)
    return ok(SeedResponse(message=f"Seeded {count} gates", count=count))


@router.post("/mint-test-relic", response_model=Envelope[MintTestRelicResponse])
async def mint_relic(
    body: MintTestRelicRequest,
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    relic = await mint_test_relic(db, player.wallet, body.relic_type)
    await db.commit()
    return ok(relic)


@router.post("/update-xp", response_model=Envelope[ProfileResponse])
async def update_xp(
    body: UpdateXpRequest,
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    add_xp(player, body.xp)
    await db.commit()
    logger.info("dev_update_xp", wallet=player.wallet, xp=player.xp)
    return ok(profile_response(player))


@router.post("/update-rank", response_model=Envelope[ProfileResponse])
async def update_rank(
    body: UpdateRankRequest,
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    player.rank = body.rank
    await db.commit()
    return ok(profile_response(player))


@router.post("/simulate-boss-kill", response_model=Envelope[SimulateBossKillResponse])
async def boss_kill(
    body: SimulateBossKillRequest,
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    result = await simulate_boss_kill(db, player, body.gate_id, body.boss_id, body.damage)
    await db.commit()
    logger.info("dev_simulate_boss_kill", wallet=player.wallet, boss_id=body.boss_id, xp_gained=result["xp_gained"])
    return ok(result)


@router.post("/mint-sbt", response_model=Envelope[MintSbtResponse])
async def mint_sbt(
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    result = mint_or_update_sbt(player)
    await db.commit()
    return ok(result)


@router.post("/reset-profile", response_model=Envelope[ProfileResponse])
async def reset(
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    reset_profile(player)
    await db.commit()
    logger.info("dev_reset_profile", wallet=player.wallet)
    return ok(profile_response(player))


@router.post("/clear-inventory", response_model=Envelope[ClearInventoryResponse])
async def clear(
    player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    removed = await clear_inventory(db, player.wallet)
    await db.commit()
    return ok(ClearInventoryResponse(removed=removed))


@router.get("/stats", response_model=Envelope[SystemStatsResponse])
async def system_stats(
    _player: Player = Depends(require_dev_account),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    return ok(await get_system_stats(db))
