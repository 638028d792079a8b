"""Dev-only shortcuts that mutate a player's progress and inventory directly."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from smp.db.models import Gate, InventoryItem, Party, Player, Run
from smp.ids import now_ms
from smp.inventory.service import add_relic
from smp.runs.rewards import (
    calculate_level_and_rank,
    generate_affixes,
    generate_sbt_token_id,
    pick_relic_type,
    placeholder_cid,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def mint_test_relic(
    db: AsyncSession, wallet: str, relic_type: str | None = None, rng: random.Random | None = None
) -> dict[str, Any]:
    """Put a random relic straight into the wallet's inventory, bypassing the chain."""
    rng = rng or random.Random()
    relic_type = relic_type or pick_relic_type(rng)
    token_id = now_ms() + rng.randrange(1000)
    affixes = generate_affixes(relic_type, rng)
    cid = placeholder_cid(rng)

    await add_relic(db, wallet, token_id, relic_type, affixes, cid)
    logger.info("Dev minted relic %d (%s) for %s", token_id, relic_type, wallet)
    return {"token_id": token_id, "relic_type": relic_type, "affixes": affixes, "cid": cid, "equipped": False}


def add_xp(player: Player, xp: int) -> int:
    """Add XP to a player and re-derive level and rank. Returns the new total."""
    player.xp += xp
    level, rank, _ = calculate_level_and_rank(player.xp, player.level, player.rank)
    player.level = max(player.level, level)
    player.rank = rank
    return player.xp


async def simulate_boss_kill(
    db: AsyncSession, player: Player, gate_id: str, boss_id: str, damage: int
) -> dict[str, Any]:
    """Solo kill: XP of ``damage // 10`` plus one test relic."""
    xp_gained = damage // 10
    add_xp(player, xp_gained)
    relic = await mint_test_relic(db, player.wallet)
    return {
        "xp_gained": xp_gained,
        "new_xp": player.xp,
        "new_level": player.level,
        "new_rank": player.rank,
        "relic": relic,
        "boss_id": boss_id,
        "gate_id": gate_id,
    }


def mint_or_update_sbt(player: Player, rng: random.Random | None = None) -> dict[str, Any]:
    minted = player.sbt_token_id is None
    if minted:
        player.sbt_token_id = generate_sbt_token_id(rng or random.Random(), now_ms())
    return {
        "sbt_token_id": player.sbt_token_id,
        "wallet": player.wallet,
        "rank": player.rank,
        "level": player.level,
        "xp": player.xp,
        "message": "SBT minted" if minted else "SBT updated",
    }


def reset_profile(player: Player) -> None:
    player.rank = "E"
    player.level = 1
    player.xp = 0
    player.sbt_token_id = None


async def get_system_stats(db: AsyncSession) -> dict[str, int]:
    counts: dict[str, int] = {}
    for key, model in (("gates", Gate), ("players", Player), ("runs", Run), ("parties", Party), ("relics", InventoryItem)):
        result = await db.execute(select(func.count()).select_from(model))
        counts[key] = result.scalar_one()
    return counts
