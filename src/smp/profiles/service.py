"""Player profile business logic."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import select

from smp.db.models import Player
from smp.errors import AppError, ErrorCode

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_player(db: AsyncSession, wallet: str) -> Player | None:
    """Look up a profile by wallet (case-insensitive)."""
    result = await db.execute(select(Player).where(Player.wallet == wallet.lower()))
    return result.scalar_one_or_none()


async def require_player(db: AsyncSession, wallet: str) -> Player:
    player = await get_player(db, wallet)
    if player is None:
        raise AppError.not_found(ErrorCode.PROFILE_NOT_FOUND, "Profile not found")
    return player


async def upsert_profile(
    db: AsyncSession,
    wallet: str,
    display_name: str,
    avatar_id: str,
    image_url: str,
) -> Player:
    """
    Create a profile at E / level 1 / 0 XP, or update cosmetic fields of an existing one.

    Progress fields are never touched here.

    Raises:
        AppError: NAME_TAKEN if another wallet holds the name (case-insensitive).
    """
    wallet = wallet.lower()
    normalized = display_name.lower()

    result = await db.execute(
        select(Player.wallet)
        .where(Player.display_name_normalized == normalized)
        .where(Player.wallet != wallet)
    )
    if result.scalar_one_or_none() is not None:
        raise AppError.conflict(ErrorCode.NAME_TAKEN, "Display name is already taken")

    player = await get_player(db, wallet)
    if player is None:
        player = Player(
            wallet=wallet,
            display_name=display_name,
            display_name_normalized=normalized,
            avatar_id=avatar_id,
            image_url=image_url,
            rank="E",
            level=1,
            xp=0,
        )
        db.add(player)
        logger.info("Created profile for %s (%s)", wallet, display_name)
    else:
        player.display_name = display_name
        player.display_name_normalized = normalized
        player.avatar_id = avatar_id
        player.image_url = image_url

    await db.flush()
    return player


async def update_player_progress(
    db: AsyncSession,
    wallet: str,
    xp: int,
    level: int,
    rank: str,
    sbt_token_id: int | None = None,
) -> Player | None:
    """Write XP / level / rank (and the SBT id when given). Returns None for unknown wallets."""
    player = await get_player(db, wallet)
    if player is None:
        logger.warning("Progress update for unknown wallet %s skipped", wallet)
        return None

    player.xp = xp
    player.level = level
    player.rank = rank
    if sbt_token_id is not None:
        player.sbt_token_id = sbt_token_id

    await db.flush()
    return player


async def get_players_by_wallets(db: AsyncSession, wallets: Iterable[str]) -> dict[str, Player]:
    """Batch-load profiles keyed by wallet."""
    keys = {w.lower() for w in wallets}
    if not keys:
        return {}
    result = await db.execute(select(Player).where(Player.wallet.in_(keys)))
    return {p.wallet: p for p in result.scalars().all()}


async def search_players(db: AsyncSession, term: str, limit: int = 20, offset: int = 0) -> list[Player]:
    """Substring match on the normalised display name."""
    result = await db.execute(
        select(Player)
        .where(Player.display_name_normalized.contains(term.lower(), autoescape=True))
        .order_by(Player.display_name_normalized)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_top_players(db: AsyncSession, limit: int = 10, offset: int = 0) -> list[Player]:
    result = await db.execute(
        select(Player)
        .order_by(Player.xp.desc(), Player.level.desc(), Player.wallet)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())
