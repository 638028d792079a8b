"""Profile router: all /api/v1/profile/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import get_current_wallet
from smp.database import get_session
from smp.db.models import Player
from smp.errors import AppError, ErrorCode
from smp.profiles.schemas import (
    ProfileResponse,
    ProfileSearchResult,
    ProfileUpsertRequest,
    TopPlayerEntry,
)
from smp.profiles.service import (
    get_player,
    get_top_players,
    require_player,
    search_players,
    upsert_profile,
)
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/profile", tags=["Profiles"])


def profile_response(player: Player) -> ProfileResponse:
    """Build a ProfileResponse from a Player model."""
    return ProfileResponse(
        wallet=player.wallet,
        display_name=player.display_name,
        avatar_id=player.avatar_id,
        image_url=player.image_url,
        rank=player.rank,
        level=player.level,
        xp=player.xp,
        sbt_token_id=player.sbt_token_id,
        created_at=player.created_at,
        updated_at=player.updated_at,
    )


@router.post("", response_model=Envelope[ProfileResponse])
async def upsert_my_profile(
    body: ProfileUpsertRequest,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Create or update the caller's profile."""
    player = await upsert_profile(db, wallet, body.display_name, body.avatar_id, body.image_url)
    await db.commit()
    logger.info("profile_upserted", wallet=wallet, display_name=body.display_name)
    return ok(profile_response(player))


@router.get("", response_model=Envelope[ProfileResponse])
async def get_my_profile(
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Get the caller's profile."""
    player = await require_player(db, wallet)
    return ok(profile_response(player))


@router.get("/leaderboard/top", response_model=Envelope[list[TopPlayerEntry]])
async def top_players(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Top players by XP, then level."""
    players = await get_top_players(db, limit, offset)
    return ok([
        TopPlayerEntry(
            wallet=p.wallet,
            display_name=p.display_name,
            rank=p.rank,
            level=p.level,
            xp=p.xp,
        )
        for p in players
    ])


@router.get("/search", response_model=Envelope[list[ProfileSearchResult]])
async def search(
    q: str = Query("", max_length=24),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Case-insensitive partial match on display name."""
    if not q.strip():
        raise AppError.bad_request(ErrorCode.VALIDATION_ERROR, "Search term is required")
    players = await search_players(db, q.strip(), limit, offset)
    return ok([
        ProfileSearchResult(
            wallet=p.wallet,
            display_name=p.display_name,
            avatar_id=p.avatar_id,
            rank=p.rank,
            level=p.level,
        )
        for p in players
    ])


@router.get("/{address}", response_model=Envelope[ProfileResponse])
async def get_profile_by_address(
    address: str = Path(..., pattern=r"^0x[a-fA-F0-9]{40}$"),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Public profile lookup."""
    player = await get_player(db, address)
    if player is None:
        raise AppError.not_found(ErrorCode.PROFILE_NOT_FOUND, "Profile not found")
    return ok(profile_response(player))
