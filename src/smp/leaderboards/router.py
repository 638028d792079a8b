"""Leaderboard router: all /api/v1/leaderboards/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smp.database import get_session
from smp.errors import AppError, ErrorCode
from smp.leaderboards.schemas import (
    BossMetric,
    CurrentWeekResponse,
    LeaderboardResponse,
    LeaderboardStats,
    PlayerLeaderboardStats,
    WeeklyMetric,
)
from smp.leaderboards.service import (
    get_all_time_leaderboard,
    get_available_bosses,
    get_available_weeks,
    get_boss_leaderboard,
    get_leaderboard_stats,
    get_player_stats,
    get_weekly_leaderboard,
)
from smp.leaderboards.week_utils import get_current_week_iso, is_valid_week_key
from smp.schemas import Envelope, ok

router = APIRouter(prefix="/api/v1/leaderboards", tags=["Leaderboards"])


@router.get("/weekly/{week_key}", response_model=Envelope[LeaderboardResponse])
async def weekly(
    week_key: str,
    metric: WeeklyMetric = Query("xp"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Totals per player for one ISO week (``YYYY-Www``)."""
    if not is_valid_week_key(week_key):
        raise AppError.bad_request(ErrorCode.VALIDATION_ERROR, "Invalid week format (YYYY-Www)", {"weekKey": week_key})
    return ok(await get_weekly_leaderboard(db, week_key, metric, limit, offset))


@router.get("/boss/{boss_id}", response_model=Envelope[LeaderboardResponse])
async def per_boss(
    boss_id: str,
    metric: BossMetric = Query("damage"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Best single-run value per player against one boss."""
    return ok(await get_boss_leaderboard(db, boss_id, metric, limit, offset))


@router.get("/all-time", response_model=Envelope[LeaderboardResponse])
async def all_time(
    metric: WeeklyMetric = Query("xp"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    return ok(await get_all_time_leaderboard(db, metric, limit, offset))


@router.get("/player/{address}", response_model=Envelope[PlayerLeaderboardStats])
async def player_stats(
    address: str = Path(..., pattern=r"^0x[a-fA-F0-9]{40}$"),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    return ok(await get_player_stats(db, address))


@router.get("/stats", response_model=Envelope[LeaderboardStats])
async def stats(db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    return ok(await get_leaderboard_stats(db))


@router.get("/weeks", response_model=Envelope[list[str]])
async def weeks(db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    return ok(await get_available_weeks(db))


@router.get("/bosses", response_model=Envelope[list[str]])
async def bosses(db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    return ok(await get_available_bosses(db))


@router.get("/current-week", response_model=Envelope[CurrentWeekResponse])
async def current_week() -> dict[str, object]:
    return ok(CurrentWeekResponse(week_key=get_current_week_iso()))
