"""
Leaderboards aggregated from finished runs.

Weekly and all-time boards sum a metric per wallet; per-boss boards keep each
wallet's best single-run value. Aggregation and paging happen in SQL. Entries
carry the player's current level and rank from their profile when one exists.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select

from smp.db.models import Run, RunParticipant
from smp.leaderboards.week_utils import calculate_percentile, get_week_iso, week_key_bounds
from smp.profiles.service import get_players_by_wallets

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

logger = logging.getLogger(__name__)

_METRIC_COLUMNS = {
    "xp": RunParticipant.xp_gained,
    "damage": RunParticipant.damage,
    "kills": RunParticipant.normal_kills,
}


def metric_expression(metric: str, best: bool = False) -> ColumnElement[Any]:
    """Per-wallet aggregate for a metric: a sum, or the best single run when ``best``."""
    if metric == "runs_completed":
        return func.count(RunParticipant.id)
    column = _METRIC_COLUMNS.get(metric)
    if column is None:
        raise ValueError(f"Unknown leaderboard metric: {metric}")
    return func.max(column) if best else func.sum(column)


def _finished(
    start: datetime | None = None,
    end: datetime | None = None,
    boss_id: str | None = None,
) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = [Run.ended_at.is_not(None)]
    if start is not None:
        conditions.append(Run.ended_at >= start)
    if end is not None:
        conditions.append(Run.ended_at < end)
    if boss_id is not None:
        conditions.append(Run.boss_id == boss_id)
    return conditions


async def _board(
    db: AsyncSession,
    conditions: list[ColumnElement[bool]],
    metric: str,
    limit: int,
    offset: int,
    best: bool = False,
) -> tuple[list[dict[str, Any]], int]:
    """One page of ranked entries plus the number of ranked wallets."""
    score = metric_expression(metric, best).label("score")
    page = await db.execute(
        select(
            RunParticipant.wallet,
            score,
            func.max(RunParticipant.display_name).label("display_name"),
            func.max(RunParticipant.avatar_id).label("avatar_id"),
        )
        .join(Run, Run.id == RunParticipant.run_id)
        .where(*conditions)
        .group_by(RunParticipant.wallet)
        .order_by(score.desc(), RunParticipant.wallet)
        .limit(limit)
        .offset(offset)
    )
    rows = page.all()

    total = await db.scalar(
        select(func.count(func.distinct(RunParticipant.wallet)))
        .join(Run, Run.id == RunParticipant.run_id)
        .where(*conditions)
    )

    players = await get_players_by_wallets(db, [row.wallet for row in rows])
    entries = []
    for index, row in enumerate(rows):
        player = players.get(row.wallet)
        entries.append(
            {
                "rank": offset + index + 1,
                "wallet": row.wallet,
                "display_name": player.display_name if player else row.display_name,
                "avatar_id": player.avatar_id if player else row.avatar_id,
                "value": int(row.score or 0),
                "level": player.level if player else 1,
                "player_rank": player.rank if player else "E",
                "change": 0,
            }
        )
    return entries, total or 0


async def get_weekly_leaderboard(
    db: AsyncSession, week_key: str, metric: str = "xp", limit: int = 20, offset: int = 0
) -> dict[str, Any]:
    start, end = week_key_bounds(week_key)
    entries, total = await _board(db, _finished(start=start, end=end), metric, limit, offset)
    return {
        "scope": "weekly",
        "ref_id": week_key,
        "period": {"start": start, "end": end},
        "metric": metric,
        "entries": entries,
        "total_entries": total,
        "last_updated": datetime.now(timezone.utc),
    }


async def get_boss_leaderboard(
    db: AsyncSession, boss_id: str, metric: str = "damage", limit: int = 20, offset: int = 0
) -> dict[str, Any]:
    entries, total = await _board(db, _finished(boss_id=boss_id), metric, limit, offset, best=True)
    return {
        "scope": "per_boss",
        "ref_id": boss_id,
        "metric": metric,
        "entries": entries,
        "total_entries": total,
        "last_updated": datetime.now(timezone.utc),
    }


async def get_all_time_leaderboard(
    db: AsyncSession, metric: str = "xp", limit: int = 20, offset: int = 0
) -> dict[str, Any]:
    entries, total = await _board(db, _finished(), metric, limit, offset)
    return {
        "scope": "all_time",
        "metric": metric,
        "entries": entries,
        "total_entries": total,
        "last_updated": datetime.now(timezone.utc),
    }


async def get_player_stats(db: AsyncSession, wallet: str) -> dict[str, Any]:
    """Lifetime damage and kills for one wallet, ranked by total damage among all players."""
    wallet = wallet.lower()
    finished = _finished()

    mine = (
        await db.execute(
            select(
                func.count(RunParticipant.id).label("runs"),
                func.coalesce(func.sum(RunParticipant.damage), 0).label("damage"),
                func.coalesce(func.sum(RunParticipant.normal_kills), 0).label("kills"),
            )
            .join(Run, Run.id == RunParticipant.run_id)
            .where(*finished, RunParticipant.wallet == wallet)
        )
    ).one()
    total_runs = int(mine.runs)
    total_damage = int(mine.damage)
    total_kills = int(mine.kills)

    totals = (
        select(RunParticipant.wallet.label("wallet"), func.sum(RunParticipant.damage).label("total"))
        .join(Run, Run.id == RunParticipant.run_id)
        .where(*finished)
        .group_by(RunParticipant.wallet)
        .subquery()
    )
    ranked_players = await db.scalar(select(func.count()).select_from(totals)) or 0

    current_rank: int | None = None
    if total_runs:
        ahead = await db.scalar(
            select(func.count())
            .select_from(totals)
            .where(
                or_(
                    totals.c.total > total_damage,
                    and_(totals.c.total == total_damage, totals.c.wallet < wallet),
                )
            )
        )
        current_rank = (ahead or 0) + 1

    players = await get_players_by_wallets(db, [wallet])
    player = players.get(wallet)
    latest = None
    if player is None and total_runs:
        latest = await db.scalar(
            select(RunParticipant)
            .join(Run, Run.id == RunParticipant.run_id)
            .where(*finished, RunParticipant.wallet == wallet)
            .order_by(Run.ended_at.desc())
            .limit(1)
        )

    return {
        "wallet": wallet,
        "display_name": player.display_name if player else (latest.display_name if latest else "Unknown"),
        "avatar_id": player.avatar_id if player else (latest.avatar_id if latest else "m_swordsman"),
        "current_rank": current_rank,
        "total_score": total_damage,
        "total_runs": total_runs,
        "total_damage": total_damage,
        "total_kills": total_kills,
        "avg_damage": total_damage / total_runs if total_runs else 0.0,
        "avg_kills": total_kills / total_runs if total_runs else 0.0,
        "percentile": calculate_percentile(current_rank, ranked_players) if current_rank else 0.0,
    }


async def get_leaderboard_stats(db: AsyncSession) -> dict[str, Any]:
    """Run count, distinct players and per-run total damage figures."""
    run_totals = (
        select(Run.id, func.coalesce(func.sum(RunParticipant.damage), 0).label("total"))
        .outerjoin(RunParticipant, RunParticipant.run_id == Run.id)
        .where(*_finished())
        .group_by(Run.id)
        .subquery()
    )
    figures = (
        await db.execute(
            select(
                func.count().label("runs"),
                func.avg(run_totals.c.total).label("average"),
                func.max(run_totals.c.total).label("top"),
            ).select_from(run_totals)
        )
    ).one()
    total_players = await db.scalar(
        select(func.count(func.distinct(RunParticipant.wallet)))
        .join(Run, Run.id == RunParticipant.run_id)
        .where(*_finished())
    )
    return {
        "total_players": total_players or 0,
        "total_runs": int(figures.runs),
        "average_score": float(figures.average or 0),
        "top_score": int(figures.top or 0),
    }


async def get_available_weeks(db: AsyncSession) -> list[str]:
    """Week keys that have at least one finished run, newest first."""
    result = await db.execute(select(Run.ended_at).where(Run.ended_at.is_not(None)))
    return sorted({get_week_iso(ended_at) for ended_at in result.scalars().all()}, reverse=True)


async def get_available_bosses(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Run.boss_id).where(Run.ended_at.is_not(None)).distinct())
    return sorted(result.scalars().all())
